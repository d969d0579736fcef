from __future__ import annotations


class AudioSorterError(Exception):
    """Base class for errors raised by audio-sorter."""


class ConfigError(AudioSorterError):
    """The profile is missing, unparsable or asks for conflicting modes."""


class ToolUnavailable(AudioSorterError):
    """An optional external tool is not installed."""

    reason = "missing tool"

    def __init__(self, tool: str) -> None:
        super().__init__(f"{tool} not found")
        self.tool = tool


class ToolFailed(AudioSorterError):
    """An external tool timed out or exited with an error."""


class TransportFailure(AudioSorterError):
    """The remote genre service could not be reached or answered with an error."""
