from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, Optional, Protocol, Tuple

from mutagen import File as MutagenFile
from mutagen import MutagenError

from .tools import run_tool

logger = logging.getLogger(__name__)

TEMPO_TAG_KEYS = ("bpm", "tbpm", "tempo", "fbpm")
GENRE_TAG_KEYS = ("genre", "tcon")


class TagReader(Protocol):
    def read_tags(self, path: Path, keys: Iterable[str]) -> Dict[str, str]:
        """Return lower-cased tag keys mapped to their first text value."""


def parse_tag_lines(output: str, keys: Optional[Iterable[str]] = None) -> Dict[str, str]:
    """Parse ``key=value`` lines, ignoring anything malformed.

    ffprobe prefixes container tags with ``TAG:``; the prefix is dropped. The
    first value seen for a key wins.
    """
    wanted = {key.lower() for key in keys} if keys is not None else None
    tags: Dict[str, str] = {}
    for line in output.splitlines():
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if key[:4].upper() == "TAG:":
            key = key[4:]
        key = key.strip().lower()
        value = value.strip()
        if not key or not value:
            continue
        if wanted is not None and key not in wanted:
            continue
        tags.setdefault(key, value)
    return tags


class MutagenTagReader:
    """Reads tags in-process with mutagen's easy interface."""

    def read_tags(self, path: Path, keys: Iterable[str]) -> Dict[str, str]:
        wanted = [key.lower() for key in keys]
        try:
            audio = MutagenFile(path, easy=True)
        except (MutagenError, OSError) as exc:
            logger.debug("Could not read tags from %s: %s", path, exc)
            return {}
        if audio is None or not audio.tags:
            return {}
        found: Dict[str, str] = {}
        for raw_key, raw_value in audio.tags.items():
            key = str(raw_key).lower()
            if key not in wanted or key in found:
                continue
            value = _first_text(raw_value)
            if value:
                found[key] = value
        return found


class FfprobeTagReader:
    """Reads container tags by running ffprobe."""

    def __init__(self, command: str = "ffprobe", timeout: float = 30.0) -> None:
        self.command = command
        self.timeout = timeout

    def read_tags(self, path: Path, keys: Iterable[str]) -> Dict[str, str]:
        keys = [key.lower() for key in keys]
        entries = ",".join(dict.fromkeys([*keys, *(key.upper() for key in keys)]))
        output = run_tool(
            [
                self.command,
                "-v",
                "error",
                "-show_entries",
                f"format_tags={entries}:stream_tags={entries}",
                "-of",
                "default=noprint_wrappers=1",
                str(path),
            ],
            timeout=self.timeout,
        )
        return parse_tag_lines(output.decode("utf-8", errors="replace"), keys)


class CachingTagReader:
    """Remembers tag reads for the duration of a run, keyed by file path."""

    def __init__(self, reader: TagReader, cache: Dict[Tuple[Path, Tuple[str, ...]], Dict[str, str]]) -> None:
        self.reader = reader
        self.cache = cache

    def read_tags(self, path: Path, keys: Iterable[str]) -> Dict[str, str]:
        key = (path, tuple(k.lower() for k in keys))
        if key not in self.cache:
            self.cache[key] = self.reader.read_tags(path, key[1])
        return self.cache[key]


def _first_text(value: object) -> Optional[str]:
    if isinstance(value, (list, tuple)):
        for entry in value:
            text = str(entry).strip()
            if text:
                return text
        return None
    if value is None:
        return None
    text = str(value).strip()
    return text or None
