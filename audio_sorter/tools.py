from __future__ import annotations

import logging
import shutil
import subprocess
from typing import List, Sequence

from .errors import ToolFailed, ToolUnavailable

logger = logging.getLogger(__name__)


def require_tool(command: str) -> str:
    """Return the resolved executable for ``command`` or raise :class:`ToolUnavailable`."""
    resolved = shutil.which(command)
    if not resolved:
        raise ToolUnavailable(command)
    return resolved


def run_tool(args: Sequence[str], timeout: float) -> bytes:
    """Run an external tool and return its stdout.

    A missing executable raises :class:`ToolUnavailable`; a timeout or non-zero
    exit raises :class:`ToolFailed`.
    """
    cmd: List[str] = [require_tool(args[0]), *args[1:]]
    logger.debug("Running %s", " ".join(cmd))
    try:
        proc = subprocess.run(cmd, capture_output=True, timeout=timeout, check=False)
    except FileNotFoundError as exc:
        raise ToolUnavailable(args[0]) from exc
    except subprocess.TimeoutExpired as exc:
        raise ToolFailed(f"{args[0]} timed out after {timeout:g}s") from exc
    if proc.returncode != 0:
        stderr = proc.stderr.decode("utf-8", errors="replace").strip()
        raise ToolFailed(f"{args[0]} exited with {proc.returncode}: {stderr[:200]}")
    return proc.stdout
