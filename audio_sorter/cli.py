from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from .config import Profile, find_profile
from .errors import ConfigError
from .models import PlacementAction, PlacementMode
from .session import SortingSession

LOG_FORMAT = "%(levelname).1s | %(name)s | %(message)s"

C_RESET = "\033[0m"
LEVEL_COLORS = {
    logging.DEBUG: "\033[36m",  # Cyan
    logging.INFO: "\033[37m",  # Light gray
    logging.WARNING: "\033[33m",  # Yellow
    logging.ERROR: "\033[31m",  # Red
    logging.CRITICAL: "\033[35m",  # Magenta
}


class ShortPathFormatter(logging.Formatter):
    """Drops the source/destination roots from messages so paths stay readable."""

    def __init__(self, fmt: str, roots: List[Path]) -> None:
        super().__init__(fmt)
        # Longest first so a nested destination is stripped before its parent.
        self.roots = sorted({str(root) for root in roots if root}, key=len, reverse=True)

    def _shorten(self, message: str) -> str:
        for root in self.roots:
            if not message:
                break
            message = message.replace(f"{root}/", "")
        return message

    def format(self, record: logging.LogRecord) -> str:
        return self._shorten(super().format(record))


class ColorFormatter(ShortPathFormatter):
    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        color = LEVEL_COLORS.get(record.levelno)
        if not color:
            return message
        return f"{color}{message}{C_RESET}"


class WarningBufferHandler(logging.Handler):
    def __init__(self) -> None:
        super().__init__(level=logging.WARNING)
        self.records: List[str] = []

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
        except Exception:  # pragma: no cover
            msg = record.getMessage()
        self.records.append(msg)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="audio-sorter",
        description="Sort audio files into genre and tempo folders",
    )
    parser.add_argument("root", type=Path, help="Folder containing the audio files to sort")
    parser.add_argument("--profile", type=Path, help="Path to an audio-sorter profile (JSON or YAML)")
    parser.add_argument("--dest", type=Path, help="Destination root (defaults to ROOT)")
    parser.add_argument("--move", action="store_true", help="Move files into place (default)")
    parser.add_argument("--copy", action="store_true", help="Copy files and leave the originals")
    parser.add_argument("--dry-run", action="store_true", help="Only report what would happen")
    parser.add_argument("--dedupe", action="store_true", help="Remove content duplicates before sorting")
    parser.add_argument(
        "--cleanup-empty",
        action="store_true",
        help="Remove folders emptied by moving files",
    )
    parser.add_argument("--no-remote", action="store_true", help="Never query MusicBrainz for genres")
    parser.add_argument(
        "--no-audio-bpm",
        action="store_true",
        help="Do not estimate tempo from audio when no tempo tag is present",
    )
    parser.add_argument("--log-level", default="INFO", help="Python logging level")
    return parser


def resolve_mode(args: argparse.Namespace) -> PlacementMode:
    if args.move and args.copy:
        raise ConfigError("--move and --copy are mutually exclusive")
    return PlacementMode.COPY if args.copy else PlacementMode.MOVE


def configure_logging(level_name: str, roots: List[Path]) -> WarningBufferHandler:
    log_level = getattr(logging, level_name.upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(log_level)

    color_handler = logging.StreamHandler()
    color_handler.setFormatter(ColorFormatter(LOG_FORMAT, roots))
    root_logger.addHandler(color_handler)

    warn_buffer = WarningBufferHandler()
    warn_buffer.setFormatter(ShortPathFormatter(LOG_FORMAT, roots))
    root_logger.addHandler(warn_buffer)

    logging.getLogger("musicbrainzngs").setLevel(logging.WARNING)
    logging.getLogger("urllib3.connectionpool").setLevel(logging.WARNING)
    return warn_buffer


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    root = args.root.absolute()
    destination = (args.dest or root).absolute()
    warn_buffer = configure_logging(args.log_level, [destination, root])

    try:
        mode = resolve_mode(args)
        if not root.is_dir():
            raise ConfigError(f"Source root {root} is not a directory")
        profile_path = find_profile(args.profile, root)
        profile = Profile.load(profile_path) if profile_path else Profile()
    except ConfigError as exc:
        print(f"audio-sorter: {exc}", file=sys.stderr)
        return 2

    session = SortingSession(
        profile,
        root,
        destination_root=destination,
        mode=mode,
        dry_run=args.dry_run,
        dedupe=args.dedupe,
        cleanup=args.cleanup_empty,
        remote_lookup=False if args.no_remote else None,
        detect_audio=False if args.no_audio_bpm else None,
        profile_path=profile_path,
    )
    summary = session.run()

    print(
        f"\nProcessed {len(summary.reports)} file(s): "
        f"{summary.counts[PlacementAction.MOVED]} moved, "
        f"{summary.counts[PlacementAction.COPIED]} copied, "
        f"{summary.counts[PlacementAction.ALREADY_SORTED]} already sorted, "
        f"{summary.failed} failed"
    )
    if summary.log_path:
        print(f"Run log: {summary.log_path}")
    if warn_buffer.records:
        print("\n\033[33mWarnings/Errors summary:\033[0m")
        for line in warn_buffer.records:
            print(f" - {line}")
    return 0
