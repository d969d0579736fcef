from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from .models import DedupeReport, FileReport, GenreInfo, TempoInfo

logger = logging.getLogger(__name__)

LOG_DIR_NAME = "logs"
TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S"


def log_path_for(source_root: Path, work_root: str, started: datetime) -> Path:
    return source_root / work_root / LOG_DIR_NAME / f"{started.strftime(TIMESTAMP_FORMAT)}.txt"


def describe_tempo(tempo: TempoInfo) -> str:
    if tempo.raw <= 0:
        text = f"Tempo: none (source {tempo.source.value}) -> {tempo.bucket}"
    elif tempo.multiplier != 1:
        text = (
            f"Tempo: {tempo.effective} BPM (raw {tempo.raw} x{tempo.multiplier}, "
            f"source {tempo.source.value}) -> {tempo.bucket}"
        )
    else:
        text = f"Tempo: {tempo.effective} BPM (source {tempo.source.value}) -> {tempo.bucket}"
    if tempo.note:
        text = f"{text} [{tempo.note}]"
    return text


def describe_genre(genre: GenreInfo) -> str:
    text = f"Genre: {genre.name} (source {genre.source.value})"
    if not genre.remote_used:
        return text
    status = "ok" if genre.remote_ok else "failed"
    details = [f"remote {status}"]
    if genre.remote_latency_ms is not None:
        details.append(f"{genre.remote_latency_ms} ms")
    if genre.remote_hint:
        details.append(genre.remote_hint)
    return f"{text} [{', '.join(details)}]"


class RunLog:
    """Human-readable record of a run, one block per file."""

    def __init__(self) -> None:
        self.lines: List[str] = []

    def _emit(self, block: List[str], level: int = logging.INFO) -> None:
        self.lines.extend(block)
        self.lines.append("")
        logger.log(level, "%s", "\n".join(block))

    def header(
        self,
        source_root: Path,
        destination_root: Path,
        mode: str,
        dry_run: bool,
        started: datetime,
        profile_path: Optional[Path] = None,
    ) -> None:
        block = [
            f"audio-sorter run {started.isoformat(timespec='seconds')}",
            f"Source: {source_root}",
            f"Destination: {destination_root}",
            f"Mode: {mode}{' (dry-run)' if dry_run else ''}",
            f"Profile: {profile_path if profile_path else 'built-in defaults'}",
        ]
        self._emit(block)

    def file_block(self, report: FileReport) -> None:
        block = [
            f"File: {report.item.path}",
            f"  {describe_tempo(report.tempo)}",
            f"  Artist: {report.artist}",
            f"  {describe_genre(report.genre)}",
        ]
        if report.plan is not None:
            block.append(f"  Planned: {report.plan.target_file}")
        block.append(f"  Action: {report.result.describe()}")
        self._emit(block)

    def dedupe_block(self, report: DedupeReport, dry_run: bool) -> None:
        verb = "would remove" if dry_run else "removed"
        block = [f"Duplicate pass: {len(report.groups)} group(s)"]
        for group in report.groups:
            block.append(f"  keep {group.keep.path}")
            for duplicate in group.duplicates:
                marker = "failed to remove" if duplicate.path in report.failed else verb
                block.append(f"    {marker} {duplicate.path}")
        for path in report.unreadable:
            block.append(f"  unreadable {path}")
        self._emit(block)

    def cleanup_block(self, removed: List[Path], dry_run: bool) -> None:
        verb = "would remove" if dry_run else "removed"
        block = [f"Empty directories {verb}: {len(removed)}"]
        block.extend(f"  {path}" for path in removed)
        self._emit(block)

    def summary(self, counts: dict, stopped: bool = False) -> None:
        block = ["Summary:"]
        block.extend(f"  {name}: {count}" for name, count in counts.items())
        if stopped:
            block.append("  run stopped before all files were processed")
        self._emit(block)

    def text(self) -> str:
        return "\n".join(self.lines)

    def write(self, path: Path) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.text(), encoding="utf-8")
        logger.info("Run log written to %s", path)
        return path
