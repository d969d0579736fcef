"""Content-hash duplicate detection.

Files are grouped by SHA-256; within a group the copy in the best container is
kept (lossless first), then the larger file, then the first path in sort order.
Every other member of the group is deleted.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Tuple

from .models import AudioItem, DedupeReport, DuplicateGroup

logger = logging.getLogger(__name__)

EXTENSION_PRIORITY = {
    ".flac": 4,
    ".wav": 3,
    ".m4a": 2,
    ".mp3": 1,
}


def keep_priority(item: AudioItem) -> Tuple[int, int, str]:
    """Sort key; the smallest key is the file to keep."""
    return (-EXTENSION_PRIORITY.get(item.extension, 0), -item.size, str(item.path))


class DuplicateDetector:
    def __init__(self, dry_run: bool = False) -> None:
        self.dry_run = dry_run

    def find(self, items: Iterable[AudioItem], report: DedupeReport | None = None) -> List[DuplicateGroup]:
        by_hash: Dict[str, List[AudioItem]] = defaultdict(list)
        for item in items:
            try:
                digest = item.content_hash()
            except OSError as exc:
                logger.warning("Could not hash %s: %s", item.path, exc)
                if report is not None:
                    report.unreadable.append(item.path)
                continue
            by_hash[digest].append(item)

        groups: List[DuplicateGroup] = []
        for digest in sorted(by_hash):
            members = by_hash[digest]
            if len(members) < 2:
                continue
            ranked = sorted(members, key=keep_priority)
            groups.append(DuplicateGroup(content_hash=digest, keep=ranked[0], duplicates=ranked[1:]))
        return groups

    def run(self, items: Iterable[AudioItem]) -> DedupeReport:
        report = DedupeReport()
        report.groups = self.find(items, report)
        for group in report.groups:
            for duplicate in group.duplicates:
                if self.dry_run:
                    logger.info("Dry-run would remove duplicate %s (keeping %s)", duplicate.path, group.keep.path)
                    report.removed.append(duplicate.path)
                    continue
                try:
                    duplicate.path.unlink()
                except OSError as exc:
                    logger.error("Failed to remove duplicate %s: %s", duplicate.path, exc)
                    report.failed.append(duplicate.path)
                    continue
                logger.info("Removed duplicate %s (keeping %s)", duplicate.path, group.keep.path)
                report.removed.append(duplicate.path)
        if report.groups:
            logger.info(
                "Duplicate pass: %d groups, %d files removed",
                len(report.groups),
                len(report.removed),
            )
        return report
