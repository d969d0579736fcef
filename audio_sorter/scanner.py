from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Iterator
from pathlib import Path

from .models import AudioItem

logger = logging.getLogger(__name__)


class LibraryScanner:
    """Walks the source tree and yields candidate audio files in path order."""

    def __init__(self, root: Path, extensions: Iterable[str], work_root: str | None = None) -> None:
        self.root = root.absolute()
        self.work_root = work_root
        self._exts = {ext.lower() for ext in extensions}

    def iter_items(self) -> Iterator[AudioItem]:
        if not self.root.is_dir():
            logger.warning("Source root %s is not a directory", self.root)
            return
        for path in sorted(self._iter_paths()):
            try:
                yield AudioItem.from_path(path)
            except OSError as exc:
                logger.warning("Skipping %s: %s", path, exc)

    def _iter_paths(self) -> Iterator[Path]:
        for dirpath, dirnames, filenames in os.walk(self.root):
            directory = Path(dirpath)
            if directory == self.root and self.work_root:
                dirnames[:] = [name for name in dirnames if name != self.work_root]
            dirnames.sort()
            for name in filenames:
                file_path = directory / name
                if not file_path.is_file():
                    continue
                if self._should_include(file_path):
                    yield file_path

    def _should_include(self, path: Path) -> bool:
        if path.name.startswith("."):
            return False
        return path.suffix.lower() in self._exts
