from __future__ import annotations

import errno
import hashlib
import logging
import os
import shutil
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)

ELLIPSIS = "…"
MAX_BASENAME_BYTES = 255
HASH_CHUNK_BYTES = 1024 * 1024


def sha256_file(path: Path) -> str:
    digest = hashlib.sha256()
    with path.open("rb") as fh:
        for chunk in iter(lambda: fh.read(HASH_CHUNK_BYTES), b""):
            digest.update(chunk)
    return digest.hexdigest()


def same_directory(first: Path, second: Path) -> bool:
    return os.path.normcase(str(first.absolute())).lower() == os.path.normcase(str(second.absolute())).lower()


def fit_basename(stem: str, suffix: str, extra: str = "") -> str:
    """Build ``stem + extra + suffix`` truncating the stem to stay within the basename limit."""
    name = f"{stem}{extra}{suffix}"
    if len(name.encode("utf-8")) <= MAX_BASENAME_BYTES:
        return name
    allowed = (
        MAX_BASENAME_BYTES
        - len(suffix.encode("utf-8"))
        - len(extra.encode("utf-8"))
        - len(ELLIPSIS.encode("utf-8"))
    )
    truncated = stem.encode("utf-8")[: max(0, allowed)].decode("utf-8", errors="ignore") or "file"
    return f"{truncated}{ELLIPSIS}{extra}{suffix}"


def move_file(src: Path, dst: Path) -> None:
    try:
        src.rename(dst)
        return
    except OSError as exc:
        if exc.errno != errno.EXDEV:
            raise
    # Cross-device rename failed; fall back to shutil.move which copies+removes.
    shutil.move(str(src), str(dst))


def remove_empty_dirs(root: Path, exclude_name: Optional[str] = None, dry_run: bool = False) -> List[Path]:
    """Remove directories left empty under ``root``, deepest first.

    ``root`` itself is never removed, nor anything below a top-level folder named
    ``exclude_name``. In dry-run mode only currently empty leaf directories are
    reported.
    """
    root = root.absolute()
    removed: List[Path] = []
    for dirpath, dirnames, filenames in os.walk(root, topdown=False):
        path = Path(dirpath)
        if path == root:
            continue
        rel = path.relative_to(root)
        if exclude_name and rel.parts and rel.parts[0] == exclude_name:
            continue
        try:
            if any(path.iterdir()):
                continue
        except OSError as exc:
            logger.warning("Cannot inspect %s: %s", path, exc)
            continue
        if dry_run:
            logger.info("Dry-run would remove empty directory %s", path)
            removed.append(path)
            continue
        try:
            path.rmdir()
        except OSError as exc:
            logger.warning("Failed to remove empty directory %s: %s", path, exc)
            continue
        logger.info("Removed empty directory %s", path)
        removed.append(path)
    return removed
