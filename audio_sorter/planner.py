from __future__ import annotations

import logging
import re
import secrets
from pathlib import Path
from typing import Dict, List, Optional

from .config import TOKEN_PATTERN, Profile
from .fs_utils import fit_basename, sha256_file
from .genre import sanitize_folder_name
from .models import UNKNOWN_ARTIST, AudioItem, GenreInfo, PlacementPlan, TempoInfo

logger = logging.getLogger(__name__)

SEGMENT_SPLIT = re.compile(r"[\\/]+")
FIRST_SUFFIX = 2
LAST_SUFFIX = 999
SEGMENT_MAX_LENGTH = 120

Claims = Dict[Path, AudioItem]


class DestinationPlanner:
    """Turns resolved attributes into a destination that never clobbers a different file."""

    def __init__(self, profile: Profile, destination_root: Path) -> None:
        self.profile = profile
        self.destination_root = destination_root.absolute()

    def token_values(self, artist: str, tempo: TempoInfo, genre: GenreInfo) -> Dict[str, str]:
        bpm_settings = self.profile.bpm
        safe_artist = sanitize_folder_name(artist or "", UNKNOWN_ARTIST, SEGMENT_MAX_LENGTH)
        if safe_artist == UNKNOWN_ARTIST:
            initial = self.profile.artist.unknown_initial
        else:
            initial = safe_artist[0].upper()
        return {
            "genre": sanitize_folder_name(genre.name, self.profile.genre.unknown_name, SEGMENT_MAX_LENGTH),
            "bpmRange": tempo.bucket if bpm_settings.use_subfolders else "",
            "bpm": str(tempo.effective) if bpm_settings.use_subfolders else "",
            "artist": safe_artist,
            "artistInitial": initial,
        }

    def expand(self, artist: str, tempo: TempoInfo, genre: GenreInfo) -> Path:
        """Expand the destination template into a path relative to the destination root."""
        values = self.token_values(artist, tempo, genre)
        expanded = TOKEN_PATTERN.sub(lambda m: values.get(m.group(1), m.group(0)), self.profile.destination_template)
        segments: List[str] = []
        for raw in SEGMENT_SPLIT.split(expanded):
            segment = sanitize_folder_name(raw, "", SEGMENT_MAX_LENGTH)
            if not segment or segment in {".", ".."}:
                continue
            segments.append(segment)
        return Path(*segments) if segments else Path()

    def plan(self, item: AudioItem, artist: str, tempo: TempoInfo, genre: GenreInfo) -> PlacementPlan:
        target_dir = self.destination_root / self.expand(artist, tempo, genre)
        return self.place_in(item, target_dir)

    def place_in(self, item: AudioItem, target_dir: Path, claimed: Optional[Claims] = None) -> PlacementPlan:
        """Plan ``item`` into ``target_dir``.

        ``claimed`` maps destinations promised to earlier files of a dry run to
        those files; such names count as taken even though nothing exists yet.
        """
        candidate = target_dir / item.name
        if candidate == item.path:
            return PlacementPlan(target_dir=target_dir, target_file=candidate, identical_existing=True)
        occupied = self._occupancy(item, candidate, claimed)
        if occupied is None:
            return PlacementPlan(target_dir=target_dir, target_file=candidate)
        if occupied:
            return PlacementPlan(target_dir=target_dir, target_file=candidate, identical_existing=True)
        return self.unique_target(item, target_dir, claimed)

    def unique_target(self, item: AudioItem, target_dir: Path, claimed: Optional[Claims] = None) -> PlacementPlan:
        """Find ``"<stem> (N)<ext>"`` that is free or already holds identical content."""
        stem, suffix = Path(item.name).stem, Path(item.name).suffix
        for number in range(FIRST_SUFFIX, LAST_SUFFIX + 1):
            candidate = target_dir / fit_basename(stem, suffix, f" ({number})")
            if candidate == item.path:
                continue
            occupied = self._occupancy(item, candidate, claimed)
            if occupied is None:
                return PlacementPlan(target_dir=target_dir, target_file=candidate)
            if occupied:
                return PlacementPlan(target_dir=target_dir, target_file=candidate, identical_existing=True)
        while True:
            token = secrets.token_hex(4)
            candidate = target_dir / fit_basename(stem, suffix, f" ({token})")
            if not candidate.exists() and candidate not in (claimed or {}):
                logger.warning("All numbered names taken for %s; using %s", item.name, candidate.name)
                return PlacementPlan(target_dir=target_dir, target_file=candidate)

    def _occupancy(self, item: AudioItem, candidate: Path, claimed: Optional[Claims]) -> Optional[bool]:
        """None when ``candidate`` is free, otherwise whether it holds the same content as ``item``."""
        if claimed and candidate in claimed:
            return self.is_identical(item, claimed[candidate].path)
        if not candidate.exists():
            return None
        return self.is_identical(item, candidate)

    @staticmethod
    def is_identical(item: AudioItem, existing: Path) -> bool:
        try:
            if existing.stat().st_size != item.path.stat().st_size:
                return False
            return item.content_hash() == sha256_file(existing)
        except OSError as exc:
            logger.warning("Could not compare %s with %s: %s", item.path, existing, exc)
            return False
