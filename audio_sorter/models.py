from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional

from .fs_utils import sha256_file

UNKNOWN_ARTIST = "Unknown"


class TempoSource(str, Enum):
    TAG = "Tag"
    AUDIO = "Audio"
    NONE = "None"


class GenreSource(str, Enum):
    TAG = "Tag"
    REMOTE_LOOKUP = "RemoteLookup"
    FALLBACK = "Fallback"


class PlacementMode(str, Enum):
    MOVE = "move"
    COPY = "copy"


class PlacementAction(str, Enum):
    ALREADY_SORTED = "already sorted"
    MOVED = "moved"
    COPIED = "copied"
    DUPLICATE_REMOVED = "duplicate removed"
    DUPLICATE_SKIPPED = "duplicate skipped"
    FAILED = "failed"


DRY_RUN_WORDING = {
    PlacementAction.MOVED: "would move",
    PlacementAction.COPIED: "would copy",
    PlacementAction.DUPLICATE_REMOVED: "would remove duplicate",
}


@dataclass(slots=True)
class AudioItem:
    """A candidate file found while scanning the source tree."""

    path: Path
    size: int = 0
    _content_hash: Optional[str] = field(default=None, repr=False, compare=False)

    @classmethod
    def from_path(cls, path: Path) -> "AudioItem":
        path = path.absolute()
        return cls(path=path, size=path.stat().st_size)

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def extension(self) -> str:
        return self.path.suffix.lower()

    def content_hash(self) -> str:
        # Computed once per run; raises OSError when the file cannot be read.
        if self._content_hash is None:
            self._content_hash = sha256_file(self.path)
        return self._content_hash


@dataclass(slots=True, frozen=True)
class TempoInfo:
    raw: int
    effective: int
    multiplier: int
    source: TempoSource
    bucket: str
    note: str = ""


@dataclass(slots=True, frozen=True)
class GenreInfo:
    name: str
    source: GenreSource
    remote_used: bool = False
    remote_ok: Optional[bool] = None
    remote_latency_ms: Optional[int] = None
    remote_hint: str = ""


@dataclass(slots=True, frozen=True)
class PlacementPlan:
    target_dir: Path
    target_file: Path
    identical_existing: bool = False


@dataclass(slots=True)
class PlacementResult:
    action: PlacementAction
    source: Path
    destination: Optional[Path] = None
    reason: str = ""
    dry_run: bool = False

    def describe(self) -> str:
        text = self.action.value
        if self.dry_run:
            text = DRY_RUN_WORDING.get(self.action, text)
        if self.destination is not None:
            text = f"{text} -> {self.destination}"
        if self.reason:
            text = f"{text} ({self.reason})"
        return text


@dataclass(slots=True)
class FileReport:
    item: AudioItem
    artist: str
    tempo: TempoInfo
    genre: GenreInfo
    plan: Optional[PlacementPlan]
    result: PlacementResult


@dataclass(slots=True)
class DuplicateGroup:
    content_hash: str
    keep: AudioItem
    duplicates: List[AudioItem] = field(default_factory=list)


@dataclass(slots=True)
class DedupeReport:
    groups: List[DuplicateGroup] = field(default_factory=list)
    removed: List[Path] = field(default_factory=list)
    failed: List[Path] = field(default_factory=list)
    unreadable: List[Path] = field(default_factory=list)
