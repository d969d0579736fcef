from __future__ import annotations

import logging
import time
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from .config import Profile
from .duplicates import DuplicateDetector
from .genre import GenreCache, GenreResolver
from .heuristics import parse_artist
from .models import (
    AudioItem,
    DedupeReport,
    FileReport,
    PlacementAction,
    PlacementMode,
    PlacementResult,
)
from .placement import PlacementExecutor
from .planner import DestinationPlanner
from .providers.musicbrainz import GenreLookup, MusicBrainzGenreLookup
from .runlog import RunLog, log_path_for
from .scanner import LibraryScanner
from .tagging import CachingTagReader, FfprobeTagReader, MutagenTagReader, TagReader
from .tempo import (
    EnergyTempoEstimator,
    FfmpegSnippetExtractor,
    SnippetExtractor,
    TempoEstimator,
    TempoResolver,
)

logger = logging.getLogger(__name__)


@dataclass
class RunSummary:
    counts: Counter = field(default_factory=Counter)
    reports: List[FileReport] = field(default_factory=list)
    dedupe: Optional[DedupeReport] = None
    removed_dirs: List[Path] = field(default_factory=list)
    log_path: Optional[Path] = None
    stopped: bool = False

    @property
    def moved(self) -> int:
        return self.counts[PlacementAction.MOVED]

    @property
    def failed(self) -> int:
        return self.counts[PlacementAction.FAILED]


def default_tag_reader(profile: Profile) -> TagReader:
    if profile.tools.tag_reader == "ffprobe":
        return FfprobeTagReader(profile.tools.ffprobe, timeout=profile.tools.timeout_sec)
    return MutagenTagReader()


class SortingSession:
    """One sorting run over a single source tree.

    The session owns everything that lives for the duration of a run: the
    profile, the tag and genre caches and the enumerated items. Collaborators
    default to the real adapters selected by the profile and can be replaced
    for tests.
    """

    def __init__(
        self,
        profile: Profile,
        source_root: Path,
        destination_root: Optional[Path] = None,
        mode: PlacementMode = PlacementMode.MOVE,
        dry_run: bool = False,
        dedupe: bool = False,
        cleanup: bool = False,
        remote_lookup: Optional[bool] = None,
        detect_audio: Optional[bool] = None,
        tag_reader: Optional[TagReader] = None,
        extractor: Optional[SnippetExtractor] = None,
        estimator: Optional[TempoEstimator] = None,
        genre_lookup: Optional[GenreLookup] = None,
        sleep: Callable[[float], None] = time.sleep,
        profile_path: Optional[Path] = None,
    ) -> None:
        self.profile = profile
        self.profile_path = profile_path
        self.source_root = source_root.absolute()
        self.destination_root = (destination_root or source_root).absolute()
        self.mode = PlacementMode(mode)
        self.dry_run = dry_run
        self.dedupe = dedupe
        self.cleanup = cleanup

        self.tag_cache: Dict[Tuple[Path, Tuple[str, ...]], Dict[str, str]] = {}
        self.genre_cache: GenreCache = {}
        self.items: List[AudioItem] = []
        self._stop_requested = False

        tags = CachingTagReader(tag_reader or default_tag_reader(profile), self.tag_cache)
        if detect_audio is None:
            detect_audio = profile.bpm.detect_from_audio
        if detect_audio:
            extractor = extractor or FfmpegSnippetExtractor(
                profile.tools.ffmpeg, timeout=profile.tools.timeout_sec
            )
            estimator = estimator or EnergyTempoEstimator()
        if remote_lookup is None:
            remote_lookup = profile.music_brainz.enabled
        if remote_lookup and genre_lookup is None:
            genre_lookup = MusicBrainzGenreLookup(profile.music_brainz)

        self.scanner = LibraryScanner(self.source_root, profile.extensions, profile.work_root)
        self.tempo_resolver = TempoResolver(
            profile.bpm, tags, extractor=extractor, estimator=estimator, detect_from_audio=detect_audio
        )
        self.genre_resolver = GenreResolver(
            profile, tags, lookup=genre_lookup, remote_enabled=remote_lookup, sleep=sleep
        )
        self.planner = DestinationPlanner(profile, self.destination_root)
        self.executor = PlacementExecutor(self.planner, self.mode, dry_run=dry_run)
        self.run_log = RunLog()

    def request_stop(self) -> None:
        """Stop after the file currently being processed."""
        self._stop_requested = True

    def enumerate(self) -> List[AudioItem]:
        self.items = list(self.scanner.iter_items())
        return self.items

    def process(self, item: AudioItem) -> FileReport:
        artist = parse_artist(item.name)
        tempo = self.tempo_resolver.resolve(item.path)
        genre = self.genre_resolver.resolve(item.path, artist, self.genre_cache)
        try:
            plan = self.planner.plan(item, artist, tempo, genre)
        except OSError as exc:
            logger.error("Could not plan destination for %s: %s", item.path, exc)
            result = PlacementResult(PlacementAction.FAILED, item.path, reason=str(exc), dry_run=self.dry_run)
            return FileReport(item=item, artist=artist, tempo=tempo, genre=genre, plan=None, result=result)
        result = self.executor.place(item, plan)
        return FileReport(item=item, artist=artist, tempo=tempo, genre=genre, plan=plan, result=result)

    def run(self) -> RunSummary:
        started = datetime.now()
        summary = RunSummary()
        self.run_log.header(
            self.source_root,
            self.destination_root,
            self.mode.value,
            self.dry_run,
            started,
            profile_path=self.profile_path,
        )

        try:
            if self.dedupe:
                summary.dedupe = DuplicateDetector(dry_run=self.dry_run).run(self.enumerate())
                self.run_log.dedupe_block(summary.dedupe, self.dry_run)

            for item in self.enumerate():
                if self._stop_requested:
                    summary.stopped = True
                    break
                if self.dry_run and summary.dedupe and item.path in summary.dedupe.removed:
                    continue
                report = self.process(item)
                summary.reports.append(report)
                summary.counts[report.result.action] += 1
                self.run_log.file_block(report)
        except KeyboardInterrupt:
            logger.warning("Interrupted; stopping after %d file(s)", len(summary.reports))
            summary.stopped = True

        if self.cleanup and not summary.stopped:
            summary.removed_dirs = self.executor.cleanup(self.source_root, self.profile.work_root)
            if self.mode is PlacementMode.MOVE:
                self.run_log.cleanup_block(summary.removed_dirs, self.dry_run)

        counts = {"files": len(summary.reports)}
        for action in PlacementAction:
            counts[action.value] = summary.counts[action]
        if summary.dedupe is not None:
            counts["duplicates removed"] = len(summary.dedupe.removed)
        self.run_log.summary(counts, stopped=summary.stopped)

        path = log_path_for(self.source_root, self.profile.work_root, started)
        try:
            summary.log_path = self.run_log.write(path)
        except OSError as exc:
            logger.error("Could not write run log %s: %s", path, exc)
        return summary
