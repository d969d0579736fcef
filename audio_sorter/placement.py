from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Dict, List

from .fs_utils import move_file, remove_empty_dirs, same_directory
from .models import AudioItem, PlacementAction, PlacementMode, PlacementPlan, PlacementResult
from .planner import DestinationPlanner

logger = logging.getLogger(__name__)


class PlacementExecutor:
    def __init__(self, planner: DestinationPlanner, mode: PlacementMode = PlacementMode.MOVE, dry_run: bool = False) -> None:
        self.planner = planner
        self.mode = PlacementMode(mode)
        self.dry_run = dry_run
        # Destinations promised to earlier files of a dry run.
        self.claimed: Dict[Path, AudioItem] = {}

    def place(self, item: AudioItem, plan: PlacementPlan) -> PlacementResult:
        try:
            return self._place(item, plan)
        except OSError as exc:
            logger.error("Failed to %s %s -> %s: %s", self.mode.value, item.path, plan.target_file, exc)
            return PlacementResult(
                action=PlacementAction.FAILED,
                source=item.path,
                destination=plan.target_file,
                reason=str(exc),
                dry_run=self.dry_run,
            )

    def _place(self, item: AudioItem, plan: PlacementPlan) -> PlacementResult:
        if same_directory(item.path.parent, plan.target_dir):
            logger.debug("Already sorted: %s", item.path)
            return PlacementResult(
                action=PlacementAction.ALREADY_SORTED,
                source=item.path,
                destination=item.path,
                dry_run=self.dry_run,
            )

        if not self.dry_run:
            plan.target_dir.mkdir(parents=True, exist_ok=True)

        destination = plan.target_file
        if self.dry_run and destination in self.claimed:
            fresh = self.planner.place_in(item, plan.target_dir, self.claimed)
            if fresh.identical_existing:
                return self._resolve_duplicate(item, fresh.target_file)
            destination = fresh.target_file
        elif destination.exists():
            if plan.identical_existing or self.planner.is_identical(item, destination):
                return self._resolve_duplicate(item, destination)
            # The destination changed since planning; ask for a fresh name.
            fresh = self.planner.place_in(item, plan.target_dir, self.claimed)
            if fresh.identical_existing:
                return self._resolve_duplicate(item, fresh.target_file)
            destination = fresh.target_file

        if self.mode is PlacementMode.MOVE:
            if self.dry_run:
                logger.info("Dry-run would move %s -> %s", item.path, destination)
                self.claimed[destination] = item
            else:
                move_file(item.path, destination)
                logger.info("Moved %s -> %s", item.path, destination)
            return PlacementResult(PlacementAction.MOVED, item.path, destination, dry_run=self.dry_run)

        if self.dry_run:
            logger.info("Dry-run would copy %s -> %s", item.path, destination)
            self.claimed[destination] = item
        else:
            shutil.copy2(item.path, destination)
            logger.info("Copied %s -> %s", item.path, destination)
        return PlacementResult(PlacementAction.COPIED, item.path, destination, dry_run=self.dry_run)

    def _resolve_duplicate(self, item: AudioItem, destination: Path) -> PlacementResult:
        if self.mode is PlacementMode.COPY:
            logger.info("Skipping %s: identical file already at %s", item.path, destination)
            return PlacementResult(
                PlacementAction.DUPLICATE_SKIPPED,
                item.path,
                destination,
                reason="duplicate at destination",
                dry_run=self.dry_run,
            )
        if self.dry_run:
            logger.info("Dry-run would remove %s: identical file already at %s", item.path, destination)
        else:
            item.path.unlink()
            logger.info("Removed %s: identical file already at %s", item.path, destination)
        return PlacementResult(
            PlacementAction.DUPLICATE_REMOVED,
            item.path,
            destination,
            reason="duplicate at destination",
            dry_run=self.dry_run,
        )

    def cleanup(self, source_root: Path, work_root: str) -> List[Path]:
        """Remove directories emptied by moving; a no-op in copy mode."""
        if self.mode is not PlacementMode.MOVE:
            return []
        return remove_empty_dirs(source_root, exclude_name=work_root, dry_run=self.dry_run)
