import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from audio_sorter.config import Profile
from audio_sorter.models import AudioItem, PlacementAction, PlacementMode, PlacementPlan
from audio_sorter.placement import PlacementExecutor
from audio_sorter.planner import DestinationPlanner


class TestPlacementExecutor(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name).absolute()
        self.planner = DestinationPlanner(Profile(), self.root)
        self.source = self.root / "incoming" / "Song.mp3"
        self.source.parent.mkdir()
        self.source.write_bytes(b"audio")
        self.target_dir = self.root / "Trance" / "130-140"

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _plan(self) -> PlacementPlan:
        return self.planner.place_in(AudioItem.from_path(self.source), self.target_dir)

    def test_move_creates_target_dir(self) -> None:
        executor = PlacementExecutor(self.planner, PlacementMode.MOVE)
        result = executor.place(AudioItem.from_path(self.source), self._plan())
        self.assertEqual(result.action, PlacementAction.MOVED)
        self.assertFalse(self.source.exists())
        self.assertEqual((self.target_dir / "Song.mp3").read_bytes(), b"audio")

    def test_copy_keeps_source(self) -> None:
        executor = PlacementExecutor(self.planner, PlacementMode.COPY)
        result = executor.place(AudioItem.from_path(self.source), self._plan())
        self.assertEqual(result.action, PlacementAction.COPIED)
        self.assertTrue(self.source.exists())
        self.assertTrue((self.target_dir / "Song.mp3").exists())

    def test_dry_run_touches_nothing(self) -> None:
        executor = PlacementExecutor(self.planner, PlacementMode.MOVE, dry_run=True)
        result = executor.place(AudioItem.from_path(self.source), self._plan())
        self.assertEqual(result.action, PlacementAction.MOVED)
        self.assertTrue(result.describe().startswith("would move -> "))
        self.assertTrue(self.source.exists())
        self.assertFalse(self.target_dir.exists())

    def _second_song(self, data: bytes) -> AudioItem:
        other = self.root / "other" / "Song.mp3"
        other.parent.mkdir()
        other.write_bytes(data)
        return AudioItem.from_path(other)

    def test_dry_run_reports_the_names_a_real_run_would_use(self) -> None:
        executor = PlacementExecutor(self.planner, PlacementMode.MOVE, dry_run=True)
        first = AudioItem.from_path(self.source)
        second = self._second_song(b"other audio")
        results = [
            executor.place(item, self.planner.place_in(item, self.target_dir)) for item in (first, second)
        ]
        self.assertEqual([r.destination.name for r in results], ["Song.mp3", "Song (2).mp3"])
        self.assertEqual([r.action for r in results], [PlacementAction.MOVED, PlacementAction.MOVED])
        self.assertFalse(self.target_dir.exists())

    def test_dry_run_identical_to_claimed_destination_is_a_duplicate(self) -> None:
        executor = PlacementExecutor(self.planner, PlacementMode.MOVE, dry_run=True)
        first = AudioItem.from_path(self.source)
        second = self._second_song(b"audio")
        executor.place(first, self.planner.place_in(first, self.target_dir))
        result = executor.place(second, self.planner.place_in(second, self.target_dir))
        self.assertEqual(result.action, PlacementAction.DUPLICATE_REMOVED)
        self.assertTrue(result.describe().startswith("would remove duplicate -> "))
        self.assertTrue(second.path.exists())

    def test_identical_destination_in_move_mode_removes_source(self) -> None:
        self.target_dir.mkdir(parents=True)
        (self.target_dir / "Song.mp3").write_bytes(b"audio")
        executor = PlacementExecutor(self.planner, PlacementMode.MOVE)
        result = executor.place(AudioItem.from_path(self.source), self._plan())
        self.assertEqual(result.action, PlacementAction.DUPLICATE_REMOVED)
        self.assertFalse(self.source.exists())
        self.assertTrue((self.target_dir / "Song.mp3").exists())

    def test_identical_destination_in_copy_mode_skips(self) -> None:
        self.target_dir.mkdir(parents=True)
        (self.target_dir / "Song.mp3").write_bytes(b"audio")
        executor = PlacementExecutor(self.planner, PlacementMode.COPY)
        result = executor.place(AudioItem.from_path(self.source), self._plan())
        self.assertEqual(result.action, PlacementAction.DUPLICATE_SKIPPED)
        self.assertTrue(self.source.exists())

    def test_destination_appearing_after_planning_gets_fresh_name(self) -> None:
        plan = self._plan()
        self.target_dir.mkdir(parents=True)
        (self.target_dir / "Song.mp3").write_bytes(b"different")
        executor = PlacementExecutor(self.planner, PlacementMode.MOVE)
        result = executor.place(AudioItem.from_path(self.source), plan)
        self.assertEqual(result.action, PlacementAction.MOVED)
        self.assertEqual(result.destination.name, "Song (2).mp3")
        self.assertEqual((self.target_dir / "Song.mp3").read_bytes(), b"different")

    def test_same_directory_is_already_sorted(self) -> None:
        self.target_dir.mkdir(parents=True)
        placed = self.target_dir / "Song.mp3"
        self.source.rename(placed)
        item = AudioItem.from_path(placed)
        result = PlacementExecutor(self.planner).place(item, self.planner.place_in(item, self.target_dir))
        self.assertEqual(result.action, PlacementAction.ALREADY_SORTED)
        self.assertTrue(placed.exists())

    def test_os_error_is_reported_as_failure(self) -> None:
        executor = PlacementExecutor(self.planner, PlacementMode.MOVE)
        with patch("audio_sorter.placement.move_file", side_effect=PermissionError("denied")):
            with self.assertLogs("audio_sorter.placement", level="ERROR"):
                result = executor.place(AudioItem.from_path(self.source), self._plan())
        self.assertEqual(result.action, PlacementAction.FAILED)
        self.assertIn("denied", result.reason)
        self.assertTrue(self.source.exists())

    def test_cleanup_removes_emptied_dirs_but_not_work_root(self) -> None:
        (self.root / "_AudioSorter" / "logs").mkdir(parents=True)
        executor = PlacementExecutor(self.planner, PlacementMode.MOVE)
        executor.place(AudioItem.from_path(self.source), self._plan())
        removed = executor.cleanup(self.root, "_AudioSorter")
        self.assertEqual(removed, [self.root / "incoming"])
        self.assertTrue((self.root / "_AudioSorter" / "logs").is_dir())
        self.assertTrue(self.root.is_dir())

    def test_cleanup_is_noop_in_copy_mode(self) -> None:
        (self.root / "empty").mkdir()
        self.assertEqual(PlacementExecutor(self.planner, PlacementMode.COPY).cleanup(self.root, "_AudioSorter"), [])
        self.assertTrue((self.root / "empty").is_dir())


if __name__ == "__main__":
    unittest.main()
