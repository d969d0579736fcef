import tempfile
import unittest
from datetime import datetime
from pathlib import Path

from audio_sorter.models import (
    AudioItem,
    FileReport,
    GenreInfo,
    GenreSource,
    PlacementAction,
    PlacementResult,
    TempoInfo,
    TempoSource,
)
from audio_sorter.runlog import RunLog, describe_genre, describe_tempo, log_path_for


class TestRunLog(unittest.TestCase):
    def test_log_path(self) -> None:
        path = log_path_for(Path("/music"), "_AudioSorter", datetime(2024, 3, 9, 7, 5, 1))
        self.assertEqual(path, Path("/music/_AudioSorter/logs/20240309-070501.txt"))

    def test_describe_tempo(self) -> None:
        doubled = TempoInfo(raw=70, effective=140, multiplier=2, source=TempoSource.AUDIO, bucket="140-150")
        self.assertEqual(describe_tempo(doubled), "Tempo: 140 BPM (raw 70 x2, source Audio) -> 140-150")
        missing = TempoInfo(0, 0, 1, TempoSource.NONE, "No-BPM", note="missing tool")
        self.assertEqual(describe_tempo(missing), "Tempo: none (source None) -> No-BPM [missing tool]")

    def test_describe_genre(self) -> None:
        self.assertEqual(describe_genre(GenreInfo("House", GenreSource.TAG)), "Genre: House (source Tag)")
        remote = GenreInfo("Trance", GenreSource.REMOTE_LOOKUP, True, True, 42, "artist=Solar Drift")
        self.assertEqual(
            describe_genre(remote),
            "Genre: Trance (source RemoteLookup) [remote ok, 42 ms, artist=Solar Drift]",
        )
        failed = GenreInfo("Unknown", GenreSource.FALLBACK, True, False, None, "transport failure: dns")
        self.assertIn("remote failed", describe_genre(failed))

    def test_blocks_are_mirrored_and_written(self) -> None:
        item = AudioItem(path=Path("/music/a.mp3"), size=1)
        report = FileReport(
            item=item,
            artist="Unknown",
            tempo=TempoInfo(128, 128, 1, TempoSource.TAG, "120-130"),
            genre=GenreInfo("House", GenreSource.TAG),
            plan=None,
            result=PlacementResult(PlacementAction.FAILED, item.path, reason="denied"),
        )
        log = RunLog()
        with self.assertLogs("audio_sorter.runlog", level="INFO") as captured:
            log.file_block(report)
        self.assertIn("Action: failed (denied)", captured.output[0])

        with tempfile.TemporaryDirectory() as tmpdir:
            path = log.write(Path(tmpdir) / "_AudioSorter" / "logs" / "run.txt")
            text = path.read_text(encoding="utf-8")
        self.assertIn("File: /music/a.mp3", text)
        self.assertIn("Artist: Unknown", text)


if __name__ == "__main__":
    unittest.main()
