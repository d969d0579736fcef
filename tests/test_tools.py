import subprocess
import unittest
from unittest.mock import patch

from audio_sorter.errors import ToolFailed, ToolUnavailable
from audio_sorter.tools import require_tool, run_tool


class TestRunTool(unittest.TestCase):
    def test_missing_binary_is_unavailable(self) -> None:
        with patch("audio_sorter.tools.shutil.which", return_value=None):
            with self.assertRaises(ToolUnavailable) as ctx:
                run_tool(["ffprobe", "-v", "error"], timeout=5)
        self.assertEqual(ctx.exception.tool, "ffprobe")
        self.assertEqual(ctx.exception.reason, "missing tool")

    def test_binary_vanishing_before_exec_is_unavailable(self) -> None:
        with (
            patch("audio_sorter.tools.shutil.which", return_value="/usr/bin/ffmpeg"),
            patch("audio_sorter.tools.subprocess.run", side_effect=FileNotFoundError("ffmpeg")),
        ):
            with self.assertRaises(ToolUnavailable):
                run_tool(["ffmpeg"], timeout=5)

    def test_timeout_is_a_failed_step(self) -> None:
        with (
            patch("audio_sorter.tools.shutil.which", return_value="/usr/bin/ffmpeg"),
            patch(
                "audio_sorter.tools.subprocess.run",
                side_effect=subprocess.TimeoutExpired(cmd="ffmpeg", timeout=2),
            ),
        ):
            with self.assertRaises(ToolFailed) as ctx:
                run_tool(["ffmpeg", "-i", "a.mp3"], timeout=2)
        self.assertIn("timed out", str(ctx.exception))

    def test_non_zero_exit_is_a_failed_step(self) -> None:
        completed = subprocess.CompletedProcess(args=["ffprobe"], returncode=1, stdout=b"", stderr=b"bad input")
        with (
            patch("audio_sorter.tools.shutil.which", return_value="/usr/bin/ffprobe"),
            patch("audio_sorter.tools.subprocess.run", return_value=completed),
        ):
            with self.assertRaises(ToolFailed) as ctx:
                run_tool(["ffprobe", "a.mp3"], timeout=5)
        self.assertIn("bad input", str(ctx.exception))

    def test_returns_stdout_and_passes_timeout(self) -> None:
        completed = subprocess.CompletedProcess(args=["ffprobe"], returncode=0, stdout=b"TAG:bpm=128\n", stderr=b"")
        with (
            patch("audio_sorter.tools.shutil.which", return_value="/usr/bin/ffprobe"),
            patch("audio_sorter.tools.subprocess.run", return_value=completed) as run,
        ):
            self.assertEqual(run_tool(["ffprobe", "a.mp3"], timeout=7), b"TAG:bpm=128\n")
        self.assertEqual(run.call_args[0][0], ["/usr/bin/ffprobe", "a.mp3"])
        self.assertEqual(run.call_args[1]["timeout"], 7)

    def test_require_tool(self) -> None:
        with patch("audio_sorter.tools.shutil.which", return_value="/opt/bin/ffmpeg"):
            self.assertEqual(require_tool("ffmpeg"), "/opt/bin/ffmpeg")


if __name__ == "__main__":
    unittest.main()
