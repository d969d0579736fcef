"""Tempo resolution.

The resolver tries, in order: a tempo tag embedded in the file, an estimate
computed from a short audio snippet, and finally "no tempo". Half-tempo
detections of slow tracks are doubled before the value is bucketed.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol, Tuple

import numpy as np

from .config import BpmSettings
from .errors import ToolFailed, ToolUnavailable
from .models import TempoInfo, TempoSource
from .tagging import TEMPO_TAG_KEYS, TagReader
from .tools import run_tool

logger = logging.getLogger(__name__)

TAG_BPM_MIN = 40
TAG_BPM_MAX = 250
NUMBER_PATTERN = re.compile(r"\d+(?:[.,]\d+)?")

SNIPPET_SAMPLE_RATE = 44100
ESTIMATE_BPM_MIN = 80
ESTIMATE_BPM_MAX = 190
ONSET_FRAMES_PER_SECOND = 100


@dataclass(slots=True, frozen=True)
class AudioSnippet:
    """Mono signed 16-bit little-endian PCM."""

    pcm: bytes
    sample_rate: int = SNIPPET_SAMPLE_RATE


@dataclass(slots=True, frozen=True)
class TempoEstimate:
    ok: bool
    bpm: int = 0


class SnippetExtractor(Protocol):
    def extract(self, path: Path, offset_seconds: float, duration_seconds: float) -> AudioSnippet:
        ...


class TempoEstimator(Protocol):
    def estimate(self, snippet: AudioSnippet) -> TempoEstimate:
        ...


class FfmpegSnippetExtractor:
    def __init__(self, command: str = "ffmpeg", timeout: float = 30.0) -> None:
        self.command = command
        self.timeout = timeout

    def extract(self, path: Path, offset_seconds: float, duration_seconds: float) -> AudioSnippet:
        pcm = run_tool(
            [
                self.command,
                "-hide_banner",
                "-loglevel",
                "error",
                "-ss",
                f"{offset_seconds:g}",
                "-t",
                f"{duration_seconds:g}",
                "-i",
                str(path),
                "-ac",
                "1",
                "-ar",
                str(SNIPPET_SAMPLE_RATE),
                "-f",
                "s16le",
                "-",
            ],
            timeout=self.timeout,
        )
        return AudioSnippet(pcm=pcm, sample_rate=SNIPPET_SAMPLE_RATE)


class EnergyTempoEstimator:
    """Onset-energy autocorrelation; coarse, but good enough for bucketing."""

    def __init__(self, min_bpm: int = ESTIMATE_BPM_MIN, max_bpm: int = ESTIMATE_BPM_MAX) -> None:
        self.min_bpm = min_bpm
        self.max_bpm = max_bpm

    def estimate(self, snippet: AudioSnippet) -> TempoEstimate:
        usable = len(snippet.pcm) - len(snippet.pcm) % 2
        samples = np.frombuffer(snippet.pcm[:usable], dtype="<i2").astype(np.float64)
        window = max(1, snippet.sample_rate // ONSET_FRAMES_PER_SECOND)
        frames = len(samples) // window
        if frames < 2:
            return TempoEstimate(ok=False)
        energy = np.abs(samples[: frames * window]).reshape(frames, window).sum(axis=1)
        onsets = np.maximum(0.0, np.diff(energy, prepend=energy[0]))

        best_bpm, best_corr = 0, 0.0
        for bpm in range(self.min_bpm, self.max_bpm + 1):
            lag = max(1, round(60.0 / bpm * ONSET_FRAMES_PER_SECOND))
            if lag >= len(onsets):
                continue
            corr = float(np.dot(onsets[lag:], onsets[:-lag]))
            if corr > best_corr:
                best_bpm, best_corr = bpm, corr
        return TempoEstimate(ok=best_bpm > 0, bpm=best_bpm)


def octave_correct(raw: int, settings: BpmSettings) -> Tuple[int, int]:
    if settings.double_if_between_min < raw < settings.double_if_between_max:
        return raw * 2, 2
    return raw, 1


def bucket_label(effective: int, settings: BpmSettings) -> str:
    if effective <= 0:
        return settings.no_bpm_folder_name
    lo = (effective // settings.bucket_size) * settings.bucket_size
    return f"{lo}-{lo + settings.bucket_size}"


def parse_tag_bpm(value: str) -> Optional[int]:
    for match in NUMBER_PATTERN.finditer(value):
        number = float(match.group(0).replace(",", "."))
        if TAG_BPM_MIN <= number <= TAG_BPM_MAX:
            return int(math.floor(number + 0.5))
    return None


class TempoResolver:
    def __init__(
        self,
        settings: BpmSettings,
        tags: TagReader,
        extractor: Optional[SnippetExtractor] = None,
        estimator: Optional[TempoEstimator] = None,
        detect_from_audio: Optional[bool] = None,
    ) -> None:
        self.settings = settings
        self.tags = tags
        self.extractor = extractor
        self.estimator = estimator
        if detect_from_audio is None:
            detect_from_audio = settings.detect_from_audio
        self.detect_from_audio = detect_from_audio

    def resolve(self, path: Path) -> TempoInfo:
        raw, source, note = 0, TempoSource.NONE, ""
        tag_bpm, tag_note = self._from_tags(path)
        if tag_bpm:
            raw, source = tag_bpm, TempoSource.TAG
        else:
            note = tag_note
            if self.detect_from_audio:
                audio_bpm, audio_note = self._from_audio(path)
                if audio_bpm:
                    raw, source, note = audio_bpm, TempoSource.AUDIO, ""
                else:
                    note = audio_note or note
        effective, multiplier = octave_correct(raw, self.settings)
        return TempoInfo(
            raw=raw,
            effective=effective,
            multiplier=multiplier,
            source=source,
            bucket=bucket_label(effective, self.settings),
            note=note,
        )

    def _from_tags(self, path: Path) -> Tuple[Optional[int], str]:
        try:
            tags = self.tags.read_tags(path, TEMPO_TAG_KEYS)
        except ToolUnavailable as exc:
            logger.debug("Tempo tags unavailable for %s: %s", path, exc)
            return None, exc.reason
        except (ToolFailed, OSError) as exc:
            logger.warning("Reading tempo tags failed for %s: %s", path, exc)
            return None, "tag read failed"
        for key in TEMPO_TAG_KEYS:
            value = tags.get(key)
            if not value:
                continue
            bpm = parse_tag_bpm(value)
            if bpm:
                return bpm, ""
        return None, ""

    def _from_audio(self, path: Path) -> Tuple[Optional[int], str]:
        if self.extractor is None or self.estimator is None:
            return None, ToolUnavailable.reason
        try:
            snippet = self.extractor.extract(
                path, self.settings.snippet_offset_sec, self.settings.snippet_seconds
            )
            result = self.estimator.estimate(snippet)
        except ToolUnavailable as exc:
            logger.debug("Audio tempo detection skipped for %s: %s", path, exc)
            return None, exc.reason
        except (ToolFailed, OSError, ValueError) as exc:
            logger.warning("Audio tempo detection failed for %s: %s", path, exc)
            return None, "audio detection failed"
        if not isinstance(result, TempoEstimate) or not result.ok or result.bpm <= 0:
            return None, "no tempo detected"
        return int(result.bpm), ""
