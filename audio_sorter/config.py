from __future__ import annotations

import json
import re
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .errors import ConfigError

TEMPLATE_TOKENS = frozenset({"genre", "bpmRange", "bpm", "artist", "artistInitial"})
TOKEN_PATTERN = re.compile(r"\{([^{}]*)\}")

PROFILE_CANDIDATES = ("audio-sorter.json", "audio-sorter.yaml", "audio-sorter.yml")


class _Section(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")


class GenreSettings(_Section):
    unknown_name: str = Field(default="Unknown", alias="unknownName")
    sanitize_for_folder: bool = Field(default=True, alias="sanitizeForFolder")
    max_length: int = Field(default=60, alias="maxLength", ge=1)

    @field_validator("unknown_name")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("unknownName must not be empty")
        return value.strip()


class BpmSettings(_Section):
    use_subfolders: bool = Field(default=True, alias="useSubfolders")
    bucket_size: int = Field(default=10, alias="bucketSize")
    no_bpm_folder_name: str = Field(default="No-BPM", alias="noBpmFolderName")
    double_if_between_min: int = Field(default=60, alias="doubleIfBetweenMin", ge=0)
    double_if_between_max: int = Field(default=95, alias="doubleIfBetweenMax", ge=0)
    detect_from_audio: bool = Field(default=True, alias="detectFromAudio")
    snippet_offset_sec: float = Field(default=30.0, alias="snippetOffsetSec", ge=0)
    snippet_seconds: float = Field(default=30.0, alias="snippetSeconds", gt=0)

    @field_validator("bucket_size")
    @classmethod
    def _bucket_multiple_of_five(cls, value: int) -> int:
        if value <= 0 or value % 5:
            raise ValueError("bucketSize must be a positive multiple of 5")
        return value

    @model_validator(mode="after")
    def _ordered_bounds(self) -> "BpmSettings":
        if self.double_if_between_min >= self.double_if_between_max:
            raise ValueError("doubleIfBetweenMin must be lower than doubleIfBetweenMax")
        return self


class MusicBrainzSettings(_Section):
    enabled: bool = True
    delay_ms: int = Field(default=900, alias="delayMs", ge=0)
    user_agent: str = Field(default="audio-sorter ( unknown@example.com )", alias="userAgent")


class ArtistSettings(_Section):
    unknown_initial: str = Field(default="#", alias="unknownInitial", min_length=1)


class ToolSettings(_Section):
    tag_reader: str = Field(default="mutagen", alias="tagReader")
    ffmpeg: str = "ffmpeg"
    ffprobe: str = "ffprobe"
    timeout_sec: float = Field(default=30.0, alias="timeoutSec", gt=0)

    @field_validator("tag_reader")
    @classmethod
    def _known_reader(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in {"mutagen", "ffprobe"}:
            raise ValueError("tagReader must be 'mutagen' or 'ffprobe'")
        return value


class Profile(_Section):
    extensions: List[str] = Field(
        default_factory=lambda: [".mp3", ".flac", ".wav", ".m4a", ".aiff", ".ogg"]
    )
    work_root: str = Field(default="_AudioSorter", alias="workRoot")
    destination_template: str = Field(default="{genre}/{bpmRange}", alias="destinationTemplate")
    genre: GenreSettings = GenreSettings()
    bpm: BpmSettings = BpmSettings()
    music_brainz: MusicBrainzSettings = Field(default=MusicBrainzSettings(), alias="musicBrainz")
    artist: ArtistSettings = ArtistSettings()
    tools: ToolSettings = ToolSettings()

    @field_validator("extensions", mode="before")
    @classmethod
    def _normalize_extensions(cls, values: List[str]) -> List[str]:
        normalized: List[str] = []
        for value in values or []:
            ext = str(value).strip().lower()
            if not ext:
                continue
            if not ext.startswith("."):
                ext = f".{ext}"
            if ext not in normalized:
                normalized.append(ext)
        if not normalized:
            raise ValueError("at least one extension is required")
        return normalized

    @field_validator("work_root")
    @classmethod
    def _plain_folder_name(cls, value: str) -> str:
        value = value.strip()
        if not value or value in {".", ".."} or "/" in value or "\\" in value:
            raise ValueError("workRoot must be a plain folder name")
        return value

    @field_validator("destination_template")
    @classmethod
    def _known_tokens(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("destinationTemplate must not be empty")
        unknown = sorted(set(TOKEN_PATTERN.findall(value)) - TEMPLATE_TOKENS)
        if unknown:
            raise ValueError(f"unknown template tokens: {', '.join(unknown)}")
        return value

    @classmethod
    def load(cls, path: Path) -> "Profile":
        try:
            with path.open("r", encoding="utf-8") as fh:
                if path.suffix.lower() == ".json":
                    raw = json.load(fh)
                else:
                    raw = yaml.safe_load(fh)
        except FileNotFoundError as exc:
            raise ConfigError(f"Profile not found: {path}") from exc
        except (OSError, json.JSONDecodeError, yaml.YAMLError) as exc:
            raise ConfigError(f"Could not read profile {path}: {exc}") from exc
        if raw is None:
            raw = {}
        if not isinstance(raw, dict):
            raise ConfigError(f"Profile {path} must contain an object at the top level")
        try:
            return cls.model_validate(raw)
        except ValidationError as exc:
            raise ConfigError(f"Invalid profile {path}: {exc}") from exc


def find_profile(explicit_path: Optional[Path], root: Optional[Path] = None) -> Optional[Path]:
    if explicit_path:
        return explicit_path
    search = [Path.cwd()]
    if root is not None:
        search.append(root)
    for directory in search:
        for name in PROFILE_CANDIDATES:
            candidate = directory / name
            if candidate.exists():
                return candidate
    return None
