from __future__ import annotations

import logging
import re
import time
from pathlib import Path
from typing import Callable, Dict, Optional

from .config import Profile
from .errors import ToolFailed, ToolUnavailable, TransportFailure
from .models import UNKNOWN_ARTIST, GenreInfo, GenreSource
from .providers.musicbrainz import GenreLookup
from .tagging import GENRE_TAG_KEYS, TagReader

logger = logging.getLogger(__name__)

GENRE_SEPARATORS = re.compile(r"[,;/\\]")
ILLEGAL_FOLDER_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]+')
WHITESPACE = re.compile(r"\s+")
MIN_REMOTE_ARTIST_LENGTH = 3


def first_genre_token(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    token = GENRE_SEPARATORS.split(value, 1)[0].strip()
    return token or None


def sanitize_folder_name(value: str, fallback: str, max_length: int = 60) -> str:
    cleaned = ILLEGAL_FOLDER_CHARS.sub("-", value)
    cleaned = WHITESPACE.sub(" ", cleaned).strip()
    cleaned = cleaned.rstrip(". ")
    cleaned = cleaned[:max_length].rstrip(". ")
    return cleaned or fallback


def display_case(value: str) -> str:
    if value.islower():
        return value.title()
    return value


GenreCache = Dict[Path, GenreInfo]


class GenreResolver:
    def __init__(
        self,
        profile: Profile,
        tags: TagReader,
        lookup: Optional[GenreLookup] = None,
        remote_enabled: Optional[bool] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.profile = profile
        self.tags = tags
        self.lookup = lookup
        if remote_enabled is None:
            remote_enabled = profile.music_brainz.enabled
        self.remote_enabled = remote_enabled and lookup is not None
        self._sleep = sleep

    def resolve(self, path: Path, artist: str, cache: GenreCache) -> GenreInfo:
        cached = cache.get(path)
        if cached is not None:
            return cached
        info = self._resolve_uncached(path, artist)
        info = GenreInfo(
            name=self._finish(info.name),
            source=info.source,
            remote_used=info.remote_used,
            remote_ok=info.remote_ok,
            remote_latency_ms=info.remote_latency_ms,
            remote_hint=info.remote_hint,
        )
        cache[path] = info
        return info

    def _resolve_uncached(self, path: Path, artist: str) -> GenreInfo:
        tagged = self._from_tags(path)
        if tagged:
            return GenreInfo(name=tagged, source=GenreSource.TAG)
        unknown = self.profile.genre.unknown_name
        if not self._should_lookup(artist):
            return GenreInfo(name=unknown, source=GenreSource.FALLBACK)
        return self._from_remote(artist, unknown)

    def _should_lookup(self, artist: str) -> bool:
        if not self.remote_enabled:
            return False
        artist = (artist or "").strip()
        return artist != UNKNOWN_ARTIST and len(artist) >= MIN_REMOTE_ARTIST_LENGTH

    def _from_tags(self, path: Path) -> Optional[str]:
        try:
            tags = self.tags.read_tags(path, GENRE_TAG_KEYS)
        except ToolUnavailable as exc:
            logger.debug("Genre tags unavailable for %s: %s", path, exc)
            return None
        except (ToolFailed, OSError) as exc:
            logger.warning("Reading genre tags failed for %s: %s", path, exc)
            return None
        for key in GENRE_TAG_KEYS:
            token = first_genre_token(tags.get(key))
            if token:
                return token
        return None

    def _from_remote(self, artist: str, unknown: str) -> GenreInfo:
        delay = self.profile.music_brainz.delay_ms / 1000.0
        if delay > 0:
            self._sleep(delay)
        try:
            outcome = self.lookup.lookup(artist)
        except TransportFailure as exc:
            logger.warning("Genre lookup for %s failed (transport failure): %s", artist, exc)
            return GenreInfo(
                name=unknown,
                source=GenreSource.FALLBACK,
                remote_used=True,
                remote_ok=False,
                remote_hint=f"transport failure: {exc}",
            )
        tag = (outcome.tag or "").strip()
        if not tag:
            return GenreInfo(
                name=unknown,
                source=GenreSource.FALLBACK,
                remote_used=True,
                remote_ok=True,
                remote_latency_ms=outcome.latency_ms,
                remote_hint=outcome.hint or "no usable tag",
            )
        return GenreInfo(
            name=tag,
            source=GenreSource.REMOTE_LOOKUP,
            remote_used=True,
            remote_ok=True,
            remote_latency_ms=outcome.latency_ms,
            remote_hint=outcome.hint,
        )

    def _finish(self, name: str) -> str:
        settings = self.profile.genre
        name = display_case(name.strip())
        if settings.sanitize_for_folder:
            name = sanitize_folder_name(name, settings.unknown_name, settings.max_length)
        return name or settings.unknown_name
