from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Tuple

import musicbrainzngs

from .. import __version__
from ..config import MusicBrainzSettings
from ..errors import TransportFailure

logger = logging.getLogger(__name__)

DEFAULT_APP = "audio-sorter"
USER_AGENT_PATTERN = re.compile(
    r"^\s*(?P<app>[^\s/()]+)(?:/(?P<version>[^\s()]+))?\s*(?:\((?P<contact>[^()]*)\))?\s*$"
)


@dataclass(slots=True, frozen=True)
class LookupOutcome:
    """Result of a remote genre lookup that reached the service."""

    tag: Optional[str]
    latency_ms: int
    hint: str = ""


class GenreLookup(Protocol):
    def lookup(self, artist: str) -> LookupOutcome:
        """Return the top-ranked tag for ``artist``; raise TransportFailure on network errors."""


def top_tag(tags: List[Dict[str, Any]]) -> Optional[str]:
    best_name: Optional[str] = None
    best_count = -1
    for tag in tags or []:
        name = str(tag.get("name") or "").strip()
        if not name:
            continue
        try:
            count = int(tag.get("count", 0))
        except (TypeError, ValueError):
            count = 0
        if count > best_count:
            best_name, best_count = name, count
    return best_name


def split_user_agent(value: str) -> Tuple[str, str, Optional[str]]:
    """Split ``"app/1.0 ( contact )"`` into the parts musicbrainzngs expects.

    Version and contact are optional. A bare e-mail address, or anything that
    does not look like an application name, becomes the contact of the default
    application.
    """
    match = USER_AGENT_PATTERN.match(value or "")
    if not match or "@" in match.group("app"):
        return DEFAULT_APP, __version__, (value or "").strip() or None
    contact = (match.group("contact") or "").strip() or None
    return match.group("app"), match.group("version") or __version__, contact


class MusicBrainzGenreLookup:
    """Looks up an artist on MusicBrainz and returns its most-voted tag."""

    def __init__(self, settings: MusicBrainzSettings) -> None:
        self.settings = settings
        app, version, contact = split_user_agent(settings.user_agent)
        musicbrainzngs.set_useragent(app, version, contact=contact)

    def lookup(self, artist: str) -> LookupOutcome:
        started = time.monotonic()
        try:
            response = musicbrainzngs.search_artists(artist=artist, limit=1)
        except (musicbrainzngs.NetworkError, musicbrainzngs.ResponseError) as exc:
            raise TransportFailure(f"MusicBrainz lookup for {artist!r} failed: {exc}") from exc
        latency_ms = int((time.monotonic() - started) * 1000)
        artists = response.get("artist-list") or []
        if not artists:
            return LookupOutcome(tag=None, latency_ms=latency_ms, hint="no artist match")
        match = artists[0]
        tag = top_tag(match.get("tag-list") or [])
        matched_name = match.get("name") or artist
        if not tag:
            return LookupOutcome(tag=None, latency_ms=latency_ms, hint=f"no tags for {matched_name}")
        logger.debug("MusicBrainz tag for %s: %s", matched_name, tag)
        return LookupOutcome(tag=tag, latency_ms=latency_ms, hint=f"artist={matched_name}")
