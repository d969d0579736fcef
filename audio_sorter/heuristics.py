"""Filename heuristics used to guess the artist of a track.

Each rule is a small function over the bare file name so it can be tested on
its own; :func:`parse_artist` applies them in order and the first rule that
produces an artist wins.
"""

from __future__ import annotations

import re
from pathlib import PurePath
from typing import Optional, Tuple

from .models import UNKNOWN_ARTIST

# A bare space only ends a zero-padded track number ("01 Title", not "50 Cent").
# "01 Title" is a track number, "50 Cent - Title" is not: a bare space only counts after a zero-padded number.
TRACK_PREFIX_PATTERN = re.compile(r"^\s*(?:\d+\s*[.)_-]+|0\d\s)\s*")
SPACED_DASH = " - "
UNSPACED_DASH_PATTERN = re.compile(r"^(?P<artist>[^\s-][^-]{0,38}[^\s-])-(?=\S)")


def strip_extension(filename: str) -> str:
    name = PurePath(filename).name
    stem, dot, ext = name.rpartition(".")
    if dot and stem and " " not in ext and len(ext) <= 5:
        return stem
    return name


def leading_segment(text: str) -> Optional[Tuple[str, str]]:
    """Return ``(content, remainder)`` for a leading ``(...)`` or ``[...]`` segment."""
    match = LEADING_SEGMENT_PATTERN.match(text)
    if not match:
        return None
    content = match.group("paren")
    if content is None:
        content = match.group("bracket")
    return content.strip(), text[match.end():]


def artist_from_leading_segment(text: str) -> Tuple[Optional[str], str]:
    """Rule 1: a leading segment names the artist unless a dash follows it.

    A purely numeric segment is a track number; it is dropped and the remainder
    is returned for the following rules.
    """
    segment = leading_segment(text)
    if segment is None:
        return None, text
    content, remainder = segment
    if content.isdigit():
        return None, remainder.strip()
    if remainder.lstrip().startswith("-") or not content:
        return None, text
    return content, remainder


def strip_leading_noise(text: str) -> str:
    """Rule 2: drop leading bracketed segments and track-number prefixes."""
    current = text.strip()
    while True:
        segment = leading_segment(current)
        if segment is not None:
            current = segment[1].strip()
            continue
        match = TRACK_PREFIX_PATTERN.match(current)
        if match and match.end() < len(current):
            current = current[match.end():].strip()
            continue
        return current


def artist_before_spaced_dash(text: str) -> Optional[str]:
    """Rule 3: ``Artist - Title``."""
    if SPACED_DASH not in text:
        return None
    artist = text.split(SPACED_DASH, 1)[0].strip()
    return artist or None


def artist_before_unspaced_dash(text: str) -> Optional[str]:
    """Rule 4: ``Artist-Title`` where the artist is 2-40 chars without whitespace."""
    match = UNSPACED_DASH_PATTERN.match(text)
    if not match:
        return None
    artist = match.group("artist")
    if any(ch.isspace() for ch in artist):
        return None
    return artist


def parse_artist(filename: str) -> str:
    text = strip_extension(filename).strip()
    artist, text = artist_from_leading_segment(text)
    if artist:
        return artist
    text = strip_leading_noise(text)
    return artist_before_spaced_dash(text) or artist_before_unspaced_dash(text) or UNKNOWN_ARTIST
