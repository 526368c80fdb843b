"""
URL classification.

Decides which download chain a URL goes through and rewrites platform URLs
to the one canonical form the downloaders understand. This is the only
place embed URLs are turned into watch URLs; the acquisition engine trusts
canonical_url as-is.

classify() is pure and never raises. Anything unrecognized is a direct
file, and if it isn't actually downloadable the acquisition stage fails
with a typed error instead.
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable
from urllib.parse import urlsplit, urlunsplit

from .models import SourceCategory, SourceClassification

logger = logging.getLogger(__name__)


VIDEO_EXTENSIONS = (".mp4", ".webm", ".ogg", ".mov", ".avi", ".mkv", ".m4v")

STREAMING_WATCH_URL = "https://www.youtube.com/watch?v={video_id}"

_EMPTY_SPLIT = urlsplit("")

# Hosts must start the URL (after an optional scheme); lookalike domains and
# platform URLs nested in another site's query string are direct files.
_HOST_START = r"^(?:https?://)?"


@dataclass(frozen=True)
class _Matcher:
    """One URL shape: a pattern plus how to build the canonical URL from it."""
    name: str
    category: SourceCategory
    pattern: re.Pattern
    canonical: Callable[[re.Match], str]
    id_group: str = "id"


def _streaming_canonical(match: re.Match) -> str:
    return STREAMING_WATCH_URL.format(video_id=match.group("id"))


# Order matters: first match wins.
_MATCHERS: tuple[_Matcher, ...] = (
    _Matcher(
        name="short_form_video",
        category=SourceCategory.SHORT_FORM,
        pattern=re.compile(
            _HOST_START + r"(?:www\.|m\.)?tiktok\.com/@(?P<user>[\w.-]+)/video/(?P<id>\d+)",
            re.IGNORECASE,
        ),
        canonical=lambda m: f"https://www.tiktok.com/@{m.group('user')}/video/{m.group('id')}",
    ),
    _Matcher(
        name="short_form_short_link",
        category=SourceCategory.SHORT_FORM,
        pattern=re.compile(_HOST_START + r"(?P<host>vm|vt)\.tiktok\.com/(?P<id>\w+)", re.IGNORECASE),
        canonical=lambda m: f"https://{m.group('host').lower()}.tiktok.com/{m.group('id')}/",
    ),
    _Matcher(
        name="streaming_watch",
        category=SourceCategory.STREAMING,
        pattern=re.compile(
            _HOST_START + r"(?:www\.|m\.|music\.)?youtube\.com/"
            r"(?:watch\?(?:[^#]*?&)?v=|shorts/|live/)(?P<id>[\w-]+)",
            re.IGNORECASE,
        ),
        canonical=_streaming_canonical,
    ),
    _Matcher(
        name="streaming_short_link",
        category=SourceCategory.STREAMING,
        pattern=re.compile(_HOST_START + r"(?:www\.)?youtu\.be/(?P<id>[\w-]+)", re.IGNORECASE),
        canonical=_streaming_canonical,
    ),
    _Matcher(
        name="streaming_embed",
        category=SourceCategory.STREAMING,
        pattern=re.compile(
            _HOST_START + r"(?:www\.)?youtube(?:-nocookie)?\.com/embed/(?P<id>[\w-]+)",
            re.IGNORECASE,
        ),
        canonical=_streaming_canonical,
    ),
)


def classify(url: str) -> SourceClassification:
    """
    Classify a video URL.

    Platform URLs come back with a canonical URL stripped of tracking
    parameters; direct files keep their query string because signed
    download links depend on it.
    """
    raw = (url or "").strip()

    for matcher in _MATCHERS:
        match = matcher.pattern.search(raw)
        if match is None:
            continue

        classification = SourceClassification(
            category=matcher.category,
            original_url=url,
            canonical_url=matcher.canonical(match),
            embedded_id=match.group(matcher.id_group),
        )
        logger.debug(
            "Classified URL",
            extra={
                "matcher": matcher.name,
                "category": classification.category.value,
                "embedded_id": classification.embedded_id,
            }
        )
        return classification

    if not (has_video_extension(raw) or _has_http_scheme(raw)):
        # Still a direct file: acquisition reports the real problem.
        logger.debug("URL matched no pattern and has no http scheme", extra={"url": raw})

    return SourceClassification(
        category=SourceCategory.DIRECT_FILE,
        original_url=url,
        canonical_url=_strip_fragment(raw),
    )


def has_video_extension(url: str) -> bool:
    """True when the URL's path ends in a known video file extension."""
    path = _safe_split(url).path if url else ""
    return path.lower().endswith(VIDEO_EXTENSIONS)


def _has_http_scheme(url: str) -> bool:
    return url.lower().startswith(("http://", "https://"))


def _strip_fragment(url: str) -> str:
    parts = _safe_split(url)
    if parts is _EMPTY_SPLIT or not parts.fragment:
        return url
    return urlunsplit(parts._replace(fragment=""))


def _safe_split(url: str):
    # urlsplit rejects a few malformed inputs (e.g. bad IPv6 brackets)
    try:
        return urlsplit(url)
    except ValueError:
        return _EMPTY_SPLIT
