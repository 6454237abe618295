"""
YouTube as the external video host.

Vlogs only store a reference to a video that already lives on YouTube. With
``YOUTUBE_API_KEY`` set, thumbnail and duration come from the Data API;
without it the caller's values (or the standard thumbnail URL) are used.
"""
from __future__ import annotations

import os
import re
import logging
from dataclasses import dataclass
from urllib.parse import urlparse, parse_qs

import httpx

from .errors import ValidationError

logger = logging.getLogger(__name__)

YT_VIDEOS_URL = "https://www.googleapis.com/youtube/v3/videos"
VIDEO_ID_RE = re.compile(r"^[A-Za-z0-9_-]{11}$")
ISO_DURATION_RE = re.compile(r"^P(?:(\d+)D)?T?(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?$")
UNKNOWN_DURATION = "0:00"


@dataclass
class VideoDetails:
    youtube_id: str
    thumbnail_url: str
    duration: str
    title: str | None = None


def parse_youtube_id(ref: str) -> str:
    ref = ref.strip()
    if VIDEO_ID_RE.match(ref):
        return ref
    parsed = urlparse(ref if "://" in ref else f"https://{ref}")
    host = (parsed.hostname or "").lower()
    candidate = None
    if host.endswith("youtu.be"):
        candidate = parsed.path.lstrip("/").split("/")[0]
    elif host.endswith("youtube.com"):
        if parsed.path == "/watch":
            candidate = parse_qs(parsed.query).get("v", [None])[0]
        else:
            parts = [p for p in parsed.path.split("/") if p]
            if len(parts) >= 2 and parts[0] in ("shorts", "embed", "live", "v"):
                candidate = parts[1]
    if candidate and VIDEO_ID_RE.match(candidate):
        return candidate
    raise ValidationError("Not a YouTube video link")


def default_thumbnail(video_id: str) -> str:
    return f"https://i.ytimg.com/vi/{video_id}/hqdefault.jpg"


def format_duration(iso: str) -> str:
    """``PT1H2M5S`` -> ``1:02:05``, ``PT10M30S`` -> ``10:30``."""
    match = ISO_DURATION_RE.match(iso or "")
    if not match:
        return UNKNOWN_DURATION
    days, hours, minutes, seconds = (int(g or 0) for g in match.groups())
    hours += days * 24
    if hours:
        return f"{hours}:{minutes:02d}:{seconds:02d}"
    return f"{minutes}:{seconds:02d}"


def _client(transport: httpx.AsyncBaseTransport | None = None) -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=15.0, transport=transport)


async def fetch_video_details(
    video_id: str,
    api_key: str,
    transport: httpx.AsyncBaseTransport | None = None,
) -> VideoDetails:
    params = {
        "part": "snippet,contentDetails",
        "id": video_id,
        "key": api_key,
    }
    async with _client(transport) as client:
        try:
            resp = await client.get(YT_VIDEOS_URL, params=params)
        except (httpx.TransportError, httpx.TimeoutException):
            # single retry
            resp = await client.get(YT_VIDEOS_URL, params=params)
    if resp.status_code >= 400:
        raise RuntimeError(f"YouTube videos error: {resp.status_code}")
    items = resp.json().get("items", [])
    if not items:
        raise LookupError("video not found")
    item = items[0]
    snippet = item.get("snippet", {})
    thumbnails = snippet.get("thumbnails", {})
    thumb = (
        thumbnails.get("high")
        or thumbnails.get("medium")
        or thumbnails.get("default")
        or {}
    ).get("url") or default_thumbnail(video_id)
    return VideoDetails(
        youtube_id=video_id,
        thumbnail_url=thumb,
        duration=format_duration(item.get("contentDetails", {}).get("duration", "")),
        title=snippet.get("title"),
    )


async def resolve_media(
    ref: str,
    thumbnail_url: str | None = None,
    duration: str | None = None,
    api_key: str | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> VideoDetails:
    """Turn an uploader-supplied link into the media reference stored on a vlog."""
    video_id = parse_youtube_id(ref)
    api_key = api_key if api_key is not None else os.getenv("YOUTUBE_API_KEY", "")
    if api_key:
        try:
            return await fetch_video_details(video_id, api_key, transport=transport)
        except LookupError:
            raise ValidationError("YouTube video not found")
        except (RuntimeError, httpx.HTTPError) as e:
            logger.warning({'msg': 'youtube_lookup_failed', 'youtube_id': video_id, 'error': str(e)})
    return VideoDetails(
        youtube_id=video_id,
        thumbnail_url=thumbnail_url or default_thumbnail(video_id),
        duration=duration or UNKNOWN_DURATION,
    )
