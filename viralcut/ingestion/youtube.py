import re
from typing import Optional
from urllib.parse import parse_qs, urlparse

from pydantic import BaseModel

VIDEO_ID_REGEX = re.compile(r"^[A-Za-z0-9_-]{11}$")
PATH_ID_REGEX = re.compile(r"/(shorts|embed|live)/([A-Za-z0-9_-]{11})")

YOUTUBE_HOSTS = {
    "youtube.com",
    "m.youtube.com",
    "music.youtube.com",
    "youtu.be",
    "youtube-nocookie.com",
}


class ParsedYouTubeUrl(BaseModel):
    video_id: str
    canonical_url: str


def _is_valid_video_id(value: Optional[str]) -> bool:
    return bool(value and VIDEO_ID_REGEX.match(value))


def parse_youtube_url(raw_url: str) -> Optional[ParsedYouTubeUrl]:
    """
    Validates a watch/shorts/embed/live/youtu.be link and returns its canonical form.
    Returns None for anything that does not resolve to an 11-char video id.
    """
    try:
        url = urlparse(raw_url.strip())
    except (AttributeError, ValueError):
        return None

    if url.scheme not in ("http", "https") or not url.hostname:
        return None

    host = url.hostname.lower()
    if host.startswith("www."):
        host = host[4:]
    if host not in YOUTUBE_HOSTS:
        return None

    video_id: Optional[str] = None
    if host == "youtu.be":
        parts = [p for p in url.path.split("/") if p]
        video_id = parts[0] if parts else None
    else:
        query_ids = parse_qs(url.query).get("v")
        if query_ids:
            video_id = query_ids[0]
        else:
            match = PATH_ID_REGEX.search(url.path)
            video_id = match.group(2) if match else None

    if not _is_valid_video_id(video_id):
        return None

    return ParsedYouTubeUrl(
        video_id=video_id,
        canonical_url=f"https://www.youtube.com/watch?v={video_id}",
    )
