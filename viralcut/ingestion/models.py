from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field


class VideoMeta(BaseModel):
    """Source video metadata reported by yt-dlp."""

    video_id: str
    canonical_url: str
    title: str
    channel_name: str
    duration_sec: float
    thumbnail_url: str
    published_at: Optional[str] = None


class DownloadedVideo(BaseModel):
    video: VideoMeta
    source_video_path: Path
    keywords: List[str] = Field(default_factory=list)
    description: str = ""
