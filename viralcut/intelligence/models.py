from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class Angle(str, Enum):
    """Dominant signal used to characterize a clip. Order is the tie-break priority."""

    HOOK = "hook"
    CURIOSITY = "curiosity"
    CONTROVERSY = "controversy"
    HUMOR = "humor"
    STORYTELLING = "storytelling"
    VALUE = "value"


class ViralSignal(BaseModel):
    hook: float = Field(..., ge=0, le=100)
    curiosity: float = Field(..., ge=0, le=100)
    controversy: float = Field(..., ge=0, le=100)
    humor: float = Field(..., ge=0, le=100)
    storytelling: float = Field(..., ge=0, le=100)
    value: float = Field(..., ge=0, le=100)
    emotion: float = Field(..., ge=0, le=100)

    def for_angle(self, angle: Angle) -> float:
        return getattr(self, angle.value)


class SubtitleToken(BaseModel):
    """Raw word timing; the unit (s/ms) and frame (clip/source) are resolved downstream."""

    time: float
    text: str
    highlight: bool = False
    emoji: Optional[str] = None


class RenderSettings(BaseModel):
    aspect_ratio: str = "9:16"
    zoom_mode: str = "face-smart"
    camera_style: str = "dynamic-cut"
    captions_style: str = "reels-bold"
    headline: Optional[str] = None
    show_progress_bar: bool = True


class ViralClip(BaseModel):
    """A selected window of the source with its supporting copy and render outputs."""

    id: str
    title: str
    score: int
    angle: Angle
    start_sec: float
    end_sec: float
    duration_sec: float
    hook_line: str
    transcript_snippet: str
    hashtags: List[str] = Field(default_factory=list)
    suggested_description: str = ""
    subtitles: List[SubtitleToken] = Field(default_factory=list)
    ffmpeg_plan: List[str] = Field(default_factory=list)
    preview_url: str = ""
    download_url: str = ""
    render: RenderSettings = Field(default_factory=RenderSettings)
    signals: ViralSignal


class ScoredCandidate(BaseModel):
    segment_id: str
    score: int
    signals: ViralSignal
