import uuid
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from viralcut.ingestion.models import VideoMeta
from viralcut.intelligence.models import ViralClip
from viralcut.transcription.models import TranscriptSegment


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Stage(str, Enum):
    QUEUED = "queued"
    COLLECTING = "collecting"
    ANALYZING = "analyzing"
    RENDERING = "rendering"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (Stage.COMPLETED, Stage.FAILED)


class JobLog(BaseModel):
    at: datetime = Field(default_factory=utc_now)
    stage: Stage
    message: str


class JobInput(BaseModel):
    youtube_url: str
    video_id: str
    requested_cuts: Optional[int] = Field(default=None, ge=3, le=10)


class Job(BaseModel):
    """One source video moving through the pipeline. Logs are kept newest first."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    input: JobInput
    stage: Stage = Stage.QUEUED
    progress: int = Field(default=0, ge=0, le=100)
    logs: List[JobLog] = Field(default_factory=list)
    video: Optional[VideoMeta] = None
    transcript: List[TranscriptSegment] = Field(default_factory=list)
    clips: List[ViralClip] = Field(default_factory=list)
    error: Optional[str] = None


class ClipTextPatch(BaseModel):
    """User edit of a clip's copy. Omitted fields stay unchanged."""

    title: Optional[str] = Field(default=None, min_length=3, max_length=140)
    transcript_snippet: Optional[str] = Field(default=None, min_length=3, max_length=500)

    @field_validator("title", "transcript_snippet")
    @classmethod
    def strip_text(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        stripped = value.strip()
        if len(stripped) < 3:
            raise ValueError("must contain at least 3 non-blank characters")
        return stripped


class ClipFileAsset(BaseModel):
    file_path: Path
    file_name: str
    content_type: str = "video/mp4"
