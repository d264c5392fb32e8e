from typing import List

from pydantic import BaseModel, ConfigDict, Field


class CaptionCue(BaseModel):
    """A single timed entry from a third-party caption document."""

    start_sec: float
    end_sec: float
    text: str


class EnergyBucket(BaseModel):
    """Normalized loudness of one fixed-width audio window."""

    start_sec: float
    end_sec: float
    energy: float


class TranscriptSegment(BaseModel):
    """Represents a time-aligned piece of the source transcript."""

    model_config = ConfigDict(frozen=True)

    id: str
    start_sec: float
    end_sec: float
    text: str
    energy: float = Field(..., ge=0.0, le=1.0)
    emotion: float = Field(..., ge=0.0, le=1.0)
    tags: List[str] = Field(default_factory=list)
