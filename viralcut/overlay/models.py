from typing import Optional

from pydantic import BaseModel


class NormalizedCaptionToken(BaseModel):
    """A caption word placed on the clip-relative timeline, ready for display grouping."""

    id: str
    text: str
    start_sec: float
    end_sec: float
    highlight: bool = False
    strong: bool = False
    emoji: Optional[str] = None
    group_id: Optional[int] = None
