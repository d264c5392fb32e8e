from pathlib import Path
from typing import List

from pydantic import BaseModel

from viralcut.media.encoder import describe_command


class CompositionPlan(BaseModel):
    """Everything needed to replay one clip render: inputs, artifacts and encoder arguments."""

    clip_id: str
    source_video_path: Path
    output_path: Path
    work_dir: Path
    frame_path: Path
    subtitle_path: Path
    title_path: Path
    freeze_offset_sec: float
    title_lines: List[str]
    filter_graph: str
    frame_args: List[str]
    composite_args: List[str]

    def describe(self) -> List[str]:
        """Human-readable plan: frame grab, composite command and the filter graph."""
        return [
            describe_command(["ffmpeg", *self.frame_args]),
            describe_command(["ffmpeg", *self.composite_args]),
            self.filter_graph,
        ]
