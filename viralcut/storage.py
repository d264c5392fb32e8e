from pathlib import Path
from typing import Optional

from pydantic import BaseModel

VIDEO_EXTENSIONS = {".mp4", ".mov", ".mkv", ".webm", ".m4v"}


class JobStoragePaths(BaseModel):
    job_dir: Path
    clips_dir: Path
    work_dir: Path
    source_template: str


class JobStorage:
    """
    Per-job directory layout: the downloaded source at the job root, intermediate
    artifacts under work/, finished clips under clips/.
    """

    def __init__(self, root: str):
        self.root = Path(root)

    def paths(self, job_id: str) -> JobStoragePaths:
        job_dir = self.root / job_id
        return JobStoragePaths(
            job_dir=job_dir,
            clips_dir=job_dir / "clips",
            work_dir=job_dir / "work",
            source_template=str(job_dir / "source.%(ext)s"),
        )

    def ensure(self, job_id: str) -> JobStoragePaths:
        paths = self.paths(job_id)
        paths.clips_dir.mkdir(parents=True, exist_ok=True)
        paths.work_dir.mkdir(parents=True, exist_ok=True)
        return paths

    def find_downloaded_source_video(self, job_id: str) -> Optional[Path]:
        job_dir = self.paths(job_id).job_dir
        if not job_dir.is_dir():
            return None

        for entry in sorted(job_dir.iterdir()):
            if entry.name.startswith("source.") and entry.suffix.lower() in VIDEO_EXTENSIONS:
                return entry
        return None

    def find_caption_files(self, job_id: str):
        job_dir = self.paths(job_id).job_dir
        if not job_dir.is_dir():
            return []
        return [f for f in job_dir.iterdir() if f.name.startswith("source.") and f.name.endswith(".vtt")]

    def clip_output_path(self, job_id: str, clip_id: str) -> Path:
        return self.paths(job_id).clips_dir / f"{clip_id}.mp4"

    def clip_subtitle_path(self, job_id: str, clip_id: str) -> Path:
        return self.paths(job_id).work_dir / f"{clip_id}.ass"

    def clip_frame_path(self, job_id: str, clip_id: str) -> Path:
        return self.paths(job_id).work_dir / f"{clip_id}-freeze.jpg"

    def clip_title_path(self, job_id: str, clip_id: str) -> Path:
        return self.paths(job_id).work_dir / f"{clip_id}-title.txt"

    def audio_pcm_path(self, job_id: str) -> Path:
        return self.paths(job_id).work_dir / "audio-16k-mono.pcm"
