from pathlib import Path
from typing import Callable, List, Optional

from loguru import logger

from viralcut.config_manager import ConfigManager
from viralcut.editing.compositor import ClipRenderer
from viralcut.errors import DataInsufficiency
from viralcut.ingestion.downloader import VideoDownloader
from viralcut.ingestion.models import DownloadedVideo, VideoMeta
from viralcut.intelligence.curator import ContentCurator
from viralcut.intelligence.models import ViralClip
from viralcut.media.encoder import FFmpegRunner
from viralcut.storage import JobStorage
from viralcut.transcription.engine import TranscriptExtractor
from viralcut.transcription.models import TranscriptSegment

LogFn = Callable[[str], None]


class PipelineManager:
    """
    Per-job stages: collect (download + captions), transcribe, curate and render.
    Stage order and progress reporting belong to the orchestrator; each method here
    only does its own work and raises on fatal problems.
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        storage: Optional[JobStorage] = None,
        encoder: Optional[FFmpegRunner] = None,
        downloader: Optional[VideoDownloader] = None,
        extractor: Optional[TranscriptExtractor] = None,
        curator: Optional[ContentCurator] = None,
        renderer: Optional[ClipRenderer] = None,
    ):
        self.cfg = config_manager
        self.storage = storage or JobStorage(str(Path(self.cfg.paths.base_dir) / self.cfg.paths.storage_dir))
        self.encoder = encoder or FFmpegRunner(self.cfg.editing.ffmpeg_bin)
        self.downloader = downloader or VideoDownloader(self.cfg, self.storage)
        self.extractor = extractor or TranscriptExtractor(self.cfg, self.storage, self.encoder)
        self.curator = curator or ContentCurator(self.cfg)
        self._renderer = renderer

    @property
    def renderer(self) -> ClipRenderer:
        # built on first use so the font probe only runs for jobs that reach rendering
        if self._renderer is None:
            self._renderer = ClipRenderer(self.cfg, self.storage, self.encoder)
        return self._renderer

    def download(self, job_id: str, url: str, video_id: str, log: Optional[LogFn] = None) -> DownloadedVideo:
        self.storage.ensure(job_id)
        return self.downloader.download(job_id, url, video_id, log)

    def fetch_captions(self, job_id: str, url: str, log: Optional[LogFn] = None) -> Optional[Path]:
        return self.downloader.download_auto_subtitles(job_id, url, log)

    def transcribe(
        self,
        job_id: str,
        downloaded: DownloadedVideo,
        subtitle_path: Optional[Path],
        log: Optional[LogFn] = None,
    ) -> List[TranscriptSegment]:
        segments = self.extractor.extract(
            job_id,
            downloaded.video,
            downloaded.source_video_path,
            subtitle_path,
            keyword_hints=downloaded.keywords,
            description_hint=downloaded.description,
            log=log,
        )
        if not segments:
            raise DataInsufficiency("Could not build transcript segments for this video.")
        return segments

    def curate(
        self, video: VideoMeta, segments: List[TranscriptSegment], requested_cuts: Optional[int] = None
    ) -> List[ViralClip]:
        clips = self.curator.curate(video.title, segments, video.duration_sec, requested_cuts)
        if not clips:
            raise DataInsufficiency("No clip could be suggested for this video.")
        return clips

    def render(
        self, job_id: str, source_video_path: Path, clips: List[ViralClip], log: Optional[LogFn] = None
    ) -> List[ViralClip]:
        return self.renderer.render_clips(job_id, source_video_path, clips, log)

    def source_video(self, job_id: str) -> Optional[Path]:
        return self.storage.find_downloaded_source_video(job_id)

    def clip_file(self, job_id: str, clip_id: str) -> Path:
        return self.storage.clip_output_path(job_id, clip_id)

    def log_summary(self, job_id: str, clips: List[ViralClip]) -> None:
        for clip in clips:
            logger.info(
                f"[job:{job_id}] {clip.id} {clip.start_sec:.1f}-{clip.end_sec:.1f}s "
                f"score={clip.score} angle={clip.angle.value}"
            )
