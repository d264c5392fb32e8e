from pathlib import Path
from typing import Callable, List, Optional, Sequence

from loguru import logger

from viralcut.config_manager import ConfigManager
from viralcut.editing.composition import (
    build_composite_args,
    build_filter_graph,
    build_frame_args,
    build_title_text,
    pick_freeze_frame_offset,
    resolve_font,
    wrap_title,
)
from viralcut.editing.models import CompositionPlan
from viralcut.intelligence.models import ViralClip
from viralcut.media.encoder import FFmpegRunner
from viralcut.overlay.captions import normalize_subtitle_timeline
from viralcut.overlay.subtitle import AssSubtitleBuilder
from viralcut.storage import JobStorage

LogFn = Callable[[str], None]


def clip_stream_url(job_id: str, clip_id: str) -> str:
    return f"/jobs/{job_id}/clips/{clip_id}/stream"


def clip_download_url(job_id: str, clip_id: str) -> str:
    return f"/jobs/{job_id}/clips/{clip_id}/download"


class ClipRenderer:
    """
    Renders selected clips into 1080x1920 mp4 files: a freeze-frame title banner on
    top and the live cut with karaoke captions below.
    """

    def __init__(self, config_manager: ConfigManager, storage: JobStorage, encoder: FFmpegRunner):
        self.cfg = config_manager.editing
        self.overlay_cfg = config_manager.overlay
        self.storage = storage
        self.encoder = encoder

        self.font_file = resolve_font(self.overlay_cfg.font_path, self.overlay_cfg.font_size)
        font_name = self.overlay_cfg.font_name if self.font_file else self.overlay_cfg.fallback_font_name
        width, height = self.cfg.output_resolution
        self.subtitles = AssSubtitleBuilder(
            self.overlay_cfg, font_name, play_res=(width, height - self.cfg.top_band_height)
        )

    def plan(self, job_id: str, source_video_path: Path, clip: ViralClip) -> CompositionPlan:
        subtitle_path = self.storage.clip_subtitle_path(job_id, clip.id)
        title_path = self.storage.clip_title_path(job_id, clip.id)
        frame_path = self.storage.clip_frame_path(job_id, clip.id)
        output_path = self.storage.clip_output_path(job_id, clip.id)

        tokens = normalize_subtitle_timeline(clip.subtitles, clip.start_sec, clip.duration_sec)
        offset = pick_freeze_frame_offset(tokens, clip.duration_sec)

        graph = build_filter_graph(
            clip.duration_sec,
            subtitle_path.name,
            title_path.name,
            self.font_file,
            resolution=self.cfg.output_resolution,
            top_height=self.cfg.top_band_height,
            accent_color=self.cfg.accent_color,
            title_color=self.overlay_cfg.text_color,
            title_font_size=self.cfg.title_font_size,
        )

        return CompositionPlan(
            clip_id=clip.id,
            source_video_path=source_video_path,
            output_path=output_path,
            work_dir=self.storage.paths(job_id).work_dir,
            frame_path=frame_path,
            subtitle_path=subtitle_path,
            title_path=title_path,
            freeze_offset_sec=offset,
            title_lines=wrap_title(build_title_text(clip)),
            filter_graph=graph,
            frame_args=build_frame_args(source_video_path, clip.start_sec + offset, frame_path),
            composite_args=build_composite_args(
                source_video_path,
                frame_path,
                clip.start_sec,
                clip.duration_sec,
                graph,
                output_path,
                preset=self.cfg.preset,
                crf=self.cfg.crf,
                audio_bitrate=self.cfg.audio_bitrate,
            ),
        )

    def render_clip(self, job_id: str, source_video_path: Path, clip: ViralClip) -> ViralClip:
        """
        Raises:
            ExternalToolFailure / ToolResolutionFailure: the encoder failed or is missing.
        """
        plan = self.plan(job_id, source_video_path, clip)
        # plan is recorded before any encoder call so failed renders can be replayed
        clip.ffmpeg_plan = plan.describe()

        self.subtitles.write(clip, plan.subtitle_path)
        plan.title_path.write_text("\n".join(plan.title_lines), encoding="utf-8")

        self.encoder.run(plan.frame_args, cwd=plan.work_dir)
        self.encoder.run(plan.composite_args, cwd=plan.work_dir)

        return clip.model_copy(
            update={
                "preview_url": clip_stream_url(job_id, clip.id),
                "download_url": clip_download_url(job_id, clip.id),
            }
        )

    def render_clips(
        self,
        job_id: str,
        source_video_path: Path,
        clips: Sequence[ViralClip],
        log: Optional[LogFn] = None,
    ) -> List[ViralClip]:
        self.storage.ensure(job_id)
        rendered: List[ViralClip] = []

        for clip in clips:
            if log:
                log(f"Rendering clip {clip.id} ({clip.duration_sec}s)")
            rendered.append(self.render_clip(job_id, source_video_path, clip))

        logger.success(f"Rendered {len(rendered)} clip(s) for job {job_id}")
        if log:
            log(f"Render finished: {len(rendered)} clip(s)")
        return rendered
