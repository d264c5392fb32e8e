import os
from pathlib import Path
from typing import Optional, Tuple

import yaml
from pydantic import BaseModel, Field


class PathsConfig(BaseModel):
    base_dir: str = Field(default=".")
    storage_dir: str = Field(default="storage/jobs")
    log_dir: str = Field(default="logs")


class DownloaderConfig(BaseModel):
    python_bin: Optional[str] = Field(default_factory=lambda: os.getenv("YTDLP_PYTHON"))
    cookies_file: Optional[str] = Field(default_factory=lambda: os.getenv("YTDLP_COOKIES_FILE"))
    video_format: str = Field(default="18/best[ext=mp4]/best")
    subtitle_langs: str = Field(default="pt.*,en.*,es.*")
    extractor_args: Optional[str] = Field(default="youtube:player_client=android")
    retries: int = Field(default=3)
    min_duration_sec: float = Field(default=5.0)
    max_tags: int = Field(default=20)
    max_description_chars: int = Field(default=2000)


class TranscriptionConfig(BaseModel):
    sample_rate: int = Field(default=16000)
    energy_window_sec: float = Field(default=1.0)
    fallback_window_sec: float = Field(default=8.0)
    min_cues: int = Field(default=5)
    keyword_count: int = Field(default=8)


class ScoringConfig(BaseModel):
    requested_cuts: int = Field(default=6)


class OverlayConfig(BaseModel):
    font_path: str = Field(default="assets/fonts/Montserrat-ExtraBold.ttf")
    font_name: str = Field(default="Montserrat ExtraBold")
    fallback_font_name: str = Field(default="Arial")
    font_size: int = Field(default=78)
    text_color: str = Field(default="#FFFFFF")
    highlight_color: str = Field(default="#FFE500")
    dim_color: str = Field(default="#D8D8D8")


class EditingConfig(BaseModel):
    output_resolution: Tuple[int, int] = Field(default=(1080, 1920))
    top_band_height: int = Field(default=760)
    accent_color: str = Field(default="#FFE500")
    title_font_size: int = Field(default=64)
    ffmpeg_bin: Optional[str] = Field(default_factory=lambda: os.getenv("FFMPEG_BIN"))
    preset: str = Field(default="veryfast")
    crf: int = Field(default=22)
    audio_bitrate: str = Field(default="128k")


class QueueConfig(BaseModel):
    concurrency: int = Field(default=2)


class AppConfig(BaseModel):
    paths: PathsConfig = Field(default_factory=PathsConfig)
    downloader: DownloaderConfig = Field(default_factory=DownloaderConfig)
    transcription: TranscriptionConfig = Field(default_factory=TranscriptionConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    overlay: OverlayConfig = Field(default_factory=OverlayConfig)
    editing: EditingConfig = Field(default_factory=EditingConfig)
    queue: QueueConfig = Field(default_factory=QueueConfig)


class ConfigManager:
    """
    Manages loading and validation of application configuration.
    """
    def __init__(self, config_path: str = "config/settings.yaml"):
        self.config_path = Path(config_path)
        self.config: AppConfig = self._load_config()

    def _load_config(self) -> AppConfig:
        if not self.config_path.exists():
            raise FileNotFoundError(f"Configuration file not found at {self.config_path}")

        with open(self.config_path, "r") as f:
            raw_config = yaml.safe_load(f) or {}

        return AppConfig(**raw_config)

    @property
    def paths(self) -> PathsConfig:
        return self.config.paths

    @property
    def downloader(self) -> DownloaderConfig:
        return self.config.downloader

    @property
    def transcription(self) -> TranscriptionConfig:
        return self.config.transcription

    @property
    def scoring(self) -> ScoringConfig:
        return self.config.scoring

    @property
    def overlay(self) -> OverlayConfig:
        return self.config.overlay

    @property
    def editing(self) -> EditingConfig:
        return self.config.editing

    @property
    def queue(self) -> QueueConfig:
        return self.config.queue
