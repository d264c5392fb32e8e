import json
import math
import re
import subprocess
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from viralcut.config_manager import ConfigManager, DownloaderConfig, PathsConfig
from viralcut.errors import DataInsufficiency, ExternalToolFailure, ToolResolutionFailure
from viralcut.ingestion.models import DownloadedVideo, VideoMeta
from viralcut.ingestion.resolver import YtDlpResolver, install_instructions
from viralcut.storage import JobStorage

LogFn = Callable[[str], None]

MISSING_MODULE_PATTERN = re.compile(r"No module named '?yt_dlp|ModuleNotFoundError", re.IGNORECASE)


def parse_json_from_output(raw: str) -> Dict[str, Any]:
    first_brace = raw.find("{")
    if first_brace < 0:
        raise ExternalToolFailure("Could not read the metadata returned by yt-dlp.", raw[-2000:])
    try:
        return json.loads(raw[first_brace:])
    except ValueError as e:
        raise ExternalToolFailure("Failed to parse yt-dlp JSON metadata.", str(e)) from e


def _caption_rank(name: str) -> int:
    if ".pt" in name:
        return 0
    if ".en" in name:
        return 1
    return 2


class VideoDownloader:
    """
    Wrapper around the yt-dlp executable.
    Handles metadata extraction, media download and auto-caption retrieval.
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        storage: JobStorage,
        resolver: Optional[YtDlpResolver] = None,
    ):
        self.cfg: DownloaderConfig = config_manager.downloader
        self.paths: PathsConfig = config_manager.paths
        self.storage = storage
        self.resolver = resolver or YtDlpResolver(
            base_dir=self.paths.base_dir,
            python_bin=self.cfg.python_bin,
            extractor_args=self.cfg.extractor_args,
        )

    def _auth_args(self) -> List[str]:
        args = ["--ignore-config"]
        if self.cfg.cookies_file:
            cookies = Path(self.paths.base_dir) / self.cfg.cookies_file
            if cookies.exists():
                args.extend(["--cookies", str(cookies.resolve())])
            else:
                logger.warning(f"Cookies file not found at {cookies}. Continuing without cookies.")
        return args

    def _run_once(self, args: List[str], cwd: Path) -> subprocess.CompletedProcess:
        runner = self.resolver.get_runner()
        argv = runner.argv([*self._auth_args(), *args])
        logger.debug(f"yt-dlp: {' '.join(argv)}")
        try:
            result = subprocess.run(argv, cwd=str(cwd), capture_output=True, text=True)
        except OSError as e:
            self.resolver.reset()
            raise ToolResolutionFailure(f"Could not execute {runner.command}: {e}") from e

        if result.returncode != 0:
            detail = "\n".join(part for part in (result.stderr.strip(), result.stdout.strip()) if part)
            if MISSING_MODULE_PATTERN.search(detail):
                self.resolver.reset()
                raise ToolResolutionFailure(
                    f"yt_dlp module not found in the selected Python.\n{install_instructions(False)}"
                )
            raise ExternalToolFailure(f"yt-dlp failed: {detail or 'unknown error'}", detail)
        return result

    def _run(self, args: List[str], cwd: Path, log: Optional[LogFn] = None) -> subprocess.CompletedProcess:
        attempts = max(1, self.cfg.retries)
        for attempt in range(1, attempts):
            try:
                return self._run_once(args, cwd)
            except ExternalToolFailure as e:
                message = f"yt-dlp attempt {attempt}/{attempts} failed, retrying. Reason: {e}"
                logger.warning(message)
                if log:
                    log(message)
        # the final attempt propagates its own failure
        return self._run_once(args, cwd)

    def fetch_info(self, url: str, job_id: str, log: Optional[LogFn] = None) -> Dict[str, Any]:
        job_dir = self.storage.ensure(job_id).job_dir
        result = self._run(
            ["--dump-single-json", "--skip-download", "--no-playlist", "--no-warnings", url],
            job_dir,
            log,
        )
        return parse_json_from_output(result.stdout)

    def download(self, job_id: str, url: str, video_id: str, log: Optional[LogFn] = None) -> DownloadedVideo:
        """
        Fetches metadata, then downloads the media to <job>/source.<ext>.

        Raises:
            DataInsufficiency: the reported duration is missing or shorter than the minimum.
            ExternalToolFailure: yt-dlp failed or produced no file.
        """
        paths = self.storage.ensure(job_id)
        if log:
            log(f"Starting yt-dlp download for video {video_id}")

        info = self.fetch_info(url, job_id, log)

        download_args = [
            "--no-playlist",
            "--no-warnings",
            "--newline",
            "-f",
            self.cfg.video_format,
            "--output",
            paths.source_template,
            "--print",
            "after_move:filepath",
            url,
        ]
        result = self._run(download_args, paths.job_dir, log)

        source_path: Optional[Path] = None
        for line in result.stdout.splitlines():
            candidate = line.strip()
            if candidate and Path(candidate).name.startswith("source."):
                source_path = Path(candidate)
                break

        if source_path is None:
            source_path = self.storage.find_downloaded_source_video(job_id)

        if source_path is None:
            raise ExternalToolFailure("yt-dlp reported success but no local source file was found.")

        if log:
            log(f"Download finished: {source_path}")

        try:
            duration = float(info.get("duration") or 0)
        except (TypeError, ValueError):
            duration = 0.0
        if not math.isfinite(duration) or duration < self.cfg.min_duration_sec:
            raise DataInsufficiency("Could not determine a usable video duration to generate cuts.")

        title = (info.get("title") or "").strip() or f"Video {video_id}"
        channel = (info.get("uploader") or "").strip() or "YouTube channel"
        tags = info.get("tags")

        return DownloadedVideo(
            source_video_path=source_path,
            video=VideoMeta(
                video_id=video_id,
                canonical_url=info.get("webpage_url") or f"https://www.youtube.com/watch?v={video_id}",
                title=title,
                channel_name=channel,
                duration_sec=duration,
                thumbnail_url=info.get("thumbnail") or f"https://i.ytimg.com/vi/{video_id}/hqdefault.jpg",
                published_at=info.get("upload_date"),
            ),
            keywords=list(tags[: self.cfg.max_tags]) if isinstance(tags, list) else [],
            description=(info.get("description") or "")[: self.cfg.max_description_chars],
        )

    def download_auto_subtitles(self, job_id: str, url: str, log: Optional[LogFn] = None) -> Optional[Path]:
        """Writes auto-generated VTT captions next to the source. Never raises for tool failures."""
        paths = self.storage.ensure(job_id)
        args = [
            "--skip-download",
            "--no-warnings",
            "--ignore-errors",
            "--no-playlist",
            "--write-auto-subs",
            "--sub-langs",
            self.cfg.subtitle_langs,
            "--sub-format",
            "vtt",
            "--output",
            paths.source_template,
            url,
        ]

        try:
            self._run(args, paths.job_dir, log)
        except ExternalToolFailure as e:
            message = f"Auto captions unavailable right now ({e}). Continuing with the energy fallback."
            logger.warning(message)
            if log:
                log(message)
            return None

        candidates = sorted(self.storage.find_caption_files(job_id), key=lambda f: (_caption_rank(f.name), f.name))
        if not candidates:
            if log:
                log("No auto-generated captions available for this video")
            return None

        if log:
            log(f"Auto captions found: {candidates[0].name}")
        return candidates[0]
