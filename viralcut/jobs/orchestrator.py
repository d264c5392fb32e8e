import threading
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from functools import partial
from typing import Any, Deque, Dict, List, Optional, Set, Union

from loguru import logger
from pydantic import ValidationError

from viralcut.config_manager import ConfigManager
from viralcut.errors import InvalidInput, JobNotFound, LimitReached, NoNewCandidates, NotReady
from viralcut.ingestion.youtube import parse_youtube_url
from viralcut.intelligence.models import ViralClip
from viralcut.jobs.models import ClipFileAsset, ClipTextPatch, Job, JobInput, JobLog, Stage, utc_now
from viralcut.pipeline import PipelineManager
from viralcut.utils.logger import job_logger
from viralcut.utils.text_utils import round_half_up

MAX_CLIPS_PER_JOB = 10
REGENERATE_STEP = 3
REGENERATE_MIN_TARGET = 6


class JobOrchestrator:
    """
    Owns the job table and a fixed-size worker pool.

    Jobs wait in a FIFO queue and start as soon as a worker is free. Every read hands out
    a deep copy taken under the lock, so callers never observe a half-applied transition.
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        pipeline: Optional[PipelineManager] = None,
        concurrency: Optional[int] = None,
    ):
        self.cfg = config_manager
        self.pipeline = pipeline or PipelineManager(config_manager)
        self.concurrency = max(1, concurrency or config_manager.queue.concurrency)
        self.default_cuts = config_manager.scoring.requested_cuts

        self._lock = threading.RLock()
        self._jobs: Dict[str, Job] = {}
        self._queue: Deque[str] = deque()
        self._active: Set[str] = set()
        self._regen_locks: Dict[str, threading.Lock] = {}
        self._closed = False
        self._executor = ThreadPoolExecutor(max_workers=self.concurrency, thread_name_prefix="viralcut-job")

    # --- state helpers (callers hold no lock) ---

    def _push_log(self, job: Job, stage: Stage, message: str) -> None:
        entry = JobLog(stage=stage, message=message)
        job.logs.insert(0, entry)
        job.updated_at = entry.at
        job_logger(job.id).info(f"[job:{job.id}] [{stage.value}] {message}")

    def _transition(self, job_id: str, stage: Stage, progress: int, message: str) -> None:
        with self._lock:
            job = self._jobs[job_id]
            job.stage = stage
            job.progress = progress
            self._push_log(job, stage, message)

    def _log(self, job_id: str, message: str) -> None:
        with self._lock:
            job = self._jobs[job_id]
            self._push_log(job, job.stage, message)

    def _fail(self, job_id: str, message: str) -> None:
        with self._lock:
            job = self._jobs[job_id]
            job.error = message
            job.stage = Stage.FAILED
            self._push_log(job, Stage.FAILED, f"Processing stopped: {message}")

    def _update(self, job_id: str, **fields: Any) -> None:
        with self._lock:
            job = self._jobs[job_id]
            for name, value in fields.items():
                setattr(job, name, value)
            job.updated_at = utc_now()

    # --- queue ---

    def _pump(self) -> None:
        with self._lock:
            while not self._closed and len(self._active) < self.concurrency and self._queue:
                job_id = self._queue.popleft()
                self._active.add(job_id)
                future = self._executor.submit(self._process_job, job_id)
                future.add_done_callback(partial(self._on_done, job_id))

    def _on_done(self, job_id: str, future: Future) -> None:
        error = future.exception()
        if error is not None:
            logger.opt(exception=error).error(f"Worker for job {job_id} crashed outside the job boundary")
        with self._lock:
            self._active.discard(job_id)
        self._pump()

    def _process_job(self, job_id: str) -> None:
        with self._lock:
            job_input = self._jobs[job_id].input.model_copy()
        log = partial(self._log, job_id)

        try:
            self._transition(job_id, Stage.COLLECTING, 6, f"URL received: {job_input.youtube_url}")

            parsed = parse_youtube_url(job_input.youtube_url)
            if parsed is None:
                raise InvalidInput("Invalid YouTube link. Send a valid public video URL.")
            if parsed.video_id != job_input.video_id:
                log(f"Video id mismatch (input={job_input.video_id}, parsed={parsed.video_id})")

            self._transition(job_id, Stage.COLLECTING, 10, f"Video id extracted: {parsed.video_id}")

            self._transition(job_id, Stage.COLLECTING, 16, "Starting source video download")
            downloaded = self.pipeline.download(job_id, parsed.canonical_url, parsed.video_id, log)
            self._update(job_id, video=downloaded.video)

            self._transition(job_id, Stage.COLLECTING, 44, "Download finished. Checking auto-generated captions")
            subtitle_path = self.pipeline.fetch_captions(job_id, parsed.canonical_url, log)

            self._transition(job_id, Stage.COLLECTING, 58, "Extracting audio signals and building the timed transcript")
            transcript = self.pipeline.transcribe(job_id, downloaded, subtitle_path, log)
            self._update(job_id, transcript=transcript)

            self._transition(job_id, Stage.ANALYZING, 74, "Detecting viral moments and scoring segments")
            wanted = job_input.requested_cuts or self.default_cuts
            suggested = self.pipeline.curate(downloaded.video, transcript, wanted)

            self._transition(job_id, Stage.RENDERING, 84, f"Rendering {len(suggested)} clips in 9:16")
            try:
                rendered = self.pipeline.render(job_id, downloaded.source_video_path, suggested, log)
            except Exception:
                # the renderer writes each plan onto its clip before calling the encoder
                self._update(job_id, clips=suggested)
                raise
            self._update(job_id, clips=rendered)
            self.pipeline.log_summary(job_id, rendered)

            self._transition(job_id, Stage.COMPLETED, 100, "Clips generated from the submitted video")
        except Exception as e:
            logger.exception(f"Job {job_id} failed: {e}")
            self._fail(job_id, str(e) or e.__class__.__name__)

    # --- public API ---

    def submit(self, url: str, requested_cuts: Optional[int] = None) -> Job:
        """
        Validates the link and queues a new job.

        Raises:
            InvalidInput: the link is not a recognizable YouTube video URL.
        """
        parsed = parse_youtube_url(url or "")
        if parsed is None:
            raise InvalidInput("Invalid link. Use a YouTube watch, shorts or youtu.be URL.")

        try:
            job_input = JobInput(
                youtube_url=parsed.canonical_url, video_id=parsed.video_id, requested_cuts=requested_cuts
            )
        except ValidationError as e:
            raise InvalidInput(f"Invalid job options: {e.errors()[0]['msg']}") from e

        job = Job(input=job_input, stage=Stage.QUEUED, progress=2)
        with self._lock:
            if self._closed:
                raise RuntimeError("Orchestrator is shut down")
            self._push_log(job, Stage.QUEUED, f"Job created for {parsed.canonical_url}")
            self._jobs[job.id] = job
            self._queue.append(job.id)
            snapshot = job.model_copy(deep=True)

        self._pump()
        return snapshot

    def list(self) -> List[Job]:
        with self._lock:
            jobs = sorted(self._jobs.values(), key=lambda j: j.created_at, reverse=True)
            return [job.model_copy(deep=True) for job in jobs]

    def get(self, job_id: str) -> Optional[Job]:
        with self._lock:
            job = self._jobs.get(job_id)
            return job.model_copy(deep=True) if job else None

    def edit_clip_text(
        self, job_id: str, clip_id: str, patch: Union[ClipTextPatch, Dict[str, Any]]
    ) -> Optional[ViralClip]:
        """
        Updates a clip's title and/or transcript snippet.

        Raises:
            InvalidInput: the patch does not validate.
        """
        if not isinstance(patch, ClipTextPatch):
            try:
                patch = ClipTextPatch.model_validate(patch)
            except ValidationError as e:
                raise InvalidInput(f"Invalid payload to update the clip: {e.errors()[0]['msg']}") from e

        changes = patch.model_dump(exclude_none=True)
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return None
            for index, clip in enumerate(job.clips):
                if clip.id == clip_id:
                    updated = clip.model_copy(update=changes)
                    job.clips[index] = updated
                    self._push_log(job, job.stage, f"Clip {clip_id} updated in the editor.")
                    return updated.model_copy(deep=True)
        return None

    def regenerate(self, job_id: str) -> Job:
        """
        Scores the transcript again and renders clips that start somewhere new.

        Raises:
            JobNotFound, NotReady, LimitReached, NoNewCandidates: the job cannot get more clips.
            ExternalToolFailure / ToolResolutionFailure: rendering the additions failed.
        """
        with self._lock:
            if job_id not in self._jobs:
                raise JobNotFound(f"Job {job_id} not found.")
            regen_lock = self._regen_locks.setdefault(job_id, threading.Lock())

        with regen_lock:
            with self._lock:
                job = self._jobs[job_id]
                if job_id in self._active or job_id in self._queue:
                    raise NotReady("This job is still being processed.")
                if job.video is None or not job.transcript:
                    raise NotReady("This job has no transcript to generate cuts from yet.")
                if len(job.clips) >= MAX_CLIPS_PER_JOB:
                    raise LimitReached(f"Maximum of {MAX_CLIPS_PER_JOB} clips already reached.")
                video = job.video.model_copy()
                transcript = list(job.transcript)
                existing = [clip.model_copy(deep=True) for clip in job.clips]

            source = self.pipeline.source_video(job_id)
            if source is None or not source.exists():
                raise NotReady("Source video file not found to generate new cuts.")

            target = min(MAX_CLIPS_PER_JOB, max(len(existing) + REGENERATE_STEP, REGENERATE_MIN_TARGET))
            generated = self.pipeline.curate(video, transcript, target)

            taken = {round_half_up(clip.start_sec) for clip in existing}
            fresh = [clip for clip in generated if round_half_up(clip.start_sec) not in taken]
            additions = [
                clip.model_copy(update={"id": f"{clip.id}-extra-{len(existing) + index + 1}"})
                for index, clip in enumerate(fresh[: MAX_CLIPS_PER_JOB - len(existing)])
            ]
            if not additions:
                raise NoNewCandidates("No new relevant clips to add for this video.")

            self._transition(job_id, Stage.ANALYZING, 64, "Generating new viral suggestions")
            self._transition(job_id, Stage.RENDERING, 86, f"Rendering {len(additions)} new clips")
            try:
                rendered = self.pipeline.render(job_id, source, additions, partial(self._log, job_id))
            except Exception as e:
                logger.exception(f"Regeneration for job {job_id} failed: {e}")
                # additions stay off the clip list so a retry can render them again
                for clip in additions:
                    for line in clip.ffmpeg_plan:
                        self._log(job_id, f"Render plan for {clip.id}: {line}")
                self._fail(job_id, str(e) or e.__class__.__name__)
                raise

            with self._lock:
                job = self._jobs[job_id]
                job.clips = (job.clips + rendered)[:MAX_CLIPS_PER_JOB]
                job.error = None
            self._transition(job_id, Stage.COMPLETED, 100, "New clips added")
            self.pipeline.log_summary(job_id, rendered)

            with self._lock:
                return self._jobs[job_id].model_copy(deep=True)

    def get_clip_file(self, job_id: str, clip_id: str) -> Optional[ClipFileAsset]:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.video is None:
                return None
            if not any(clip.id == clip_id for clip in job.clips):
                return None
            video_id = job.video.video_id

        path = self.pipeline.clip_file(job_id, clip_id)
        if not path.is_file():
            return None
        return ClipFileAsset(file_path=path, file_name=f"{video_id}-{clip_id}.mp4")

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            self._closed = True
            dropped = len(self._queue)
            self._queue.clear()
        if dropped:
            logger.warning(f"Shutting down with {dropped} queued job(s) not started")
        self._executor.shutdown(wait=wait)
