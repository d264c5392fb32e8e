import logging
import os
from contextlib import asynccontextmanager
from typing import List, Optional

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from loguru import logger
from pydantic import BaseModel, Field

from viralcut.config_manager import ConfigManager
from viralcut.errors import InvalidInput, JobNotFound, LimitReached, NoNewCandidates, NotReady, ViralCutError
from viralcut.intelligence.models import ViralClip
from viralcut.jobs.models import ClipTextPatch, Job
from viralcut.jobs.orchestrator import JobOrchestrator
from viralcut.utils.logger import setup_logger

# Load env vars
load_dotenv()


# Bridge loguru to standard logging
class InterceptHandler(logging.Handler):
    def emit(self, record):
        # Get corresponding Loguru level if it exists
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller from where originated the logged message
        frame, depth = logging.currentframe(), 2
        while frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def install_log_bridge() -> None:
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    logging.getLogger("uvicorn").handlers = [InterceptHandler()]
    logging.getLogger("uvicorn.access").handlers = [InterceptHandler()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    config = ConfigManager(os.getenv("VIRALCUT_CONFIG", "config/settings.yaml"))
    setup_logger(log_dir=config.paths.log_dir)
    install_log_bridge()

    orchestrator = JobOrchestrator(config)
    app.state.orchestrator = orchestrator
    logger.info(f"Job orchestrator ready with {orchestrator.concurrency} worker(s)")
    try:
        yield
    finally:
        orchestrator.shutdown(wait=False)
        logger.info("Job orchestrator stopped")


# --- App Configuration ---
app = FastAPI(title="ViralCut Backend", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()]
    return JSONResponse(status_code=400, content={"detail": "Invalid request payload.", "errors": errors})


def get_orchestrator(request: Request) -> JobOrchestrator:
    return request.app.state.orchestrator


# --- Data Models ---
class CreateJobRequest(BaseModel):
    youtube_url: str = Field(..., min_length=1)
    requested_cuts: Optional[int] = None


class ClipEditRequest(ClipTextPatch):
    clip_id: str = Field(..., min_length=1)


class JobResponse(BaseModel):
    job: Job


class JobListResponse(BaseModel):
    jobs: List[Job]


class ClipResponse(BaseModel):
    clip: ViralClip


# --- Routes ---
@app.post("/jobs", status_code=201, response_model=JobResponse)
def create_job(body: CreateJobRequest, orchestrator: JobOrchestrator = Depends(get_orchestrator)):
    logger.info(f"[jobs] URL received: {body.youtube_url}")
    try:
        job = orchestrator.submit(body.youtube_url, body.requested_cuts)
    except InvalidInput as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    logger.info(f"[jobs] Video id extracted: {job.input.video_id}")
    return JobResponse(job=job)


@app.get("/jobs", response_model=JobListResponse)
def list_jobs(orchestrator: JobOrchestrator = Depends(get_orchestrator)):
    return JobListResponse(jobs=orchestrator.list())


@app.get("/jobs/{job_id}", response_model=JobResponse)
def get_job(job_id: str, orchestrator: JobOrchestrator = Depends(get_orchestrator)):
    job = orchestrator.get(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found.")
    return JobResponse(job=job)


@app.patch("/jobs/{job_id}", response_model=ClipResponse)
def edit_clip(job_id: str, body: ClipEditRequest, orchestrator: JobOrchestrator = Depends(get_orchestrator)):
    patch = ClipTextPatch(title=body.title, transcript_snippet=body.transcript_snippet)
    try:
        clip = orchestrator.edit_clip_text(job_id, body.clip_id, patch)
    except InvalidInput as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    if clip is None:
        raise HTTPException(status_code=404, detail="Clip not found.")
    return ClipResponse(clip=clip)


@app.post("/jobs/{job_id}/regenerate", response_model=JobResponse)
def regenerate_job(job_id: str, orchestrator: JobOrchestrator = Depends(get_orchestrator)):
    try:
        job = orchestrator.regenerate(job_id)
    except JobNotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except NotReady as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except (LimitReached, NoNewCandidates) as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except ViralCutError as e:
        logger.error(f"Regeneration failed for job {job_id}: {e}")
        raise HTTPException(status_code=400, detail=str(e) or "Failed to generate new clips.") from e
    return JobResponse(job=job)


def _clip_file_response(job_id: str, clip_id: str, orchestrator: JobOrchestrator, disposition: str):
    asset = orchestrator.get_clip_file(job_id, clip_id)
    if asset is None:
        raise HTTPException(status_code=404, detail="Clip file not found.")
    return FileResponse(
        asset.file_path,
        media_type=asset.content_type,
        filename=asset.file_name,
        content_disposition_type=disposition,
        headers={"Cache-Control": "no-store"},
    )


@app.get("/jobs/{job_id}/clips/{clip_id}/stream")
def stream_clip(job_id: str, clip_id: str, orchestrator: JobOrchestrator = Depends(get_orchestrator)):
    return _clip_file_response(job_id, clip_id, orchestrator, "inline")


@app.get("/jobs/{job_id}/clips/{clip_id}/download")
def download_clip(job_id: str, clip_id: str, orchestrator: JobOrchestrator = Depends(get_orchestrator)):
    return _clip_file_response(job_id, clip_id, orchestrator, "attachment")


@app.get("/health")
async def health_check():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="127.0.0.1", port=8000)
