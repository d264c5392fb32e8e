import argparse
import os
import sys
import time

from dotenv import load_dotenv

from viralcut.config_manager import ConfigManager
from viralcut.errors import InvalidInput
from viralcut.jobs.models import Job
from viralcut.jobs.orchestrator import JobOrchestrator
from viralcut.utils.logger import setup_logger


def print_clip_table(job: Job) -> None:
    print(f"\nJob {job.id}: {job.stage.value} ({job.progress}%)")
    if job.error:
        print(f"Error: {job.error}")
    for clip in job.clips:
        print(
            f"  {clip.id:<28} {clip.start_sec:7.1f}s -> {clip.end_sec:7.1f}s  "
            f"score={clip.score:<3} angle={clip.angle.value:<12} {clip.title}"
        )


def wait_for(orchestrator: JobOrchestrator, job_id: str, poll_interval: float = 1.0) -> Job:
    last_progress = -1
    while True:
        job = orchestrator.get(job_id)
        if job is None:
            raise RuntimeError(f"Job {job_id} disappeared")
        if job.progress != last_progress and job.logs:
            print(f"[{job.progress:3d}%] {job.logs[0].message}")
            last_progress = job.progress
        if job.stage.is_terminal:
            return job
        time.sleep(poll_interval)


def main():
    parser = argparse.ArgumentParser(description="ViralCut CLI")
    parser.add_argument("--config", default="config/settings.yaml", help="Path to settings.yaml")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # Process Command
    process_parser = subparsers.add_parser("process", help="Generate vertical clips from a YouTube URL")
    process_parser.add_argument("url", help="YouTube watch, shorts or youtu.be URL")
    process_parser.add_argument("--cuts", type=int, help="Number of clips to suggest (3-10)")
    process_parser.add_argument("--concurrency", type=int, help="Worker pool size")

    # Serve Command
    serve_parser = subparsers.add_parser("serve", help="Run the job API")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)

    args = parser.parse_args()
    load_dotenv()

    if args.command == "serve":
        import uvicorn

        os.environ.setdefault("VIRALCUT_CONFIG", args.config)

        uvicorn.run("backend.server:app", host=args.host, port=args.port)
        return

    # Setup
    try:
        config = ConfigManager(args.config)
    except Exception as e:
        print(f"Config Error: {e}")
        sys.exit(1)

    setup_logger(log_dir=config.paths.log_dir)

    orchestrator = JobOrchestrator(config, concurrency=args.concurrency)
    try:
        try:
            job = orchestrator.submit(args.url, args.cuts)
        except InvalidInput as e:
            print(f"Error: {e}")
            sys.exit(1)

        final = wait_for(orchestrator, job.id)
        print_clip_table(final)
        if final.error:
            sys.exit(1)
    finally:
        orchestrator.shutdown(wait=True)


if __name__ == "__main__":
    main()
