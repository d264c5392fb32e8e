import json
import sys

import pytest
from loguru import logger

from viralcut.utils.logger import job_logger, setup_logger


@pytest.fixture
def log_dir(tmp_path):
    yield tmp_path / "logs"
    # closes (and flushes) the file sinks, then restores the default console sink
    logger.remove()
    logger.add(sys.stderr)


def test_setup_creates_sinks(log_dir):
    setup_logger(log_dir=str(log_dir))
    logger.error("render failed")
    logger.remove()

    assert (log_dir / "viralcut.log").exists()
    assert "render failed" in (log_dir / "error.log").read_text()


def test_job_events_are_serialized(log_dir):
    setup_logger(log_dir=str(log_dir))
    job_logger("job-1").info("[job:job-1] [collecting] Starting source video download")
    logger.info("not tied to a job")
    logger.remove()

    lines = (log_dir / "jobs.json.log").read_text().splitlines()
    assert len(lines) == 1
    record = json.loads(lines[0])["record"]
    assert record["extra"]["job"] == "job-1"
    assert record["message"].endswith("Starting source video download")
