import sys
from pathlib import Path
from typing import Any

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<magenta>{extra[job]}</magenta> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)
NO_JOB = "-"


def job_logger(job_id: str) -> Any:
    """Logger bound to one job; the id shows up in every sink."""
    return logger.bind(job=job_id)


def _job_events(record) -> bool:
    return record["extra"].get("job", NO_JOB) != NO_JOB


def setup_logger(
    log_dir: str = "logs",
    rotation: str = "10 MB",
    retention: str = "10 days",
    level: str = "INFO",
) -> Any:
    """
    Configures loguru sinks for the service.

    Args:
        log_dir (str): Directory where log files will be stored.
        rotation (str): file size or time to rotate logs (e.g., "10 MB", "1 day").
        retention (str): how long to keep logs (e.g., "10 days").
        level (str): Minimum logging level for the console.

    Sinks: coloured console, a rotating text log of everything, a serialized
    log of job events only (records bound through ``job_logger``), and an error log.
    """
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    logger.remove()
    logger.configure(extra={"job": NO_JOB})

    logger.add(sys.stderr, format=CONSOLE_FORMAT, level=level)

    logger.add(
        log_path / "viralcut.log",
        rotation=rotation,
        retention=retention,
        level="DEBUG",
        compression="zip",
    )

    # one JSON line per job transition, for dashboards
    logger.add(
        log_path / "jobs.json.log",
        rotation=rotation,
        retention=retention,
        level="INFO",
        serialize=True,
        filter=_job_events,
    )

    logger.add(log_path / "error.log", rotation=rotation, retention=retention, level="ERROR")

    logger.info(f"Logger initialized. Logs writing to {log_path.absolute()}")
    return logger
