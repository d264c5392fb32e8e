from pathlib import Path
from typing import List, Sequence

import numpy as np
from loguru import logger

from viralcut.media.encoder import FFmpegRunner
from viralcut.transcription.models import EnergyBucket

DEFAULT_ENERGY = 0.45
MIN_ENERGY = 0.01


def read_pcm(path: Path) -> np.ndarray:
    """Reads signed 16-bit little-endian mono PCM as float samples in [-1, 1)."""
    raw = np.fromfile(str(path), dtype="<i2")
    return raw.astype(np.float64) / 32768.0


def compute_energy_buckets(samples: np.ndarray, sample_rate: int, window_sec: float = 1.0) -> List[EnergyBucket]:
    """
    RMS per fixed window, normalized by the loudest window and clamped to [0.01, 1].
    Digital silence normalizes against 1 so every bucket lands on the 0.01 floor.
    """
    samples_per_window = max(1, int(round(sample_rate * window_sec)))
    total = int(samples.shape[0])

    starts = []
    rms_values = []
    for offset in range(0, total, samples_per_window):
        window = samples[offset : offset + samples_per_window]
        if window.size == 0:
            continue
        starts.append((offset, offset + window.size))
        rms_values.append(float(np.sqrt(np.mean(np.square(window)))))

    if not rms_values:
        return []

    max_rms = max(rms_values)
    normalizer = max_rms if max_rms > 0 else 1.0
    energies = np.clip(np.asarray(rms_values) / normalizer, MIN_ENERGY, 1.0)

    return [
        EnergyBucket(start_sec=begin / sample_rate, end_sec=end / sample_rate, energy=float(energy))
        for (begin, end), energy in zip(starts, energies)
    ]


def extract_energy_buckets(
    encoder: FFmpegRunner,
    source_video_path: Path,
    audio_pcm_path: Path,
    duration_sec: float,
    sample_rate: int = 16000,
    window_sec: float = 1.0,
) -> List[EnergyBucket]:
    """Extracts mono PCM with ffmpeg and returns the normalized energy curve."""
    audio_pcm_path.parent.mkdir(parents=True, exist_ok=True)
    encoder.run(
        [
            "-y",
            "-i",
            str(source_video_path),
            "-vn",
            "-ac",
            "1",
            "-ar",
            str(sample_rate),
            "-f",
            "s16le",
            str(audio_pcm_path),
        ]
    )

    samples = read_pcm(audio_pcm_path)
    if samples.size < 1:
        logger.warning(f"Empty PCM extraction at {audio_pcm_path}; using a flat energy curve")
        return [EnergyBucket(start_sec=0.0, end_sec=max(1.0, duration_sec), energy=DEFAULT_ENERGY)]

    buckets = compute_energy_buckets(samples, sample_rate, window_sec)
    logger.debug(f"Computed {len(buckets)} energy buckets from {samples.size} samples")
    return buckets


def energy_for_range(buckets: Sequence[EnergyBucket], start_sec: float, end_sec: float) -> float:
    matching = [b for b in buckets if b.start_sec < end_sec and b.end_sec > start_sec]
    if not matching:
        for bucket in buckets:
            if bucket.start_sec <= start_sec <= bucket.end_sec:
                return bucket.energy
        return DEFAULT_ENERGY

    return sum(b.energy for b in matching) / len(matching)
