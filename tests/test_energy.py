import numpy as np
import pytest

from viralcut.transcription.energy import (
    DEFAULT_ENERGY,
    MIN_ENERGY,
    compute_energy_buckets,
    energy_for_range,
    extract_energy_buckets,
)
from viralcut.transcription.models import EnergyBucket


def test_silence_normalizes_to_floor():
    samples = np.zeros(16000 * 3)
    buckets = compute_energy_buckets(samples, 16000, 1.0)

    assert len(buckets) == 3
    assert all(b.energy == MIN_ENERGY for b in buckets)


def test_energy_normalized_to_loudest_window():
    quiet = np.full(100, 0.1)
    loud = np.full(100, 0.5)
    silent = np.zeros(50)
    buckets = compute_energy_buckets(np.concatenate([quiet, loud, silent]), 100, 1.0)

    assert [b.start_sec for b in buckets] == [0.0, 1.0, 2.0]
    assert buckets[2].end_sec == 2.5
    assert buckets[0].energy == pytest.approx(0.2)
    assert buckets[1].energy == pytest.approx(1.0)
    assert buckets[2].energy == MIN_ENERGY
    assert all(MIN_ENERGY <= b.energy <= 1.0 for b in buckets)


def test_extract_runs_ffmpeg_and_reads_pcm(mocker, tmp_path):
    pcm_path = tmp_path / "work" / "audio.pcm"

    def fake_run(args, cwd=None):
        (np.array([0, 16384, -16384, 0], dtype="<i2")).tofile(str(pcm_path))

    encoder = mocker.Mock()
    encoder.run.side_effect = fake_run

    buckets = extract_energy_buckets(encoder, tmp_path / "source.mp4", pcm_path, 1.0, sample_rate=2, window_sec=1.0)

    args = encoder.run.call_args.args[0]
    assert args[args.index("-ar") + 1] == "2"
    assert args[args.index("-f") + 1] == "s16le"
    assert len(buckets) == 2
    assert buckets[0].energy == pytest.approx(1.0)


def test_empty_pcm_gives_single_default_bucket(mocker, tmp_path):
    pcm_path = tmp_path / "audio.pcm"
    encoder = mocker.Mock()
    encoder.run.side_effect = lambda args, cwd=None: pcm_path.write_bytes(b"")

    buckets = extract_energy_buckets(encoder, tmp_path / "source.mp4", pcm_path, 0.4)

    assert len(buckets) == 1
    assert buckets[0].start_sec == 0.0
    assert buckets[0].end_sec == 1.0
    assert buckets[0].energy == DEFAULT_ENERGY


def test_energy_for_range():
    buckets = [
        EnergyBucket(start_sec=0, end_sec=1, energy=0.2),
        EnergyBucket(start_sec=1, end_sec=2, energy=0.6),
        EnergyBucket(start_sec=2, end_sec=3, energy=1.0),
    ]

    assert energy_for_range(buckets, 0.5, 1.5) == pytest.approx(0.4)
    assert energy_for_range(buckets, 2.0, 2.0) == pytest.approx(0.6)
    assert energy_for_range(buckets, 10, 12) == DEFAULT_ENERGY
    assert energy_for_range([], 0, 1) == DEFAULT_ENERGY
