import pytest

from viralcut.storage import JobStorage, JobStoragePaths


@pytest.fixture
def storage(tmp_path):
    return JobStorage(str(tmp_path / "jobs"))


def test_job_layout(storage, tmp_path):
    paths = storage.paths("job1")
    job_dir = tmp_path / "jobs" / "job1"

    assert set(JobStoragePaths.model_fields) == {"job_dir", "clips_dir", "work_dir", "source_template"}
    assert paths.clips_dir == job_dir / "clips"
    assert paths.work_dir == job_dir / "work"
    assert paths.source_template == str(job_dir / "source.%(ext)s")
    assert storage.audio_pcm_path("job1") == job_dir / "work" / "audio-16k-mono.pcm"
    assert storage.clip_subtitle_path("job1", "clip-1") == job_dir / "work" / "clip-1.ass"


def test_ensure_creates_directories(storage):
    paths = storage.ensure("job1")
    assert paths.clips_dir.is_dir()
    assert paths.work_dir.is_dir()


def test_source_and_caption_lookup(storage):
    job_dir = storage.ensure("job1").job_dir
    assert storage.find_downloaded_source_video("missing") is None
    assert storage.find_caption_files("missing") == []

    (job_dir / "source.pt.vtt").write_text("WEBVTT\n", encoding="utf-8")
    (job_dir / "source.part").write_bytes(b"\x00")
    assert storage.find_downloaded_source_video("job1") is None

    (job_dir / "source.webm").write_bytes(b"\x00")
    assert storage.find_downloaded_source_video("job1") == job_dir / "source.webm"
    assert [f.name for f in storage.find_caption_files("job1")] == ["source.pt.vtt"]
