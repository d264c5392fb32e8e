import pytest

from viralcut.config_manager import ConfigManager
from viralcut.ingestion.models import VideoMeta
from viralcut.storage import JobStorage
from viralcut.transcription.engine import (
    TranscriptExtractor,
    estimate_emotion,
    extract_keywords,
    fallback_segments_from_energy,
    find_tags,
)
from viralcut.transcription.models import EnergyBucket

FLAT_BUCKETS = [EnergyBucket(start_sec=float(i), end_sec=float(i + 1), energy=0.5) for i in range(40)]


def build_vtt(count: int) -> str:
    blocks = ["WEBVTT", ""]
    for i in range(count):
        blocks.append(f"00:00:{i * 3:02d}.000 --> 00:00:{i * 3 + 2:02d}.500")
        blocks.append(f"Linha numero {i} com um segredo")
        blocks.append("")
    return "\n".join(blocks)


@pytest.fixture
def config_manager(tmp_path):
    config_path = tmp_path / "settings.yaml"
    config_path.write_text("paths:\n  storage_dir: jobs\n")
    return ConfigManager(config_path=str(config_path))


@pytest.fixture
def video():
    return VideoMeta(
        video_id="abcdefghijk",
        canonical_url="https://www.youtube.com/watch?v=abcdefghijk",
        title="Segredo do Sucesso",
        channel_name="Canal",
        duration_sec=20.0,
        thumbnail_url="",
    )


@pytest.fixture
def extractor(mocker, config_manager, tmp_path):
    mocker.patch("viralcut.transcription.engine.extract_energy_buckets", return_value=FLAT_BUCKETS)
    return TranscriptExtractor(config_manager, JobStorage(str(tmp_path / "jobs")), mocker.Mock())


def test_find_tags_rules():
    assert find_tags("nothing here", 0.5) == ["value"]
    assert find_tags("", 0.9) == ["hook"]
    assert find_tags("", 0.1) == ["storytelling"]
    assert find_tags("Why did this happen", 0.5) == ["curiosity"]
    assert find_tags("Olha isso agora, que absurdo kkk", 0.8) == ["hook", "controversy", "humor"]


def test_estimate_emotion_bounds():
    assert estimate_emotion("AMAZING this is great!!", 0.5) == pytest.approx(0.73)
    assert estimate_emotion("calm", 0.0) == pytest.approx(0.16)
    assert estimate_emotion("!!!!!!!!!!!!!!!!!!!! LOUD", 1.0) == 1.0


def test_extract_keywords_ranks_by_frequency():
    keywords = extract_keywords("Segredo do Sucesso", ["marketing", "sucesso"], "o sucesso vem")
    assert keywords == ["sucesso", "segredo", "marketing"]


def test_fallback_segments_cover_duration(video):
    buckets = [
        EnergyBucket(start_sec=0, end_sec=8, energy=0.9),
        EnergyBucket(start_sec=8, end_sec=16, energy=0.1),
        EnergyBucket(start_sec=16, end_sec=20, energy=0.5),
    ]
    segments = fallback_segments_from_energy(video, buckets, ["sucesso"], 8.0)

    assert [s.id for s in segments] == ["abcdefghijk-energy-1", "abcdefghijk-energy-2", "abcdefghijk-energy-3"]
    assert [(s.start_sec, s.end_sec) for s in segments] == [(0, 8), (8, 16), (16, 20)]
    assert segments[0].text.startswith("Energy peak focused on sucesso")
    assert segments[1].text.startswith("Dramatic pause")
    assert segments[2].text.startswith("Continuous narrative")
    assert "hook" in segments[0].tags
    assert "storytelling" in segments[1].tags


def test_fallback_without_keywords_uses_moment(video):
    segments = fallback_segments_from_energy(video, FLAT_BUCKETS, [], 8.0)
    assert all("moment" in s.text for s in segments)


def test_four_cues_fall_back_to_energy_windows(extractor, video, tmp_path):
    vtt = tmp_path / "source.pt.vtt"
    vtt.write_text(build_vtt(4), encoding="utf-8")
    logs = []

    segments = extractor.extract("job-1", video, tmp_path / "source.mp4", vtt, log=logs.append)

    assert len(segments) == 3
    assert all("-energy-" in s.id for s in segments)
    assert all(s.end_sec - s.start_sec <= 8.0 for s in segments)
    assert any("too short" in message for message in logs)


def test_enough_cues_use_caption_path(extractor, video, tmp_path):
    vtt = tmp_path / "source.pt.vtt"
    vtt.write_text(build_vtt(8), encoding="utf-8")

    segments = extractor.extract("job-1", video, tmp_path / "source.mp4", vtt)

    # cues starting at or after 20s are dropped
    assert len(segments) == 7
    assert segments[0].id == "abcdefghijk-1"
    assert segments[0].text == "Linha numero 0 com um segredo"
    assert "curiosity" in segments[0].tags
    assert all(s.end_sec <= video.duration_sec for s in segments)


def test_missing_caption_file_falls_back(extractor, video, tmp_path):
    segments = extractor.extract("job-1", video, tmp_path / "source.mp4", tmp_path / "missing.vtt")
    assert all("-energy-" in s.id for s in segments)


def test_no_caption_path_falls_back(extractor, video, tmp_path):
    segments = extractor.extract("job-1", video, tmp_path / "source.mp4", None)
    assert len(segments) == 3
