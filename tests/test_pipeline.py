from pathlib import Path

import pytest

from viralcut.config_manager import (
    DownloaderConfig,
    EditingConfig,
    OverlayConfig,
    PathsConfig,
    ScoringConfig,
    TranscriptionConfig,
)
from viralcut.errors import DataInsufficiency
from viralcut.ingestion.models import DownloadedVideo, VideoMeta
from viralcut.pipeline import PipelineManager
from viralcut.transcription.models import TranscriptSegment


@pytest.fixture
def mock_config_manager(mocker, tmp_path):
    mock = mocker.Mock()
    mock.paths = PathsConfig(base_dir=str(tmp_path), storage_dir="storage/jobs")
    mock.downloader = DownloaderConfig(python_bin=None, cookies_file=None)
    mock.transcription = TranscriptionConfig()
    mock.scoring = ScoringConfig(requested_cuts=4)
    mock.overlay = OverlayConfig()
    mock.editing = EditingConfig(ffmpeg_bin=None)
    return mock


@pytest.fixture
def video():
    return VideoMeta(
        video_id="dQw4w9WgXcQ",
        canonical_url="https://www.youtube.com/watch?v=dQw4w9WgXcQ",
        title="Growth tips",
        channel_name="Channel X",
        duration_sec=600,
        thumbnail_url="https://i.ytimg.com/vi/dQw4w9WgXcQ/hqdefault.jpg",
    )


def segments(count):
    return [
        TranscriptSegment(
            id=f"dQw4w9WgXcQ-seg-{i:04d}",
            start_sec=i * 60,
            end_sec=i * 60 + 6,
            text=f"Segment {i} with a tip",
            energy=0.4,
            emotion=0.2,
        )
        for i in range(count)
    ]


def test_default_components(mock_config_manager, tmp_path):
    pipeline = PipelineManager(mock_config_manager)

    assert pipeline.storage.root == tmp_path / "storage" / "jobs"
    assert pipeline.extractor.encoder is pipeline.encoder
    # renderer (and its font probe) is only built when a job reaches rendering
    assert pipeline._renderer is None


def test_renderer_is_built_once(mocker, mock_config_manager):
    renderer_cls = mocker.patch("viralcut.pipeline.ClipRenderer")
    pipeline = PipelineManager(mock_config_manager)

    assert pipeline.renderer is pipeline.renderer
    renderer_cls.assert_called_once_with(mock_config_manager, pipeline.storage, pipeline.encoder)


def test_download_prepares_job_directories(mocker, mock_config_manager, tmp_path, video):
    downloader = mocker.Mock()
    downloader.download.return_value = DownloadedVideo(video=video, source_video_path=tmp_path / "source.mp4")
    pipeline = PipelineManager(mock_config_manager, downloader=downloader)

    result = pipeline.download("job1", video.canonical_url, video.video_id)

    assert result.video == video
    assert pipeline.storage.paths("job1").work_dir.is_dir()
    downloader.download.assert_called_once_with("job1", video.canonical_url, video.video_id, None)


def test_transcribe_passes_download_hints(mocker, mock_config_manager, tmp_path, video):
    extractor = mocker.Mock()
    extractor.extract.return_value = segments(3)
    downloaded = DownloadedVideo(
        video=video, source_video_path=tmp_path / "source.mp4", keywords=["growth"], description="About"
    )
    pipeline = PipelineManager(mock_config_manager, extractor=extractor)

    assert len(pipeline.transcribe("job1", downloaded, None)) == 3
    kwargs = extractor.extract.call_args.kwargs
    assert kwargs["keyword_hints"] == ["growth"]
    assert kwargs["description_hint"] == "About"


def test_transcribe_without_segments(mocker, mock_config_manager, tmp_path, video):
    extractor = mocker.Mock()
    extractor.extract.return_value = []
    pipeline = PipelineManager(mock_config_manager, extractor=extractor)

    with pytest.raises(DataInsufficiency):
        pipeline.transcribe("job1", DownloadedVideo(video=video, source_video_path=tmp_path / "s.mp4"), None)


def test_curate_uses_configured_default(mock_config_manager, video):
    pipeline = PipelineManager(mock_config_manager)

    assert len(pipeline.curate(video, segments(10))) == 4
    assert len(pipeline.curate(video, segments(10), 7)) == 7


def test_curate_without_clips(mocker, mock_config_manager, video):
    curator = mocker.Mock()
    curator.curate.return_value = []
    pipeline = PipelineManager(mock_config_manager, curator=curator)

    with pytest.raises(DataInsufficiency):
        pipeline.curate(video, segments(2))


def test_file_lookups(mock_config_manager, tmp_path):
    pipeline = PipelineManager(mock_config_manager)
    job_dir = pipeline.storage.ensure("job1").job_dir

    assert pipeline.source_video("job1") is None
    (job_dir / "source.mp4").write_bytes(b"\x00")
    assert pipeline.source_video("job1") == job_dir / "source.mp4"
    assert pipeline.clip_file("job1", "clip-1") == Path(job_dir) / "clips" / "clip-1.mp4"
