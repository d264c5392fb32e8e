import subprocess

import pytest

from viralcut.errors import ExternalToolFailure, ToolResolutionFailure
from viralcut.media import encoder
from viralcut.media.encoder import FFmpegRunner, describe_command, reset_ffmpeg_cache, resolve_ffmpeg_binary


@pytest.fixture(autouse=True)
def clean_cache():
    reset_ffmpeg_cache()
    yield
    reset_ffmpeg_cache()


@pytest.fixture
def fake_ffmpeg(tmp_path):
    path = tmp_path / "bin" / "ffmpeg"
    path.parent.mkdir()
    path.write_text("")
    return str(path)


def test_override_wins(mocker, fake_ffmpeg):
    bundled = mocker.patch.object(encoder.imageio_ffmpeg, "get_ffmpeg_exe")
    assert resolve_ffmpeg_binary(fake_ffmpeg) == fake_ffmpeg
    bundled.assert_not_called()


def test_bundled_binary_used_without_override(mocker, fake_ffmpeg):
    mocker.patch.object(encoder.imageio_ffmpeg, "get_ffmpeg_exe", return_value=fake_ffmpeg)
    assert resolve_ffmpeg_binary() == fake_ffmpeg


def test_path_binary_as_last_resort(mocker):
    mocker.patch.object(encoder.imageio_ffmpeg, "get_ffmpeg_exe", side_effect=RuntimeError("no binary"))
    mocker.patch.object(encoder.shutil, "which", return_value="/usr/bin/ffmpeg")
    mocker.patch.object(encoder.subprocess, "run", return_value=subprocess.CompletedProcess([], 0, "", ""))

    assert resolve_ffmpeg_binary() == "ffmpeg"


def test_nothing_found(mocker):
    mocker.patch.object(encoder.imageio_ffmpeg, "get_ffmpeg_exe", side_effect=RuntimeError("no binary"))
    mocker.patch.object(encoder.shutil, "which", return_value=None)

    with pytest.raises(ToolResolutionFailure):
        resolve_ffmpeg_binary()


def test_resolution_is_cached(mocker, fake_ffmpeg):
    bundled = mocker.patch.object(encoder.imageio_ffmpeg, "get_ffmpeg_exe", return_value=fake_ffmpeg)

    resolve_ffmpeg_binary()
    resolve_ffmpeg_binary()
    assert bundled.call_count == 1

    reset_ffmpeg_cache()
    resolve_ffmpeg_binary()
    assert bundled.call_count == 2


def test_runner_passes_cwd(mocker, fake_ffmpeg, tmp_path):
    run = mocker.patch.object(encoder.subprocess, "run", return_value=subprocess.CompletedProcess([], 0, "", ""))

    FFmpegRunner(fake_ffmpeg).run(["-version"], cwd=tmp_path)

    assert run.call_args.args[0] == [fake_ffmpeg, "-version"]
    assert run.call_args.kwargs["cwd"] == str(tmp_path)


def test_runner_failure_keeps_stderr(mocker, fake_ffmpeg):
    stderr = "x" * 2500 + "Invalid filter graph"
    mocker.patch.object(encoder.subprocess, "run", return_value=subprocess.CompletedProcess([], 1, "", stderr))

    with pytest.raises(ExternalToolFailure) as excinfo:
        FFmpegRunner(fake_ffmpeg).run(["-i", "in.mp4", "out.mp4"])

    assert excinfo.value.diagnostic == stderr
    assert str(excinfo.value).endswith("Invalid filter graph")
    assert "code 1" in str(excinfo.value)


def test_runner_os_error(mocker, fake_ffmpeg):
    mocker.patch.object(encoder.subprocess, "run", side_effect=OSError("exec format error"))

    with pytest.raises(ToolResolutionFailure):
        FFmpegRunner(fake_ffmpeg).run(["-version"])


def test_describe_command_quotes_arguments():
    assert describe_command(["ffmpeg", "-vf", "scale=1:2,ass=a b.ass"]) == "ffmpeg -vf 'scale=1:2,ass=a b.ass'"


def test_cache_is_kept_per_override(mocker, tmp_path, fake_ffmpeg):
    mocker.patch.object(encoder.imageio_ffmpeg, "get_ffmpeg_exe", return_value=fake_ffmpeg)
    other = tmp_path / "other" / "ffmpeg"
    other.parent.mkdir()
    other.write_text("")

    assert resolve_ffmpeg_binary() == fake_ffmpeg
    assert FFmpegRunner(str(other)).binary == str(other)
    assert FFmpegRunner().binary == fake_ffmpeg
