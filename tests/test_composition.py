from pathlib import Path

import pytest

from viralcut.editing.composition import (
    build_composite_args,
    build_filter_graph,
    build_frame_args,
    build_title_text,
    ellipsize,
    pick_freeze_frame_offset,
    resolve_font,
    wrap_title,
)
from viralcut.intelligence.models import ViralClip, ViralSignal
from viralcut.overlay.models import NormalizedCaptionToken


def tok(start, strong=False, highlight=False):
    return NormalizedCaptionToken(
        id=f"cap-{start}",
        text="word",
        start_sec=start,
        end_sec=start + 0.5,
        strong=strong,
        highlight=highlight,
    )


def make_clip(hook_line="", snippet="", title="Fallback title"):
    return ViralClip(
        id="clip-1-abcdefgh",
        title=title,
        score=50,
        angle="value",
        start_sec=10,
        end_sec=50,
        duration_sec=40,
        hook_line=hook_line,
        transcript_snippet=snippet,
        signals=ViralSignal(hook=0, curiosity=0, controversy=0, humor=0, storytelling=0, value=0, emotion=0),
    )


class TestFreezeFrameOffset:
    def test_strong_word_wins_over_highlight(self):
        assert pick_freeze_frame_offset([tok(1.0, highlight=True), tok(2.0, strong=True)], 30) == 2.0

    def test_strong_word_after_search_window_is_ignored(self):
        tokens = [tok(1.0, highlight=True), tok(25.0, strong=True)]
        assert pick_freeze_frame_offset(tokens, 30) == 1.0

    def test_default_ratio_without_marked_words(self):
        assert pick_freeze_frame_offset([tok(3.0)], 30) == pytest.approx(10.5)
        assert pick_freeze_frame_offset([], 30) == pytest.approx(10.5)

    def test_clamped_to_clip_edges(self):
        assert pick_freeze_frame_offset([tok(0.0, strong=True)], 30) == pytest.approx(0.1)
        assert pick_freeze_frame_offset([], 0.1) == pytest.approx(0.1)


class TestTitleText:
    def test_first_sentence_of_hook(self):
        clip = make_clip(hook_line="Nobody tells you this. The rest of it")
        assert build_title_text(clip) == "Nobody tells you this"

    def test_falls_back_to_snippet_then_title(self):
        assert build_title_text(make_clip(snippet="From the snippet! More")) == "From the snippet"
        assert build_title_text(make_clip()) == "Fallback title"

    def test_long_sentence_is_ellipsized(self):
        text = build_title_text(make_clip(hook_line="word " * 30))
        assert len(text) <= 64
        assert text.endswith("...")

    def test_ellipsize(self):
        assert ellipsize("abcdefghij", 8) == "abcde..."
        assert ellipsize("short", 8) == "short"


class TestWrapTitle:
    def test_short_text_single_line(self):
        assert wrap_title("Short title") == ["Short title"]

    def test_overflow_truncates_last_line(self):
        lines = wrap_title("one two three four five six seven eight", width=10, max_lines=2)
        assert lines == ["one two", "three f..."]

    def test_long_word_is_split(self):
        assert wrap_title("a" * 30, width=10, max_lines=5) == ["a" * 10] * 3


class TestFilterGraph:
    def test_layout_with_default_font(self):
        graph = build_filter_graph(30.0, "clip.ass", "clip-title.txt", None)

        assert graph.startswith("color=c=black:s=1080x1920:d=30.000[canvas]")
        assert "[1:v]scale=1080:760" in graph
        assert "[0:v]scale=1080:1160" in graph
        assert "drawbox=x=0:y=ih-14" in graph
        assert "color=0xFFE500@1" in graph
        assert "font=Sans:textfile=clip-title.txt" in graph
        assert "ass=clip.ass[bottom]" in graph
        assert graph.endswith("[stage][bottom]overlay=0:760[vout]")

    def test_font_file_is_escaped(self):
        graph = build_filter_graph(10.0, "c.ass", "t.txt", Path("/fonts/A:B.ttf"))
        assert "fontfile='/fonts/A\\:B.ttf'" in graph

    def test_custom_resolution_moves_the_split(self):
        graph = build_filter_graph(10.0, "c.ass", "t.txt", None, resolution=(720, 1280), top_height=500)
        assert "s=720x1280" in graph
        assert "[0:v]scale=720:780" in graph
        assert "overlay=0:500[vout]" in graph


def test_frame_args():
    args = build_frame_args(Path("src.mp4"), 112.5, Path("f.jpg"))
    assert args == ["-y", "-ss", "112.500", "-i", "src.mp4", "-frames:v", "1", "-q:v", "2", "f.jpg"]


def test_composite_args():
    args = build_composite_args(Path("src.mp4"), Path("f.jpg"), 100.0, 40.0, "GRAPH", Path("out.mp4"), crf=20)

    assert args[:3] == ["-y", "-ss", "100.000"]
    assert args[args.index("-filter_complex") + 1] == "GRAPH"
    assert args[args.index("0:a?") - 1] == "-map"
    assert args[args.index("-crf") + 1] == "20"
    assert args.count("-t") == 3
    assert "+faststart" in args
    assert args[-1] == "out.mp4"


def test_resolve_font_fallback(mocker):
    mocker.patch("viralcut.editing.composition.ImageFont.truetype", side_effect=OSError("missing"))
    assert resolve_font("missing.ttf", 64) is None


def test_resolve_font_found(mocker, tmp_path):
    mocker.patch("viralcut.editing.composition.ImageFont.truetype", return_value=object())
    font = tmp_path / "font.ttf"
    assert resolve_font(str(font), 64) == font.resolve()
