import re
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from loguru import logger
from PIL import ImageFont

from viralcut.intelligence.models import ViralClip
from viralcut.overlay.models import NormalizedCaptionToken

FREEZE_SEARCH_RATIO = 0.8
FREEZE_DEFAULT_RATIO = 0.35
FREEZE_EDGE_SEC = 0.1

TITLE_MAX_CHARS = 64
TITLE_LINE_CHARS = 28
TITLE_MAX_LINES = 2
ELLIPSIS = "..."

ACCENT_BAR_HEIGHT = 14

_SENTENCE_SPLIT = re.compile(r"[.!?]")


def pick_freeze_frame_offset(tokens: Sequence[NormalizedCaptionToken], duration: float) -> float:
    """
    Clip-relative time of the still used for the top banner: the first strong word in
    the first 80% of the clip, else the first highlighted word there, else 35% in.
    """
    limit = duration * FREEZE_SEARCH_RATIO
    window = [t for t in tokens if t.start_sec <= limit]

    strong = next((t for t in window if t.strong), None)
    highlighted = next((t for t in window if t.highlight), None)
    if strong is not None:
        offset = strong.start_sec
    elif highlighted is not None:
        offset = highlighted.start_sec
    else:
        offset = duration * FREEZE_DEFAULT_RATIO

    upper = max(FREEZE_EDGE_SEC, duration - FREEZE_EDGE_SEC)
    return min(max(offset, FREEZE_EDGE_SEC), upper)


def first_sentence(text: str) -> str:
    for fragment in _SENTENCE_SPLIT.split(text or ""):
        fragment = fragment.strip()
        if fragment:
            return fragment
    return ""


def ellipsize(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - len(ELLIPSIS)].rstrip() + ELLIPSIS


def build_title_text(clip: ViralClip) -> str:
    for source in (clip.hook_line, clip.transcript_snippet, clip.title):
        sentence = first_sentence(source)
        if sentence:
            return ellipsize(sentence, TITLE_MAX_CHARS)
    return ellipsize(clip.title.strip(), TITLE_MAX_CHARS)


def wrap_title(text: str, width: int = TITLE_LINE_CHARS, max_lines: int = TITLE_MAX_LINES) -> List[str]:
    """Greedy word wrap; text that does not fit ends the last line with an ellipsis."""
    lines: List[str] = []
    current = ""
    for word in text.split():
        while len(word) > width:
            if current:
                lines.append(current)
                current = ""
            lines.append(word[:width])
            word = word[width:]
        candidate = f"{current} {word}" if current else word
        if len(candidate) <= width:
            current = candidate
        else:
            lines.append(current)
            current = word
    if current:
        lines.append(current)

    if len(lines) <= max_lines:
        return lines

    kept = lines[:max_lines]
    kept[-1] = kept[-1][: width - len(ELLIPSIS)].rstrip() + ELLIPSIS
    return kept


def resolve_font(font_path: str, size: int) -> Optional[Path]:
    """Returns the font file when Pillow can load it, None otherwise."""
    try:
        ImageFont.truetype(font_path, size)
    except OSError:
        logger.warning(f"Font not found at {font_path}. Using default.")
        return None
    return Path(font_path).resolve()


def escape_filter_value(value: str) -> str:
    """Escapes a filter option value for use inside -filter_complex."""
    return value.replace("\\", "/").replace(":", "\\:").replace("'", "\\'")


def ffmpeg_color(color: str) -> str:
    return f"0x{color.lstrip('#').upper()}"


def build_filter_graph(
    duration: float,
    subtitle_name: str,
    title_name: str,
    font_file: Optional[Path],
    resolution: Tuple[int, int] = (1080, 1920),
    top_height: int = 760,
    accent_color: str = "#FFE500",
    title_color: str = "#FFFFFF",
    title_font_size: int = 64,
) -> str:
    """
    Freeze-frame banner on top, live clip with burned captions below, on a black canvas.

    Input 0 is the clipped source, input 1 the extracted still. Subtitle and title files
    are referenced by bare name, so the encoder must run inside the work directory.
    """
    width, height = resolution
    bottom_height = height - top_height
    font = f"fontfile='{escape_filter_value(str(font_file))}'" if font_file else "font=Sans"

    canvas = f"color=c=black:s={width}x{height}:d={duration:.3f}[canvas]"
    top = (
        f"[1:v]scale={width}:{top_height}:force_original_aspect_ratio=increase,"
        f"crop={width}:{top_height},setsar=1,"
        f"drawbox=x=0:y=0:w=iw:h=ih:color=black@0.35:t=fill,"
        f"drawbox=x=0:y=ih-{ACCENT_BAR_HEIGHT}:w=iw:h={ACCENT_BAR_HEIGHT}:color={ffmpeg_color(accent_color)}@1:t=fill,"
        f"drawtext={font}:textfile={escape_filter_value(title_name)}:"
        f"fontcolor={ffmpeg_color(title_color)}:fontsize={title_font_size}:line_spacing=14:"
        f"borderw=3:bordercolor=black:x=(w-text_w)/2:y=(h-text_h)/2[top]"
    )
    bottom = (
        f"[0:v]scale={width}:{bottom_height}:force_original_aspect_ratio=increase,"
        f"crop={width}:{bottom_height},setsar=1,"
        f"eq=contrast=1.06:saturation=1.12,unsharp=5:5:0.6,"
        f"ass={escape_filter_value(subtitle_name)}[bottom]"
    )
    stack = f"[canvas][top]overlay=0:0[stage];[stage][bottom]overlay=0:{top_height}[vout]"
    return ";".join([canvas, top, bottom, stack])


def build_frame_args(source: Path, at_sec: float, frame_path: Path) -> List[str]:
    return [
        "-y",
        "-ss",
        f"{at_sec:.3f}",
        "-i",
        str(source),
        "-frames:v",
        "1",
        "-q:v",
        "2",
        str(frame_path),
    ]


def build_composite_args(
    source: Path,
    frame_path: Path,
    start_sec: float,
    duration: float,
    filter_graph: str,
    output_path: Path,
    preset: str = "veryfast",
    crf: int = 22,
    audio_bitrate: str = "128k",
) -> List[str]:
    return [
        "-y",
        "-ss",
        f"{start_sec:.3f}",
        "-t",
        f"{duration:.3f}",
        "-i",
        str(source),
        "-loop",
        "1",
        "-t",
        f"{duration:.3f}",
        "-i",
        str(frame_path),
        "-filter_complex",
        filter_graph,
        "-map",
        "[vout]",
        "-map",
        "0:a?",
        "-c:v",
        "libx264",
        "-preset",
        preset,
        "-crf",
        str(crf),
        "-pix_fmt",
        "yuv420p",
        "-c:a",
        "aac",
        "-b:a",
        audio_bitrate,
        "-t",
        f"{duration:.3f}",
        "-movflags",
        "+faststart",
        str(output_path),
    ]
