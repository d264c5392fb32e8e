import math
from pathlib import Path
from typing import List, Sequence, Tuple

from loguru import logger

from viralcut.config_manager import OverlayConfig
from viralcut.intelligence.models import ViralClip
from viralcut.overlay.captions import group_caption_tokens, normalize_subtitle_timeline, split_groups
from viralcut.overlay.models import NormalizedCaptionToken

ACTIVE_SCALE = 118
DIM_ALPHA = "&H40&"
FALLBACK_MIN_END_SEC = 1.8
MIN_EVENT_SEC = 0.05

ASS_HEADER = """[Script Info]
Title: ViralCut Caption
ScriptType: v4.00+
WrapStyle: 2
ScaledBorderAndShadow: yes
YCbCr Matrix: TV.709
PlayResX: {width}
PlayResY: {height}

[V4+ Styles]
Format: Name, Fontname, Fontsize, PrimaryColour, SecondaryColour, OutlineColour, BackColour, Bold, Italic, Underline, StrikeOut, ScaleX, ScaleY, Spacing, Angle, BorderStyle, Outline, Shadow, Alignment, MarginL, MarginR, MarginV, Encoding
Style: Caption,{font},{size},{primary},{secondary},&H00000000,&H64000000,-1,0,0,0,100,100,0,0,1,4,1,2,60,60,{margin_v},1

[Events]
Format: Layer, Start, End, Style, Name, MarginL, MarginR, MarginV, Effect, Text
"""


def format_ass_timestamp(seconds: float) -> str:
    total = int(math.floor(max(0.0, seconds) * 100 + 1e-6))
    hours, rest = divmod(total, 360000)
    minutes, rest = divmod(rest, 6000)
    whole, centis = divmod(rest, 100)
    return f"{hours}:{minutes:02d}:{whole:02d}.{centis:02d}"


def escape_ass_text(text: str) -> str:
    return text.replace("\\", "\\\\").replace("{", "\\{").replace("}", "\\}").replace("\n", "\\N")


def hex_to_ass(color: str, alpha: int = 0) -> str:
    """'#RRGGBB' -> '&HAABBGGRR'."""
    value = color.lstrip("#")
    if len(value) != 6:
        raise ValueError(f"Expected a #RRGGBB colour, got {color!r}")
    red, green, blue = value[0:2], value[2:4], value[4:6]
    return f"&H{alpha:02X}{blue}{green}{red}".upper()


def tag_color(color: str) -> str:
    """Colour for inline override tags: '&HBBGGRR&'."""
    value = hex_to_ass(color)
    return f"&H{value[4:]}&"


def dialogue(start: float, end: float, text: str) -> str:
    return f"Dialogue: 0,{format_ass_timestamp(start)},{format_ass_timestamp(end)},Caption,,0,0,0,,{text}"


class AssSubtitleBuilder:
    """
    Writes karaoke-style ASS documents: one event per active word, the active word
    coloured and enlarged while the rest of its group stays dimmed.
    """

    def __init__(self, cfg: OverlayConfig, font_name: str, play_res: Tuple[int, int] = (1080, 1160)):
        self.cfg = cfg
        self.font_name = font_name
        self.play_res = play_res
        self.accent = hex_to_ass(cfg.highlight_color)
        self.accent_tag = tag_color(cfg.highlight_color)
        self.dim_tag = tag_color(cfg.dim_color)

    def header(self) -> str:
        width, height = self.play_res
        return ASS_HEADER.format(
            width=width,
            height=height,
            font=self.font_name,
            size=self.cfg.font_size,
            primary=hex_to_ass(self.cfg.text_color),
            secondary=self.accent,
            margin_v=int(height * 0.12),
        )

    def _word_markup(self, token: NormalizedCaptionToken, active: bool) -> str:
        word = escape_ass_text(token.text)
        if not active:
            return f"{{\\c{self.dim_tag}\\alpha{DIM_ALPHA}}}{word}"

        if token.emoji:
            word = f"{word} {token.emoji}"
        return (
            f"{{\\c{self.accent_tag}\\alpha&H00&\\fscx{ACTIVE_SCALE}\\fscy{ACTIVE_SCALE}}}{word}"
            f"{{\\fscx100\\fscy100}}"
        )

    def _group_text(self, group: Sequence[NormalizedCaptionToken], active_index: int) -> str:
        words = [self._word_markup(token, i == active_index) for i, token in enumerate(group)]
        if 4 <= len(group) <= 5:
            split_at = math.ceil(len(group) / 2)
            return " ".join(words[:split_at]) + "\\N" + " ".join(words[split_at:])
        return " ".join(words)

    def events(self, tokens: Sequence[NormalizedCaptionToken]) -> List[str]:
        lines: List[str] = []
        flat = list(tokens)
        position = -1

        for group in split_groups(flat):
            for active_index, token in enumerate(group):
                position += 1
                end = token.end_sec
                if position + 1 < len(flat):
                    next_start = flat[position + 1].start_sec
                    if next_start > token.start_sec:
                        end = min(end, next_start)
                end = max(end, token.start_sec + MIN_EVENT_SEC)
                lines.append(dialogue(token.start_sec, end, self._group_text(group, active_index)))
        return lines

    def build(self, clip: ViralClip) -> str:
        tokens = group_caption_tokens(
            normalize_subtitle_timeline(clip.subtitles, clip.start_sec, clip.duration_sec)
        )

        if tokens:
            lines = self.events(tokens)
        else:
            fallback = clip.hook_line or clip.title
            end = max(FALLBACK_MIN_END_SEC, clip.duration_sec - 0.2)
            lines = [dialogue(0.0, end, f"{{\\b1}}{escape_ass_text(fallback)}")]
            logger.debug(f"Clip {clip.id} has no caption tokens; using a single fallback line")

        return self.header() + "\n".join(lines) + "\n"

    def write(self, clip: ViralClip, path: Path) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.build(clip), encoding="utf-8")
        return path
