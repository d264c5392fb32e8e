import math
from typing import List, NamedTuple, Sequence

from viralcut.intelligence.models import SubtitleToken
from viralcut.overlay.models import NormalizedCaptionToken
from viralcut.utils.text_utils import fold_text, strip_edge_punctuation

STRONG_WORDS = {
    # pt
    "dinheiro",
    "segredo",
    "errado",
    "nunca",
    "sempre",
    "verdade",
    "milionario",
    "falha",
    "sucesso",
    # en
    "money",
    "secret",
    "wrong",
    "never",
    "always",
    "truth",
    "millionaire",
    "failure",
    "success",
}

MIN_WORD_SEC = 0.1
TRANSITION_SEC = 0.1

GROUP_SIZE = 4
SHORT_GROUP_SIZE = 3
TAIL_GROUP_MAX = 5


class TimelineFrame(NamedTuple):
    is_milliseconds: bool
    has_clip_offset: bool


def detect_timeline_frame(raw_times: Sequence[float], clip_duration: float) -> TimelineFrame:
    """
    Guesses the unit and reference frame of raw caption times.

    Values larger than both 20x the clip duration and 240 are taken as milliseconds.
    Once in seconds, a maximum beyond the clip duration (plus one second of slack) means
    the times are source-absolute and still carry the clip start.

    This is a heuristic: a clip-relative timeline whose trailing tokens run more than a
    second past the clip end is misread as absolute.
    """
    max_raw = max(raw_times)
    is_milliseconds = max_raw > max(clip_duration * 20, 240)
    max_seconds = max_raw / 1000 if is_milliseconds else max_raw
    return TimelineFrame(is_milliseconds, max_seconds > clip_duration + 1)


def is_strong_word(text: str) -> bool:
    return fold_text(strip_edge_punctuation(text)) in STRONG_WORDS


def normalize_subtitle_timeline(
    tokens: Sequence[SubtitleToken], clip_start: float, clip_duration: float
) -> List[NormalizedCaptionToken]:
    """
    Maps raw subtitle tokens onto [0, clip_duration].

    Each word lasts until shortly after the next one starts; the last surviving word
    always runs to the end of the clip.
    """
    ordered = sorted((t for t in tokens if math.isfinite(t.time)), key=lambda t: t.time)
    if not ordered:
        return []

    frame = detect_timeline_frame([t.time for t in ordered], clip_duration)

    def relative(raw: float) -> float:
        seconds = raw / 1000 if frame.is_milliseconds else raw
        return seconds - clip_start if frame.has_clip_offset else seconds

    normalized: List[NormalizedCaptionToken] = []
    for index, token in enumerate(ordered):
        start = max(0.0, round(relative(token.time), 3))
        if start >= clip_duration:
            continue

        text = token.text.strip()
        if not text:
            continue

        if index + 1 < len(ordered):
            inferred_end = round(relative(ordered[index + 1].time), 3)
            end = min(clip_duration, max(start + MIN_WORD_SEC, inferred_end + TRANSITION_SEC))
        else:
            end = clip_duration

        normalized.append(
            NormalizedCaptionToken(
                id=f"cap-{index}-{start:.3f}",
                text=text,
                start_sec=start,
                end_sec=end,
                highlight=token.highlight,
                strong=is_strong_word(text),
                emoji=token.emoji,
            )
        )

    if normalized:
        normalized[-1].end_sec = clip_duration
    return normalized


def group_caption_tokens(tokens: Sequence[NormalizedCaptionToken]) -> List[NormalizedCaptionToken]:
    """
    Assigns display groups of four words. Six or seven remaining words are split as
    3 + the rest so no one- or two-word group is left dangling; five or fewer close
    out as a single group.
    """
    grouped: List[NormalizedCaptionToken] = []
    cursor = 0
    group_id = 0

    while cursor < len(tokens):
        remaining = len(tokens) - cursor
        if remaining <= TAIL_GROUP_MAX:
            size = remaining
        elif remaining <= 7:
            size = SHORT_GROUP_SIZE
        else:
            size = GROUP_SIZE

        for token in tokens[cursor : cursor + size]:
            grouped.append(token.model_copy(update={"group_id": group_id}))
        cursor += size
        group_id += 1

    return grouped


def split_groups(tokens: Sequence[NormalizedCaptionToken]) -> List[List[NormalizedCaptionToken]]:
    """Collects consecutive grouped tokens into lists, one per group id."""
    groups: List[List[NormalizedCaptionToken]] = []
    for token in tokens:
        if groups and groups[-1][0].group_id == token.group_id:
            groups[-1].append(token)
        else:
            groups.append([token])
    return groups
