import re
from typing import Dict, List, Optional, Sequence

from loguru import logger

from viralcut.config_manager import ConfigManager
from viralcut.intelligence.lexicon import (
    ALWAYS_ON_HASHTAGS,
    EMOJIS,
    HASHTAG_BANK,
    HIGHLIGHT_TERMS,
    TITLE_TEMPLATES,
)
from viralcut.intelligence.models import (
    Angle,
    RenderSettings,
    ScoredCandidate,
    SubtitleToken,
    ViralClip,
    ViralSignal,
)
from viralcut.intelligence.scoring import angle_from_signals, score_segment
from viralcut.transcription.models import TranscriptSegment
from viralcut.utils.text_utils import dedupe, fold_text, round_half_up, split_words

MIN_CUTS = 3
MAX_CUTS = 10
DEFAULT_CUTS = 5

MIN_CLIP_SEC = 30
MAX_CLIP_SEC = 75
SCORE_TO_SECONDS = 0.32
LEAD_IN_SEC = 5.0
MAX_OVERLAP_SEC = 14.0

SNIPPET_SEGMENTS = 4
SNIPPET_CHARS = 420
TITLE_FALLBACK_CHARS = 45

SEGMENT_WORDS = 20
MIN_SEGMENT_SPAN_SEC = 0.7
MAX_SUBTITLE_TOKENS = 90
FALLBACK_WORDS = 18
FALLBACK_STEP_SEC = 0.45

FALLBACK_CLIP_SEC = 35.0
FALLBACK_SCORE = 45
FALLBACK_SIGNALS = ViralSignal(
    hook=55, curiosity=35, controversy=10, humor=10, storytelling=30, value=35, emotion=40
)

_WORD_PUNCTUATION = re.compile(r"[.,!?]")
_NON_ALNUM = re.compile(r"[^a-z0-9]", re.IGNORECASE)


def range_overlap(a_start: float, a_end: float, b_start: float, b_end: float) -> float:
    return max(0.0, min(a_end, b_end) - max(a_start, b_start))


def choose_hashtags(angle: Angle, extra_tags: Sequence[str]) -> List[str]:
    dynamic = [f"#{_NON_ALNUM.sub('', tag)}" for tag in extra_tags][:2]
    return dedupe([*HASHTAG_BANK[angle], *ALWAYS_ON_HASHTAGS, *dynamic])


def clip_title(angle: Angle, base_text: str, index: int) -> str:
    templates = TITLE_TEMPLATES.get(angle)
    if templates:
        return templates[index % len(templates)].format(n=index + 1)

    sentence = base_text[:-1] if base_text.endswith(".") else base_text
    return f"{sentence[:TITLE_FALLBACK_CHARS]}..." if len(sentence) > TITLE_FALLBACK_CHARS else sentence


def build_subtitles_from_segments(window_segments: Sequence[TranscriptSegment]) -> List[SubtitleToken]:
    """Spreads the first words of each segment evenly over the segment's span."""
    tokens: List[SubtitleToken] = []

    for segment in window_segments:
        words = split_words(segment.text)[:SEGMENT_WORDS]
        if not words:
            continue

        step = max(MIN_SEGMENT_SPAN_SEC, segment.end_sec - segment.start_sec) / len(words)
        for index, raw_word in enumerate(words):
            word = _WORD_PUNCTUATION.sub("", raw_word)
            if not word:
                continue

            folded = fold_text(word)
            highlight = any(term in folded for term in HIGHLIGHT_TERMS)
            position = len(tokens) + index
            emoji = EMOJIS[position % len(EMOJIS)] if highlight and position % 5 == 0 else None

            tokens.append(
                SubtitleToken(
                    time=round(segment.start_sec + step * index, 2),
                    text=word,
                    highlight=highlight,
                    emoji=emoji,
                )
            )

    return tokens[:MAX_SUBTITLE_TOKENS]


def build_fallback_subtitles(text: str, start_sec: float) -> List[SubtitleToken]:
    words = split_words(text)[:FALLBACK_WORDS]
    return [
        SubtitleToken(
            time=round(start_sec + index * FALLBACK_STEP_SEC, 2),
            text=word,
            highlight=index % 4 == 0,
            emoji=EMOJIS[index % len(EMOJIS)] if index % 6 == 0 else None,
        )
        for index, word in enumerate(words)
    ]


def build_fallback_clip(segments: Sequence[TranscriptSegment], duration_sec: float) -> ViralClip:
    """Opening window emitted when no candidate survives selection."""
    end_sec = min(duration_sec, FALLBACK_CLIP_SEC)
    first_text = segments[0].text if segments else ""

    return ViralClip(
        id="clip-1-fallback",
        title="Opening stretch with retention potential",
        score=FALLBACK_SCORE,
        angle=Angle.HOOK,
        start_sec=0.0,
        end_sec=end_sec,
        duration_sec=round(end_sec, 2),
        hook_line=first_text or "Start of the video",
        transcript_snippet=" ".join(s.text for s in segments[:SNIPPET_SEGMENTS]),
        hashtags=["#ViralClips", "#Shorts", "#YouTubeShorts"],
        suggested_description="Opening stretch optimized for retention.",
        subtitles=build_fallback_subtitles(first_text or "Opening stretch", 0.0),
        render=RenderSettings(headline="Suggested cut"),
        signals=FALLBACK_SIGNALS.model_copy(),
    )


def generate_viral_cuts(
    video_title: str,
    segments: Sequence[TranscriptSegment],
    duration_sec: float,
    requested_cuts: Optional[int] = None,
) -> List[ViralClip]:
    """
    Ranks segments and turns the best ones into non-overlapping clip windows.

    Every clip lasts between 30 and 75 seconds and no two clips share more than
    14 seconds. When nothing qualifies a single opening clip is returned instead.
    """
    wanted = min(MAX_CUTS, max(MIN_CUTS, requested_cuts if requested_cuts is not None else DEFAULT_CUTS))

    by_id: Dict[str, TranscriptSegment] = {s.id: s for s in segments}
    scored: List[ScoredCandidate] = [score_segment(s, duration_sec) for s in segments]
    # sorted() is stable, so equal scores keep transcript order
    scored = sorted(scored, key=lambda c: c.score, reverse=True)

    selected: List[ViralClip] = []
    for candidate in scored:
        if len(selected) >= wanted:
            break

        segment = by_id[candidate.segment_id]
        target = max(MIN_CLIP_SEC, min(MAX_CLIP_SEC, MIN_CLIP_SEC + round_half_up(candidate.score * SCORE_TO_SECONDS)))
        start_sec = max(0.0, segment.start_sec - LEAD_IN_SEC)
        end_sec = min(duration_sec, start_sec + target)

        if end_sec - start_sec < MIN_CLIP_SEC:
            continue
        if any(range_overlap(start_sec, end_sec, c.start_sec, c.end_sec) > MAX_OVERLAP_SEC for c in selected):
            continue

        window = [s for s in segments if s.start_sec < end_sec and s.end_sec > start_sec]
        snippet = " ".join(s.text for s in window[:SNIPPET_SEGMENTS])[:SNIPPET_CHARS].strip()

        angle = angle_from_signals(candidate.signals)
        title = clip_title(angle, segment.text, len(selected))
        subtitles = (
            build_subtitles_from_segments(window)
            if window
            else build_fallback_subtitles(segment.text, start_sec)
        )

        selected.append(
            ViralClip(
                id=f"clip-{len(selected) + 1}-{segment.id[-8:]}",
                title=title,
                score=candidate.score,
                angle=angle,
                start_sec=start_sec,
                end_sec=end_sec,
                duration_sec=round(end_sec - start_sec, 2),
                hook_line=segment.text,
                transcript_snippet=snippet or segment.text,
                hashtags=choose_hashtags(angle, segment.tags),
                suggested_description=(
                    f"Cut from {video_title} focused on {angle.value}. "
                    "Optimized for retention and quick sharing."
                ),
                subtitles=subtitles,
                render=RenderSettings(headline=title),
                signals=candidate.signals,
            )
        )

    if not selected:
        logger.warning(f"No candidate window survived selection for '{video_title}'; using the opening clip")
        selected.append(build_fallback_clip(segments, duration_sec))

    return selected[:wanted]


class ContentCurator:
    """Heuristic clip selection over a scored transcript."""

    def __init__(self, config_manager: ConfigManager):
        self.cfg = config_manager.scoring

    def curate(
        self,
        video_title: str,
        segments: Sequence[TranscriptSegment],
        duration_sec: float,
        requested_cuts: Optional[int] = None,
    ) -> List[ViralClip]:
        wanted = requested_cuts if requested_cuts is not None else self.cfg.requested_cuts
        clips = generate_viral_cuts(video_title, segments, duration_sec, wanted)
        logger.info(
            f"Selected {len(clips)} clip(s) from {len(segments)} segments "
            f"(requested {wanted}, top score {max(c.score for c in clips)})"
        )
        return clips
