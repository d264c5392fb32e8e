from typing import Sequence

from viralcut.intelligence.lexicon import (
    CONTROVERSY_TERMS,
    CURIOSITY_TERMS,
    HOOK_TERMS,
    HUMOR_TERMS,
    STORY_TERMS,
    VALUE_TERMS,
)
from viralcut.intelligence.models import Angle, ScoredCandidate, ViralSignal
from viralcut.transcription.models import TranscriptSegment
from viralcut.utils.text_utils import fold_text, round_half_up

EARLY_HOOK_WINDOW_SEC = 30.0

WEIGHTS = {
    "hook": 0.21,
    "curiosity": 0.17,
    "controversy": 0.14,
    "humor": 0.14,
    "storytelling": 0.12,
    "value": 0.10,
    "emotion": 0.07,
}
ENERGY_WEIGHT = 0.05
POSITION_BONUS = 7.0


def count_terms(folded_text: str, terms: Sequence[str]) -> int:
    """Number of distinct terms that occur at least once as a substring."""
    return sum(1 for term in terms if term in folded_text)


def compute_signals(segment: TranscriptSegment) -> ViralSignal:
    text = fold_text(segment.text)
    early_bonus = 20 if segment.start_sec < EARLY_HOOK_WINDOW_SEC else 0

    return ViralSignal(
        hook=min(100.0, count_terms(text, HOOK_TERMS) * 20 + early_bonus + segment.energy * 20),
        curiosity=min(100.0, count_terms(text, CURIOSITY_TERMS) * 20 + 12),
        controversy=min(100.0, count_terms(text, CONTROVERSY_TERMS) * 34),
        humor=min(100.0, count_terms(text, HUMOR_TERMS) * 36),
        storytelling=min(100.0, count_terms(text, STORY_TERMS) * 16 + 8),
        value=min(100.0, count_terms(text, VALUE_TERMS) * 20 + 10),
        emotion=round_half_up(segment.emotion * 100),
    )


def score_segment(segment: TranscriptSegment, total_duration: float) -> ScoredCandidate:
    """
    Scores one transcript segment as a clip seed.

    The composite blends the weighted signals, the segment's own loudness and a small
    bonus that decays linearly towards the end of the source.
    """
    signals = compute_signals(segment)
    time_factor = 1 - segment.start_sec / max(total_duration, 1)

    weighted = sum(getattr(signals, name) * weight for name, weight in WEIGHTS.items())
    weighted += segment.energy * 100 * ENERGY_WEIGHT

    score = round_half_up(min(100.0, weighted + time_factor * POSITION_BONUS))
    return ScoredCandidate(segment_id=segment.id, score=score, signals=signals)


def angle_from_signals(signals: ViralSignal) -> Angle:
    """Highest of the six non-emotion signals; ties go to the earlier Angle member."""
    best = Angle.HOOK
    for angle in Angle:
        if signals.for_angle(angle) > signals.for_angle(best):
            best = angle
    return best
