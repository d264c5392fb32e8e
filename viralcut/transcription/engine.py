import re
from collections import Counter
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from loguru import logger

from viralcut.config_manager import ConfigManager, TranscriptionConfig
from viralcut.ingestion.models import VideoMeta
from viralcut.media.encoder import FFmpegRunner
from viralcut.storage import JobStorage
from viralcut.transcription.energy import energy_for_range, extract_energy_buckets
from viralcut.transcription.models import CaptionCue, EnergyBucket, TranscriptSegment
from viralcut.transcription.vtt import parse_vtt
from viralcut.utils.text_utils import fold_text

LogFn = Callable[[str], None]

TAG_RULES = [
    ("hook", re.compile(r"agora|urgente|olha|aten[çc][aã]o|n[ãa]o acredita|chocante|right now|unbelievable|shocking|look at this", re.IGNORECASE)),
    ("curiosity", re.compile(r"como|por que|segredo|detalhe|curiosidade|descobri|\bhow\b|\bwhy\b|secret|detail|discovered", re.IGNORECASE)),
    ("controversy", re.compile(r"pol[eê]mica|discordo|absurdo|treta|discuss[aã]o|controvers|disagree|absurd|debate", re.IGNORECASE)),
    ("humor", re.compile(r"risos|engra[çc]ado|meme|zoeira|kkk|haha|funny|laugh", re.IGNORECASE)),
    ("storytelling", re.compile(r"aconteceu|quando|depois|hist[oó]ria|ent[aã]o|happened|\bwhen\b|story|\bthen\b", re.IGNORECASE)),
    ("value", re.compile(r"dica|estrat[eé]gia|resultado|li[çc][aã]o|aprendi|\btips?\b|strategy|result|lesson|learned", re.IGNORECASE)),
]

HIGH_ENERGY_TAG = 0.75
LOW_ENERGY_TAG = 0.2
FALLBACK_TAG = "value"

_UPPERCASE_RUN = re.compile(r"[A-ZÁÉÍÓÚÇÃÕÂÊÔ]{4,}")
_TOKEN_SPLIT = re.compile(r"[^a-z0-9]+")

STOPWORDS = {
    # pt
    "para", "com", "sem", "sobre", "porque", "quando", "onde", "depois", "antes", "entre",
    "muito", "pouco", "essa", "esse", "isso", "como", "mais", "menos", "ainda", "tambem",
    "voces", "voce", "aqui", "ali", "seu", "sua", "das", "dos", "uma", "uns", "umas", "que", "pra",
    # en
    "that", "this", "with", "from", "your", "have", "what", "when", "where", "will", "just",
    "about", "they", "them", "there", "their", "would", "could", "should", "into", "more", "here",
}


def find_tags(text: str, energy: float) -> List[str]:
    matched = [tag for tag, regex in TAG_RULES if regex.search(text)]

    if energy >= HIGH_ENERGY_TAG and "hook" not in matched:
        matched.append("hook")
    if energy <= LOW_ENERGY_TAG and "storytelling" not in matched:
        matched.append("storytelling")
    if not matched:
        matched.append(FALLBACK_TAG)
    return matched


def estimate_emotion(text: str, energy: float) -> float:
    punctuation_boost = sum(1 for ch in text if ch in "!?") * 0.06
    uppercase_boost = 0.1 if _UPPERCASE_RUN.search(text) else 0.0
    return max(0.1, min(1.0, energy * 0.7 + punctuation_boost + uppercase_boost + 0.16))


def extract_keywords(title: str, keyword_hints: Sequence[str], description: str, limit: int = 8) -> List[str]:
    """Most frequent folded tokens (length >= 4, stopwords removed) from title, tags and description."""
    base = " ".join([title, *keyword_hints, description])
    tokens = [
        token
        for token in _TOKEN_SPLIT.split(fold_text(base))
        if len(token) >= 4 and token not in STOPWORDS
    ]
    # Counter.most_common keeps first-seen order for ties
    return [word for word, _ in Counter(tokens).most_common(limit)]


def build_segment(segment_id: str, start: float, end: float, text: str, buckets: Sequence[EnergyBucket]) -> TranscriptSegment:
    energy = energy_for_range(buckets, start, end)
    return TranscriptSegment(
        id=segment_id,
        start_sec=start,
        end_sec=end,
        text=text,
        energy=energy,
        emotion=estimate_emotion(text, energy),
        tags=find_tags(text, energy),
    )


def fallback_segments_from_energy(
    video: VideoMeta,
    buckets: Sequence[EnergyBucket],
    keywords: Sequence[str],
    window_sec: float = 8.0,
) -> List[TranscriptSegment]:
    segments: List[TranscriptSegment] = []
    start = 0.0
    while start < video.duration_sec:
        end = min(video.duration_sec, start + window_sec)
        energy = energy_for_range(buckets, start, end)
        focus = keywords[len(segments) % len(keywords)] if keywords else "moment"

        if energy >= 0.7:
            text = f"Energy peak focused on {focus}. Strong audience reaction in this stretch."
        elif energy <= 0.25:
            text = f"Dramatic pause building context about {focus}."
        else:
            text = f"Continuous narrative about {focus}, good for retention."

        segments.append(build_segment(f"{video.video_id}-energy-{len(segments) + 1}", start, end, text, buckets))
        start += window_sec
    return segments


def segments_from_cues(
    video: VideoMeta, cues: Sequence[CaptionCue], buckets: Sequence[EnergyBucket]
) -> List[TranscriptSegment]:
    segments = []
    for cue in cues:
        if cue.start_sec >= video.duration_sec:
            continue
        end = min(cue.end_sec, video.duration_sec)
        segments.append(build_segment(f"{video.video_id}-{len(segments) + 1}", cue.start_sec, end, cue.text, buckets))
    return segments


class TranscriptExtractor:
    """
    Builds the time-aligned transcript for a job from auto captions when they are
    usable, otherwise from the audio energy curve alone.
    """

    def __init__(self, config_manager: ConfigManager, storage: JobStorage, encoder: FFmpegRunner):
        self.cfg: TranscriptionConfig = config_manager.transcription
        self.storage = storage
        self.encoder = encoder

    def _read_cues(self, subtitle_path: Path, log: Optional[LogFn]) -> Optional[List[CaptionCue]]:
        try:
            content = subtitle_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Failed to read caption file {subtitle_path}: {e}")
            if log:
                log("Failed to read the VTT caption file; using the energy fallback")
            return None
        return parse_vtt(content)

    def extract(
        self,
        job_id: str,
        video: VideoMeta,
        source_video_path: Path,
        subtitle_path: Optional[Path],
        keyword_hints: Sequence[str] = (),
        description_hint: str = "",
        log: Optional[LogFn] = None,
    ) -> List[TranscriptSegment]:
        """
        Returns ordered transcript segments.

        Raises:
            ToolResolutionFailure / ExternalToolFailure: the energy extraction could not run.
        """
        if log:
            log("Extracting audio energy to detect peaks and dramatic pauses")
        buckets = extract_energy_buckets(
            self.encoder,
            source_video_path,
            self.storage.audio_pcm_path(job_id),
            video.duration_sec,
            sample_rate=self.cfg.sample_rate,
            window_sec=self.cfg.energy_window_sec,
        )
        keywords = extract_keywords(video.title, keyword_hints, description_hint, self.cfg.keyword_count)

        def fallback(reason: str) -> List[TranscriptSegment]:
            logger.info(f"Transcript fallback for job {job_id}: {reason}")
            if log:
                log(reason)
            return fallback_segments_from_energy(video, buckets, keywords, self.cfg.fallback_window_sec)

        if subtitle_path is None:
            return fallback("Auto captions unavailable; building the timeline from audio energy")

        cues = self._read_cues(subtitle_path, log)
        if cues is None:
            return fallback("Caption file unreadable; building the timeline from audio energy")

        segments = segments_from_cues(video, cues, buckets)
        if len(segments) < self.cfg.min_cues:
            return fallback(f"Auto captions too short ({len(segments)} cues); using the energy fallback")

        if log:
            log(f"Transcript ready with {len(segments)} segments")
        return segments
