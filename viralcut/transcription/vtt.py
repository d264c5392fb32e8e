import re
from typing import List

from viralcut.transcription.models import CaptionCue

_INLINE_TIMESTAMP = re.compile(r"<\d{2}:\d{2}:\d{2}\.\d{3}>|<\d{2}:\d{2}\.\d{3}>")
_MARKUP = re.compile(r"<[^>]+>")
_WHITESPACE = re.compile(r"\s+")
_ENTITIES = (
    ("&amp;", "&"),
    ("&quot;", '"'),
    ("&#39;", "'"),
    ("&lt;", "<"),
    ("&gt;", ">"),
)


def clean_text(text: str) -> str:
    text = _INLINE_TIMESTAMP.sub("", text)
    text = _MARKUP.sub("", text)
    for entity, char in _ENTITIES:
        text = text.replace(entity, char)
    return _WHITESPACE.sub(" ", text).strip()


def parse_timestamp(raw: str) -> float:
    clean = raw.strip().replace(",", ".")
    try:
        parts = [float(p) for p in clean.split(":")]
    except ValueError:
        return 0.0

    if len(parts) == 3:
        hh, mm, ss = parts
        return hh * 3600 + mm * 60 + ss
    if len(parts) == 2:
        mm, ss = parts
        return mm * 60 + ss
    return parts[0] if parts else 0.0


def parse_vtt(content: str) -> List[CaptionCue]:
    """
    Parses a WebVTT document into ordered cues.
    Cue settings, header blocks and NOTE blocks are skipped; cues without text or with a
    non-positive duration are dropped.
    """
    lines = content.lstrip("\ufeff").splitlines()
    cues: List[CaptionCue] = []

    index = 0
    while index < len(lines):
        line = lines[index].strip()
        if "-->" not in line:
            index += 1
            continue

        start_raw, _, end_with_settings = line.partition("-->")
        end_tokens = end_with_settings.strip().split()
        end_raw = end_tokens[0] if end_tokens else ""

        start_sec = parse_timestamp(start_raw)
        end_sec = parse_timestamp(end_raw)
        index += 1

        text_lines = []
        while index < len(lines) and lines[index].strip():
            text_lines.append(lines[index])
            index += 1

        text = clean_text(" ".join(text_lines))
        if text and end_sec > start_sec:
            cues.append(CaptionCue(start_sec=start_sec, end_sec=end_sec, text=text))

    return cues
