import math
import re
import unicodedata
from typing import Iterable, List

_PUNCT_EDGES = re.compile(r"^[^\w]+|[^\w]+$", re.UNICODE)


def fold_text(text: str) -> str:
    """Lower-cases text and strips diacritics (NFD + drop combining marks)."""
    decomposed = unicodedata.normalize("NFD", text)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.lower()


def strip_edge_punctuation(text: str) -> str:
    return _PUNCT_EDGES.sub("", text)


def round_half_up(value: float) -> int:
    """Rounds .5 away from zero for positives, matching the scoring tables."""
    return int(math.floor(value + 0.5))


def split_words(text: str) -> List[str]:
    return [w for w in text.split() if w]


def dedupe(items: Iterable[str]) -> List[str]:
    seen = set()
    result = []
    for item in items:
        if item in seen:
            continue
        seen.add(item)
        result.append(item)
    return result
