"""Text canonicalisation and string-similarity primitives.

``normalize`` produces the compact matching key used everywhere (lowercase,
only ASCII letters/digits and the Thai block, no spaces). ``clean_text`` keeps
word boundaries and list separators for the segmenter.
"""
import re
from difflib import SequenceMatcher
from typing import List

from rapidfuzz.distance import Levenshtein

from ..app.config import Config

_NON_KEY_RE = re.compile(r"[^a-z0-9\u0e00-\u0e7f]")
_NON_TEXT_RE = re.compile(r"[^a-z0-9\u0e00-\u0e7f\s.,;+&]")
_DOT_RE = re.compile(r"(?<!\d)\.|\.(?!\d)")


def normalize(text: str) -> str:
    if not text:
        return ""
    return _NON_KEY_RE.sub("", text.lower()).strip()


def clean_text(text: str) -> str:
    """Lowercase, keep word boundaries and list separators, collapse whitespace.

    A dot between digits (``12.5``) survives; any other dot becomes a space so
    ``Mr.Somchai`` splits into two words.
    """
    if not text:
        return ""
    t = _DOT_RE.sub(" ", text.lower())
    t = _NON_TEXT_RE.sub(" ", t)
    return re.sub(r"\s+", " ", t).strip()


def tokenize(text: str) -> List[str]:
    return clean_text(text).split()


def edit_distance(a: str, b: str) -> int:
    return Levenshtein.distance(a, b)


def longest_common_substring(a: str, b: str) -> int:
    if not a or not b:
        return 0
    m = SequenceMatcher(None, a, b, autojunk=False).find_longest_match(0, len(a), 0, len(b))
    return m.size


def similarity(a: str, b: str,
               edit_weight: float = Config.SIMILARITY_EDIT_WEIGHT,
               substring_weight: float = Config.SIMILARITY_SUBSTRING_WEIGHT) -> float:
    """Blend of edit-distance closeness and longest-common-substring coverage, in [0, 1].

    Args:
        a, b: strings to compare; both are normalized first
        edit_weight: weight of ``1 - distance / max_len``
        substring_weight: weight of ``lcs / max_len``

    Returns:
        0.0 when either side normalizes to empty, 1.0 for identical keys.
    """
    a, b = normalize(a), normalize(b)
    if not a or not b:
        return 0.0
    longest = max(len(a), len(b))
    edit_score = 1.0 - edit_distance(a, b) / longest
    substring_score = longest_common_substring(a, b) / longest
    return edit_weight * edit_score + substring_weight * substring_score
