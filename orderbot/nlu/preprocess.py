#!/usr/bin/env python3
"""
Preprocessing module for order utterances.

Cleans typed or transcribed text before segmentation: sanitation, spam
check, filler removal, spelled-out numbers and common mishearings.
"""

import re
from typing import Any, Dict, List

from ..app.config import Config
from ..utils.logger import get_logger
from ..utils.security import detect_spam, mask_pii, sanitize_input
from . import rules

logger = get_logger(__name__)

_GLUED_DIGITS_RE = re.compile(r"(?<=[a-z\u0e00-\u0e7f])(?=\d)|(?<=\d)(?=[a-z\u0e00-\u0e7f])")
_UNITS = {w: n for w, n in rules.NUMBER_WORDS.items() if n < 10}
_TEENS_AND_TENS = {w: n for w, n in rules.NUMBER_WORDS.items() if 10 <= n < 100 and "dozen" not in w}


class Preprocessor:
    """Preprocessor for order utterances."""

    def __init__(self, max_length: int = Config.MAX_INPUT_LENGTH):
        self.max_length = max_length
        self._filler_re = re.compile(rules.alternation(rules.FILLER_WORDS))
        self._word_re = re.compile(r"[a-z]+")

    def normalize_text(self, text: str) -> str:
        """
        Lowercase, map Thai digits, expand ``n't`` and split digits glued to words.

        Args:
            text: Sanitized input text

        Returns:
            Normalized text, punctuation kept for the segmenter
        """
        if not text:
            return ""
        t = text.lower().translate(rules.THAI_DIGITS)
        t = re.sub(r"n't\b", " not", t)
        t = t.replace("฿", " ฿ ")
        t = _GLUED_DIGITS_RE.sub(" ", t)
        return re.sub(r"\s+", " ", t).strip()

    def remove_fillers(self, text: str) -> str:
        t = self._filler_re.sub(" ", text)
        return re.sub(r"\s+", " ", t).strip()

    def words_to_numbers(self, text: str) -> str:
        """
        Replace spelled-out numbers with digits.

        ``twenty five`` -> ``25``, ``two hundred`` -> ``200``, ``a dozen`` -> ``12``.
        """
        text = re.sub(r"\ba dozen\b", "12", text)
        tokens = text.split(" ")
        out: List[str] = []
        i = 0
        while i < len(tokens):
            tok = tokens[i]
            if tok in _TEENS_AND_TENS:
                value = _TEENS_AND_TENS[tok]
                if value >= 20 and value % 10 == 0 and i + 1 < len(tokens) and tokens[i + 1] in _UNITS:
                    value += _UNITS[tokens[i + 1]]
                    i += 1
                out.append(str(value))
            elif tok in _UNITS:
                out.append(str(_UNITS[tok]))
            elif tok in rules.NUMBER_WORDS_THAI:
                out.append(str(rules.NUMBER_WORDS_THAI[tok]))
            elif tok in ("hundred", "dozen"):
                multiplier = 100 if tok == "hundred" else 12
                if out and out[-1].isdigit():
                    out[-1] = str(int(out[-1]) * multiplier)
                else:
                    out.append(str(multiplier))
            else:
                out.append(tok)
            i += 1
        return " ".join(out)

    def correct_mishearings(self, text: str) -> str:
        return self._word_re.sub(lambda m: rules.MISHEARINGS.get(m.group(0), m.group(0)), text)

    def preprocess_query(self, query: str) -> Dict[str, Any]:
        """
        Preprocess an utterance.

        Args:
            query: Raw utterance

        Returns:
            Dictionary with the preprocessed text and metadata
        """
        sanitized = sanitize_input(query, self.max_length)
        spam = detect_spam(sanitized)
        normalized = self.normalize_text(sanitized)
        without_fillers = self.remove_fillers(normalized)
        numbered = self.words_to_numbers(without_fillers)
        corrected = self.correct_mishearings(numbered)

        result = {
            "original": query,
            "sanitized": sanitized,
            "normalized": normalized,
            "corrected": corrected,
            "spam": spam,
            "truncated": len(re.sub(r"\s+", " ", (query or "")).strip()) > self.max_length,
            "preprocessed": corrected,
        }
        logger.debug("preprocessed %r -> %r", mask_pii(sanitized), mask_pii(corrected))
        return result
