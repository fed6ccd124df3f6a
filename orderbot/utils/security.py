"""Security helpers: input sanitation, spam detection and PII masking for safe logging."""
import re
from typing import Optional

_PHONE_RE = re.compile(r"(?<!\d)(?:\+?66|0)\d{8,9}(?!\d)|\b\d{10,}\b")
_LINK_RE = re.compile(r"https?://|www\.", re.IGNORECASE)
_REPEAT_CHAR_RE = re.compile(r"(.)\1{9,}")


def mask_pii(text: str) -> str:
    """Redact phone-number-like digit runs before text reaches the log."""
    if not text:
        return text
    return _PHONE_RE.sub("[REDACTED]", text)


def sanitize_input(text: Optional[str], max_length: int = 500) -> str:
    """Trim, collapse whitespace, drop angle brackets and truncate."""
    if not text:
        return ""
    cleaned = text.replace("<", "").replace(">", "")
    cleaned = re.sub(r"\s+", " ", cleaned).strip()
    return cleaned[:max_length]


def detect_spam(text: str) -> bool:
    """True for links, long single-character runs or one word repeated over and over."""
    if not text:
        return False
    if _LINK_RE.search(text):
        return True
    if _REPEAT_CHAR_RE.search(text):
        return True
    words = text.lower().split()
    if len(words) >= 6:
        most = max(words.count(w) for w in set(words))
        if most / len(words) > 0.6:
            return True
    return False
