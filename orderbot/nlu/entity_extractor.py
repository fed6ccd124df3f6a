"""Rule-based entity extraction for order utterances.

Payment status, delivery person and per-item price/quantity hints. Numbers
are told apart by explicit words first (currency, unit, ``quantity``/``price``
markers) and only then by magnitude; magnitude rules are a heuristic
tie-break and say so through the hint's confidence tag.
"""
import re
from typing import List, Optional, Tuple

from pydantic import BaseModel

from ..app.config import Config
from ..data.catalog_index import extract_keywords
from ..schemas.order_models import ConfidenceTier, ItemHint, PaymentStatus
from ..utils.logger import get_logger
from . import rules
from .normalizer import clean_text

logger = get_logger(__name__)

_NUMBER_RE = re.compile(r"^\d+(?:\.\d+)?$")

_HONORIFIC_LATIN = rules.alternation(rules.HONORIFICS_LATIN)
_HONORIFIC_THAI = "(?:" + "|".join(sorted(rules.HONORIFICS_THAI, key=len, reverse=True)) + ")"
_DELIVERY_LATIN_RE = re.compile(
    rf"{rules.alternation(rules.DELIVERY_VERBS)}\s+{rules.alternation(rules.DELIVERY_PREPOSITIONS)}\s+"
    rf"(?P<hon>{_HONORIFIC_LATIN}\s+)?(?P<name>[a-z\u0e00-\u0e7f]+)"
)
_DELIVERY_THAI_RE = re.compile(
    rf"(?:{'|'.join(sorted(rules.DELIVERY_THAI, key=len, reverse=True))})\s*"
    rf"(?P<hon>{_HONORIFIC_THAI})?(?P<name>[a-z\u0e00-\u0e7f]+)"
)


class PaymentSignal(BaseModel):
    status: Optional[PaymentStatus] = None
    confidence: ConfidenceTier = ConfidenceTier.low
    phrase: Optional[str] = None
    tie_break: bool = False


class DeliveryClause(BaseModel):
    name: str
    confidence: ConfidenceTier
    start: int
    end: int


def _display_name(*parts: Optional[str]) -> str:
    words = " ".join(p.strip() for p in parts if p).split()
    return " ".join(w if rules.is_thai(w) else w.capitalize() for w in words)


def _is_number(tok: str) -> bool:
    return bool(_NUMBER_RE.match(tok))


class EntityExtractor:
    def __init__(self, tail_fraction: float = Config.PAYMENT_TAIL_FRACTION,
                 bare_quantity_max: int = Config.BARE_QUANTITY_MAX):
        self.tail_fraction = tail_fraction
        self.bare_quantity_max = bare_quantity_max

    # ------------------------------------------------------------------ payment
    def detect_payment_status(self, text: str) -> PaymentSignal:
        """Explicit unpaid/credit wording, then explicit paid wording, then position tie-break.

        An unqualified payment word (``pay``, ``cash``, ``transfer``) in the
        last ``tail_fraction`` of the text reads as paid, earlier as unpaid;
        both at medium confidence.
        """
        t = clean_text(text)
        if not t:
            return PaymentSignal()
        found = rules.find_phrase(t, rules.UNPAID_PHRASES)
        if found:
            return PaymentSignal(status=PaymentStatus.unpaid, confidence=ConfidenceTier.high, phrase=found[1])
        found = rules.find_phrase(t, rules.PAID_PHRASES)
        if found:
            return PaymentSignal(status=PaymentStatus.paid, confidence=ConfidenceTier.high, phrase=found[1])
        found = rules.find_phrase(t, rules.AMBIGUOUS_PAYMENT)
        if found:
            pos, phrase = found
            in_tail = pos >= len(t) * (1.0 - self.tail_fraction)
            status = PaymentStatus.paid if in_tail else PaymentStatus.unpaid
            return PaymentSignal(status=status, confidence=ConfidenceTier.medium, phrase=phrase, tie_break=True)
        return PaymentSignal()

    def strip_payment_phrases(self, text: str) -> str:
        vocab = rules.UNPAID_PHRASES + rules.PAID_PHRASES + rules.AMBIGUOUS_PAYMENT
        t = re.sub(rules.alternation(vocab), " ", text)
        return re.sub(r"\s+", " ", t).strip(" ,")

    # ----------------------------------------------------------------- delivery
    def find_delivery_clause(self, text: str) -> Optional[DeliveryClause]:
        """First ``ship/deliver/send by|to <name>`` (or Thai) clause in cleaned text."""
        for pattern in (_DELIVERY_LATIN_RE, _DELIVERY_THAI_RE):
            m = pattern.search(text)
            if m:
                hon = m.group("hon")
                conf = ConfidenceTier.high if hon else ConfidenceTier.medium
                return DeliveryClause(name=_display_name(hon, m.group("name")), confidence=conf,
                                      start=m.start(), end=m.end())
        return None

    def extract_delivery_person(self, text: str) -> Optional[DeliveryClause]:
        return self.find_delivery_clause(clean_text(text))

    def strip_delivery_clause(self, text: str) -> Tuple[str, Optional[DeliveryClause]]:
        clause = self.find_delivery_clause(text)
        if clause is None:
            return text, None
        rest = (text[:clause.start] + " " + text[clause.end:])
        return re.sub(r"\s+", " ", rest).strip(" ,"), clause

    # -------------------------------------------------------------- price hints
    def split_items(self, item_phrase: str) -> List[str]:
        return [p.strip() for p in rules.SEPARATORS_RE.split(item_phrase) if p and p.strip()]

    def extract_price_hints(self, item_phrase: str) -> List[ItemHint]:
        """One hint per comma/``and``-separated phrase."""
        hints = [self._hint_for(phrase) for phrase in self.split_items(clean_text(item_phrase))]
        return [h for h in hints if h is not None]

    def _hint_for(self, phrase: str) -> Optional[ItemHint]:
        tokens = [t for t in phrase.split() if t not in (",", ";", "+", "&")]
        if not tokens:
            return None

        words: List[str] = []
        bare: List[float] = []
        warnings: List[str] = []
        price: Optional[float] = None
        quantity: Optional[float] = None
        unit: Optional[str] = None
        provenance: List[ConfidenceTier] = []
        marker: Optional[str] = None

        i, n = 0, len(tokens)
        while i < n:
            tok = tokens[i]
            nxt = tokens[i + 1] if i + 1 < n else None
            if _is_number(tok):
                val = float(tok)
                if marker == "quantity":
                    quantity = val
                    provenance.append(ConfidenceTier.high)
                elif marker == "price" or (nxt in rules.CURRENCY_WORDS):
                    price = val
                    provenance.append(ConfidenceTier.high)
                    if nxt in rules.CURRENCY_WORDS:
                        i += 1
                elif nxt in rules.UNIT_WORDS:
                    quantity, unit = val, nxt
                    provenance.append(ConfidenceTier.high)
                    i += 1
                elif not words and quantity is None:
                    quantity = val
                    provenance.append(ConfidenceTier.high)
                else:
                    bare.append(val)
                marker = None
            elif nxt is not None and _is_number(nxt) and tok in rules.QUANTITY_MARKERS:
                marker = "quantity"
            elif nxt is not None and _is_number(nxt) and tok in rules.PRICE_MARKERS:
                marker = "price"
            elif nxt is not None and _is_number(nxt) and tok in rules.CURRENCY_WORDS:
                marker = "price"
            elif tok in rules.CURRENCY_WORDS:
                pass
            elif tok == "x" and bare and i > 0 and _is_number(tokens[i - 1]):
                quantity = bare.pop()
                provenance.append(ConfidenceTier.high)
            else:
                words.append(tok)
            i += 1

        if bare:
            price, quantity = self._resolve_bare(bare, price, quantity, provenance, warnings)

        qty_int: Optional[int] = None
        if quantity is not None:
            qty_int = int(round(quantity))
            if qty_int != quantity:
                warnings.append(f"quantity {quantity:g} rounded to {qty_int}")

        keyword = " ".join(words)
        confidence = ConfidenceTier.weakest(*provenance) if provenance else ConfidenceTier.medium
        hint = ItemHint(
            text=phrase,
            keyword=keyword,
            keywords=extract_keywords(keyword),
            price=price,
            quantity=qty_int,
            unit=unit,
            confidence=confidence,
            warnings=warnings,
        )
        logger.debug("hint %r -> keyword=%r price=%s qty=%s (%s)",
                     phrase, keyword, price, qty_int, confidence.value)
        return hint

    def _resolve_bare(self, bare: List[float], price: Optional[float], quantity: Optional[float],
                      provenance: List[ConfidenceTier], warnings: List[str]):
        """Assign unlabeled numbers by magnitude."""
        if price is not None and quantity is not None:
            warnings.append(f"ignored number(s) {', '.join(f'{b:g}' for b in bare)}")
            return price, quantity
        if price is not None:
            provenance.append(ConfidenceTier.medium)
            return price, bare[0]
        if quantity is not None:
            provenance.append(ConfidenceTier.medium)
            return bare[0], quantity
        if len(bare) == 1:
            provenance.append(ConfidenceTier.medium)
            if bare[0] <= self.bare_quantity_max:
                return None, bare[0]
            return bare[0], None

        n1, n2 = bare[0], bare[1]
        if len(bare) > 2:
            warnings.append(f"ignored number(s) {', '.join(f'{b:g}' for b in bare[2:])}")
        if n1 > 10 and n2 <= 100:
            provenance.append(ConfidenceTier.medium)
            return n1, n2
        if n2 > 3 * n1:
            provenance.append(ConfidenceTier.low)
            return n2, n1
        provenance.append(ConfidenceTier.low)
        warnings.append(f"could not tell price from quantity in '{n1:g} {n2:g}'; used {n1:g} as quantity")
        return None, n1


_default = EntityExtractor()


def detect_payment_status(text: str) -> PaymentSignal:
    return _default.detect_payment_status(text)


def extract_delivery_person(text: str) -> Optional[DeliveryClause]:
    return _default.extract_delivery_person(text)


def extract_price_hints(item_phrase: str) -> List[ItemHint]:
    return _default.extract_price_hints(item_phrase)
