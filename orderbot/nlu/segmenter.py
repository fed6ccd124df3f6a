"""Intent segmenter: split an utterance into customer phrase, item phrases and flags.

Patterns are tried in a fixed order, each more permissive than the last:

1. a delivery clause at the start or end (``ship by <name>``) is cut out and
   the remainder segmented again
2. ``<honorific> <name> <verb> <items>``                    -> high
3. ``<token> <verb> <items>``                                -> medium, or low
   with the token moved into the items when it is a product keyword
4. ``<verb> <items>`` (no customer)                          -> low

An utterance that opens with an order verb (or a pronoun then a verb) can
only be shape 4 and is taken as such directly. No match returns None;
callers turn that into a ParseFailure.
"""
import re
from typing import Callable, List, Optional

from ..schemas.order_models import ConfidenceTier, Segment, SegmentPattern
from ..utils.logger import get_logger
from . import rules
from .entity_extractor import EntityExtractor
from .normalizer import clean_text

logger = get_logger(__name__)

_VERB_LATIN = rules.alternation(rules.ORDER_VERBS)
_VERB_THAI = "(?:" + "|".join(rules.ORDER_VERBS_THAI) + ")"
_HON_LATIN = rules.alternation(rules.HONORIFICS_LATIN)
_HON_THAI = "(?:" + "|".join(sorted(rules.HONORIFICS_THAI, key=len, reverse=True)) + ")"

HONORIFIC_PATTERNS = [
    re.compile(rf"^(?P<customer>{_HON_LATIN}\s+.+?)\s+{_VERB_LATIN}\s+(?P<items>.+)$"),
    re.compile(rf"^(?P<customer>{_HON_THAI}\s*\S+?)\s*{_VERB_THAI}\s*(?P<items>.+)$"),
]
GENERIC_PATTERNS = [
    re.compile(rf"^(?P<customer>\S+)\s+{_VERB_LATIN}\s+(?P<items>.+)$"),
    re.compile(rf"^(?P<customer>\S+?)\s*{_VERB_THAI}\s*(?P<items>.+)$"),
]
VERB_FIRST_PATTERNS = [
    re.compile(rf"^{_VERB_LATIN}\s+(?P<items>.+)$"),
    re.compile(rf"^{_VERB_THAI}\s*(?P<items>.+)$"),
]


class IntentSegmenter:
    def __init__(self, extractor: Optional[EntityExtractor] = None,
                 is_product_keyword: Optional[Callable[[str], bool]] = None):
        self.extractor = extractor or EntityExtractor()
        self.is_product_keyword = is_product_keyword or (lambda token: False)

    def segment(self, text: str, is_product_keyword: Optional[Callable[[str], bool]] = None
                ) -> Optional[Segment]:
        t = clean_text(text)
        if not t:
            return None
        guard = is_product_keyword or self.is_product_keyword

        seg = self._delivery_first(t, guard) or self._structural(t, guard)
        if seg is None:
            logger.debug("no segmentation pattern matched %r", t)
            return None

        payment = self.extractor.detect_payment_status(t)
        seg.payment = payment.status
        seg.payment_confidence = payment.confidence
        seg.payment_tie_break = payment.tie_break
        logger.debug("segmented %r -> %s customer=%r items=%r delivery=%r payment=%s",
                     t, seg.pattern_used.value, seg.customer_phrase, seg.item_phrases,
                     seg.delivery_person, seg.payment)
        return seg

    def _delivery_first(self, t: str, guard: Callable[[str], bool]) -> Optional[Segment]:
        clause = self.extractor.find_delivery_clause(t)
        if clause is None:
            return None
        at_start = not t[:clause.start].strip(" ,")
        at_end = not t[clause.end:].strip(" ,")
        if not (at_start or at_end):
            return None
        rest = (t[:clause.start] + " " + t[clause.end:]).strip(" ,")
        inner = self._structural(re.sub(r"\s+", " ", rest), guard)
        if inner is None:
            return None
        inner.delivery_person = clause.name
        inner.delivery_first = True
        if inner.confidence != ConfidenceTier.low:
            inner.confidence = ConfidenceTier.high
        return inner

    def _structural(self, t: str, guard: Callable[[str], bool]) -> Optional[Segment]:
        for pattern in VERB_FIRST_PATTERNS:
            m = pattern.match(t)
            if m:
                return self._build(None, m.group("items"), SegmentPattern.verb_first, ConfidenceTier.low)

        for pattern in HONORIFIC_PATTERNS:
            m = pattern.match(t)
            if m:
                return self._build(m.group("customer"), m.group("items"),
                                   SegmentPattern.honorific, ConfidenceTier.high)

        for pattern in GENERIC_PATTERNS:
            m = pattern.match(t)
            if m:
                token = m.group("customer")
                if token in rules.PRONOUNS:
                    return self._build(None, m.group("items"), SegmentPattern.verb_first, ConfidenceTier.low)
                if guard(token):
                    return self._build(None, f"{token} {m.group('items')}",
                                       SegmentPattern.product_guard, ConfidenceTier.low)
                return self._build(token, m.group("items"), SegmentPattern.generic, ConfidenceTier.medium)
        return None

    def _build(self, customer: Optional[str], items: str, pattern: SegmentPattern,
               confidence: ConfidenceTier) -> Segment:
        items, clause = self.extractor.strip_delivery_clause(items)
        items = self.extractor.strip_payment_phrases(items)
        phrases: List[str] = self.extractor.split_items(items)
        return Segment(
            customer_phrase=customer.strip() if customer else None,
            item_phrases=phrases,
            delivery_person=clause.name if clause else None,
            pattern_used=pattern,
            confidence=confidence,
        )


def segment(text: str, is_product_keyword: Optional[Callable[[str], bool]] = None) -> Optional[Segment]:
    return IntentSegmenter(is_product_keyword=is_product_keyword).segment(text)
