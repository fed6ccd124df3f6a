"""Order Agent: turns one utterance into an OrderIntent plus automation verdict.

Pipeline: preprocess -> segment -> price/quantity hints -> catalog match ->
customer resolution -> history cross-check -> confidence -> correction layer
-> automation gates. Purely computational; the controller owns all I/O.
"""
from typing import List, Optional

from ..app.cache import CacheState
from ..app.config import Config
from ..automation.correction import apply_corrections
from ..automation.engine import AutomationEngine, stock_shortfalls
from ..data import matcher
from ..data.customer_resolver import is_unspecified
from ..nlu.confidence import aggregate, customer_tier, hint_tier
from ..nlu.entity_extractor import EntityExtractor
from ..nlu.preprocess import Preprocessor
from ..nlu.segmenter import IntentSegmenter
from ..schemas.io_models import (
    AmbiguousMatch,
    Disambiguation,
    FailureReason,
    InterpretResult,
    ParseSuccess,
    UnknownItem,
)
from ..schemas.order_models import (
    ConfidenceTier,
    CustomerKind,
    CustomerProfile,
    ItemHint,
    LineItem,
    MatchQuality,
    MatchStatus,
    OrderIntent,
    PaymentStatus,
    QuantitySource,
    ResolvedCustomer,
    Segment,
)
from ..utils.logger import get_logger
from ..utils.security import mask_pii
from .base_agent import BaseAgent

logger = get_logger(__name__)


def _display_name(phrase: str) -> str:
    return " ".join(w.capitalize() for w in phrase.split())


class OrderAgent(BaseAgent):
    name = "order"

    def __init__(self, engine: AutomationEngine, preprocessor: Optional[Preprocessor] = None,
                 extractor: Optional[EntityExtractor] = None):
        self.engine = engine
        self.preprocessor = preprocessor or Preprocessor()
        self.extractor = extractor or EntityExtractor()
        self.segmenter = IntentSegmenter(self.extractor)

    def handle(self, text: str, state: CacheState, transcription_confidence: Optional[float] = None,
               assisted: bool = False, **kwargs) -> InterpretResult:
        policy = self.engine.policy
        pre = self.preprocessor.preprocess_query(text)
        warnings: List[str] = []
        if pre["truncated"]:
            warnings.append(f"input truncated to {self.preprocessor.max_length} characters")
        if not pre["sanitized"]:
            return self._failure(FailureReason.empty_input, "nothing to interpret", warnings)
        if pre["spam"]:
            return self._failure(FailureReason.spam, "input looks like spam", warnings)

        seg = self.segmenter.segment(pre["preprocessed"], is_product_keyword=state.catalog.is_product_keyword)
        if seg is None:
            return self._failure(FailureReason.no_pattern,
                                 f"could not find a customer/items structure in '{pre['preprocessed']}'", warnings)
        if not seg.item_phrases:
            return self._failure(FailureReason.no_items, "no item phrases after the order verb", warnings)

        hints: List[ItemHint] = []
        for phrase in seg.item_phrases:
            hints.extend(self.extractor.extract_price_hints(phrase))
        if not hints:
            return self._failure(FailureReason.no_items, "no item phrases after the order verb", warnings)
        if len(hints) > Config.MAX_ITEMS_PER_ORDER:
            return self._failure(FailureReason.too_many_items,
                                 f"{len(hints)} items exceeds the limit of {Config.MAX_ITEMS_PER_ORDER}", warnings)
        too_many = [h for h in hints if h.quantity is not None and h.quantity > Config.MAX_QUANTITY_PER_ITEM]
        if too_many:
            h = too_many[0]
            return self._failure(FailureReason.quantity_exceeds_max,
                                 f"quantity {h.quantity} for '{h.keyword}' exceeds {Config.MAX_QUANTITY_PER_ITEM}",
                                 warnings)

        intent = OrderIntent(
            raw_text=pre["original"],
            customer=self._resolve_customer(seg, state, warnings),
            delivery_person=seg.delivery_person,
            pattern_used=("delivery_first+" if seg.delivery_first else "") + seg.pattern_used.value,
            assisted=assisted,
            warnings=warnings,
        )
        if seg.confidence == ConfidenceTier.low:
            intent.warn(f"sentence structure guessed ({seg.pattern_used.value})")
        self._apply_payment(seg, intent)

        profile = intent.customer.profile
        ambiguous: List[AmbiguousMatch] = []
        unknown: List[UnknownItem] = []
        signals = [seg.confidence, customer_tier(intent.customer.kind)]
        for hint in hints:
            for w in hint.warnings:
                intent.warn(w)
            resolution = matcher.resolve(hint, state.catalog)
            if resolution.status == MatchStatus.ambiguous:
                ambiguous.append(AmbiguousMatch(hint=hint.text, candidates=resolution.candidates))
            elif resolution.status == MatchStatus.unknown:
                unknown.append(UnknownItem(hint=hint.text, keyword=hint.keyword))
            else:
                intent.items.append(self._line_item(hint, resolution, profile, intent))
                signals.append(hint_tier(hint, resolution.best.entry))

        unresolved = len(ambiguous) + len(unknown)
        intent.confidence, intent.match_rate = aggregate(
            intent.items, unresolved, transcription_confidence=transcription_confidence,
            capped=assisted, signals=signals)
        if assisted:
            intent.warn("text corrected by assistant")
        intent.total = intent.compute_total()

        if unresolved:
            suggestions = []
            if profile is not None and not intent.items:
                suggestions = [h.item_name for h in profile.most_common_items(3)]
            logger.info("disambiguation needed for %s: %d ambiguous, %d unknown",
                        mask_pii(intent.raw_text), len(ambiguous), len(unknown))
            return Disambiguation(draft=intent, ambiguous=ambiguous, unknown=unknown, suggestions=suggestions)

        intent = apply_corrections(intent, policy)
        bad = [i for i in intent.items if i.quantity < 1]
        if bad:
            return self._failure(FailureReason.invalid_quantity,
                                 f"quantity for {bad[0].entry.name} must be at least 1", intent.warnings)
        for item in intent.items:
            if item.quantity > Config.UNUSUAL_QUANTITY_THRESHOLD:
                intent.warn(f"unusual quantity {item.quantity} for {item.entry.name}")
        if intent.items and intent.total == 0:
            intent.warn("order total is zero")

        verdict = self.engine.decide(intent, intent.total)
        shortfalls = stock_shortfalls(intent)
        logger.debug("intent %s -> %s (%s)", intent.pattern_used, verdict.auto, verdict.reason)
        return ParseSuccess(intent=intent, verdict=verdict, stock_shortfalls=shortfalls)

    def _resolve_customer(self, seg: Segment, state: CacheState, warnings: List[str]) -> ResolvedCustomer:
        phrase = seg.customer_phrase
        if is_unspecified(phrase):
            warnings.append("no customer named; recorded as unspecified")
            return ResolvedCustomer(kind=CustomerKind.unspecified, name=Config.UNSPECIFIED_CUSTOMER)

        found = state.customers.find(phrase)
        if found is not None:
            profile, score = found
            return ResolvedCustomer(kind=CustomerKind.known, name=profile.name, profile=profile, similarity=score)

        if self.engine.policy.allow_new_customer_auto_create:
            name = _display_name(phrase)
            warnings.append(f"new customer '{name}'")
            return ResolvedCustomer(kind=CustomerKind.new, name=name)
        warnings.append(f"customer '{phrase}' not found; recorded as unspecified")
        return ResolvedCustomer(kind=CustomerKind.unspecified, name=Config.UNSPECIFIED_CUSTOMER)

    def _apply_payment(self, seg: Segment, intent: OrderIntent):
        if seg.payment is None:
            intent.payment = PaymentStatus.unpaid
            intent.payment_confidence = ConfidenceTier.low
            intent.warn("payment not mentioned; marked unpaid")
            return
        intent.payment = seg.payment
        intent.payment_confidence = seg.payment_confidence
        if seg.payment_tie_break:
            intent.warn(f"payment read as {seg.payment.value} from where the payment word appears")

    def _line_item(self, hint: ItemHint, resolution: matcher.MatchResolution,
                   profile: Optional[CustomerProfile], intent: OrderIntent) -> LineItem:
        best = resolution.best
        entry = best.entry
        quality = resolution.quality
        history = profile.item_history.get(entry.id) if profile is not None else None
        if history is not None and quality == MatchQuality.medium:
            quality = MatchQuality.high

        if hint.quantity is not None:
            quantity, source = hint.quantity, QuantitySource.stated
        elif history is not None:
            quantity, source = history.average_quantity, QuantitySource.history
            intent.warn(f"quantity suggested from history for {entry.name}: {quantity}")
        else:
            quantity, source = 1, QuantitySource.default
            intent.warn(f"quantity defaulted to 1 for {entry.name}")

        if hint.price is not None and abs(hint.price - entry.price) > 1e-6:
            intent.warn(f"stated price {hint.price:g} differs from catalog price {entry.price:g} for {entry.name}")

        return LineItem(
            entry=entry,
            quantity=quantity,
            unit_price=entry.price,
            quality=quality,
            score=best.score,
            historical=history is not None,
            quantity_source=source,
        )
