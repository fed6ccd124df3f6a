"""Confidence aggregation across the resolved entities of one intent."""
from typing import Iterable, Optional, Tuple

from ..app.config import Config
from ..schemas.order_models import CatalogEntry, ConfidenceTier, CustomerKind, ItemHint, LineItem, MatchQuality

STRONG_QUALITIES = (MatchQuality.exact, MatchQuality.high)


def tier_for_match_rate(rate: float) -> ConfidenceTier:
    if rate >= 0.8:
        return ConfidenceTier.high
    if rate >= 0.5:
        return ConfidenceTier.medium
    return ConfidenceTier.low


def transcription_tier(score: Optional[float],
                       high: float = Config.TRANSCRIPTION_HIGH,
                       medium: float = Config.TRANSCRIPTION_MEDIUM) -> Optional[ConfidenceTier]:
    """Tier implied by an upstream transcription score, None when there is no score."""
    if score is None:
        return None
    if score >= high:
        return ConfidenceTier.high
    if score >= medium:
        return ConfidenceTier.medium
    return ConfidenceTier.low


def match_rate(items: Iterable[LineItem], unresolved: int = 0) -> float:
    items = list(items)
    total = len(items) + unresolved
    if total == 0:
        return 0.0
    strong = sum(1 for i in items if i.quality in STRONG_QUALITIES)
    return strong / total


def aggregate(items: Iterable[LineItem], unresolved: int = 0,
              transcription_confidence: Optional[float] = None,
              capped: bool = False,
              signals: Iterable[ConfidenceTier] = ()) -> Tuple[ConfidenceTier, float]:
    """Overall tier and the match rate it came from.

    Any unresolved item forces ``low``. An upstream transcription score can
    only lower the tier; ``capped`` (assistant-corrected text or a degraded
    provider path) holds it at ``medium`` at best. ``signals`` are the tiers
    of the other extraction steps (sentence pattern, price/quantity reading
    per line, customer resolution); the result is never above the weakest.
    """
    items = list(items)
    rate = match_rate(items, unresolved)
    tier = ConfidenceTier.low if unresolved or not items else tier_for_match_rate(rate)
    from_transcript = transcription_tier(transcription_confidence)
    if from_transcript is not None:
        tier = ConfidenceTier.weakest(tier, from_transcript)
    tier = ConfidenceTier.weakest(tier, *signals)
    if capped:
        tier = ConfidenceTier.weakest(tier, ConfidenceTier.medium)
    return tier, rate


def customer_tier(kind: CustomerKind) -> ConfidenceTier:
    """A registry match is trusted; a new or unnamed customer is not."""
    return ConfidenceTier.high if kind == CustomerKind.known else ConfidenceTier.medium


def hint_tier(hint: ItemHint, entry: CatalogEntry) -> ConfidenceTier:
    """How far the price/quantity reading of one line can be trusted.

    A number assigned by magnitude counts as read correctly when the price it
    produced is exactly the matched entry's price.
    """
    if (hint.confidence == ConfidenceTier.medium and hint.price is not None
            and abs(hint.price - entry.price) < 1e-6):
        return ConfidenceTier.high
    return hint.confidence
