"""Customer resolver and order-history learning.

``CustomerRegistry.build`` folds recent orders into per-customer profiles
(item frequency, quantities, payment record). ``resolve`` maps a heard
customer phrase to the closest profile above the acceptance threshold.
"""
from typing import Dict, Iterable, List, Optional, Tuple

from ..app.config import Config
from ..nlu.normalizer import clean_text, normalize, similarity
from ..nlu.rules import HONORIFICS_LATIN, HONORIFICS_THAI
from ..schemas.order_models import (
    CustomerProfile,
    ItemHistory,
    OrderRecord,
    OrderStatus,
    PaymentStatus,
)
from ..utils.logger import get_logger

logger = get_logger(__name__)

_THAI_PREFIXES = sorted(HONORIFICS_THAI, key=len, reverse=True)


def strip_honorific(name: str) -> str:
    """Normalized name without a leading title (``Mr. Somchai`` -> ``somchai``)."""
    words = clean_text(name).split()
    if len(words) > 1 and words[0] in HONORIFICS_LATIN:
        words = words[1:]
    stripped = " ".join(words)
    for prefix in _THAI_PREFIXES:
        if stripped.startswith(prefix) and len(stripped) > len(prefix):
            stripped = stripped[len(prefix):]
            break
    return normalize(stripped)


def is_unspecified(name: Optional[str]) -> bool:
    return not name or normalize(name) == normalize(Config.UNSPECIFIED_CUSTOMER)


class CustomerRegistry:
    """Read-only set of customer profiles for one cache load."""

    def __init__(self, profiles: Iterable[CustomerProfile] = (), version: int = 0):
        self.profiles: Tuple[CustomerProfile, ...] = tuple(sorted(profiles, key=lambda p: p.normalized_name))
        self.version = version
        self._stripped = tuple(strip_honorific(p.name) for p in self.profiles)

    def __len__(self) -> int:
        return len(self.profiles)

    def names(self) -> List[str]:
        return [p.name for p in self.profiles]

    def find(self, phrase: str, threshold: float = Config.CUSTOMER_MATCH_THRESHOLD
             ) -> Optional[Tuple[CustomerProfile, float]]:
        """Best profile and its similarity, or None below ``threshold``."""
        key = normalize(phrase)
        if not key or not self.profiles:
            return None
        key_stripped = strip_honorific(phrase)
        best: Optional[CustomerProfile] = None
        best_score = 0.0
        for profile, stripped in zip(self.profiles, self._stripped):
            score = similarity(key, profile.normalized_name)
            if key_stripped and stripped:
                score = max(score, similarity(key_stripped, stripped))
            if score > best_score:
                best, best_score = profile, score
        if best is None or best_score < threshold:
            logger.debug("customer %r not found (best %.2f)", phrase, best_score)
            return None
        logger.debug("customer %r -> %s (%.2f)", phrase, best.name, best_score)
        return best, best_score

    @classmethod
    def build(cls, customers: Iterable[CustomerProfile], history: Iterable[OrderRecord],
              version: int = 0) -> "CustomerRegistry":
        """Fold order history into profiles; customers only seen in history get one too."""
        base: Dict[str, CustomerProfile] = {}
        for c in customers:
            key = c.normalized_name or normalize(c.name)
            if key:
                base[key] = c

        learned: Dict[str, dict] = {}
        for order in history:
            if order.status == OrderStatus.cancelled or is_unspecified(order.customer):
                continue
            key = normalize(order.customer)
            acc = learned.setdefault(key, {"name": order.customer, "orders": 0, "unpaid": 0, "items": {}})
            acc["orders"] += 1
            if order.payment in (PaymentStatus.unpaid, PaymentStatus.credit):
                acc["unpaid"] += 1
            for line in order.lines:
                item = acc["items"].setdefault(line.item_id, {"name": line.item_name, "count": 0, "qty": []})
                item["count"] += 1
                item["qty"].append(line.quantity)

        profiles = []
        for key in set(base) | set(learned):
            known = base.get(key)
            acc = learned.get(key)
            if acc is None:
                profiles.append(known)
                continue
            history_map = {
                item_id: ItemHistory(item_id=item_id, item_name=h["name"], count=h["count"], quantities=h["qty"])
                for item_id, h in acc["items"].items()
            }
            total = acc["orders"] + (known.total_orders if known else 0)
            unpaid = acc["unpaid"] + (known.unpaid_orders if known else 0)
            profiles.append(CustomerProfile(
                id=known.id if known else None,
                name=known.name if known else acc["name"],
                normalized_name=key,
                phone=known.phone if known else None,
                item_history=history_map,
                total_orders=total,
                unpaid_orders=unpaid,
                reliable_payer=total >= Config.RELIABLE_PAYER_MIN_ORDERS and unpaid == 0,
            ))
        logger.info("customer registry built: %d profiles from %d learned", len(profiles), len(learned))
        return cls(profiles, version=version)


def resolve(customer_phrase: Optional[str], registry: CustomerRegistry,
            threshold: float = Config.CUSTOMER_MATCH_THRESHOLD) -> Optional[CustomerProfile]:
    if is_unspecified(customer_phrase):
        return None
    found = registry.find(customer_phrase, threshold=threshold)
    return found[0] if found else None


EMPTY_REGISTRY = CustomerRegistry(())
