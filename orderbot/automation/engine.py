"""Automation decision engine: auto-execute or hold an interpreted order.

Gates run in a fixed order and the first failure decides the verdict:

1. confidence tier allowed by the policy
2. total within the policy's monetary cap
3. known customer (only when the policy asks for one)
4. exact catalog matches (only when the policy asks for them)
5. stock covers every line, under every policy
"""
from typing import Dict, List, Optional

from ..app.config import Config
from ..schemas.order_models import (
    AutomationPolicy,
    AutomationVerdict,
    ConfidenceTier,
    CustomerKind,
    MatchQuality,
    OrderIntent,
    StockShortfall,
)
from ..utils.logger import get_logger
from .monitor import AutomationMonitor

logger = get_logger(__name__)

CONSERVATIVE = AutomationPolicy(
    name="conservative",
    allowed_tiers=frozenset({ConfidenceTier.high}),
    monetary_cap=5000,
    require_known_customer=True,
    require_exact_match=True,
)
BALANCED = AutomationPolicy(
    name="balanced",
    allowed_tiers=frozenset({ConfidenceTier.high, ConfidenceTier.medium}),
    monetary_cap=10000,
    allow_new_customer_auto_create=False,
)
AGGRESSIVE = AutomationPolicy(
    name="aggressive",
    allowed_tiers=frozenset({ConfidenceTier.high, ConfidenceTier.medium, ConfidenceTier.low}),
    monetary_cap=50000,
    allow_new_customer_auto_create=True,
    smart_correction=True,
)

POLICIES: Dict[str, AutomationPolicy] = {p.name: p for p in (CONSERVATIVE, BALANCED, AGGRESSIVE)}


def get_policy(name: Optional[str] = None) -> AutomationPolicy:
    key = (name or Config.AUTOMATION_MODE).lower()
    if key not in POLICIES:
        raise ValueError(f"unknown automation policy '{key}'")
    return POLICIES[key]


def stock_shortfalls(intent: OrderIntent) -> List[StockShortfall]:
    """Lines asking for more than the snapshot has on hand, summed per entry."""
    requested: Dict[str, int] = {}
    entries = {}
    for item in intent.items:
        requested[item.entry.id] = requested.get(item.entry.id, 0) + item.quantity
        entries[item.entry.id] = item.entry
    return [
        StockShortfall(item_id=eid, item_name=entries[eid].name, requested=qty, available=entries[eid].stock)
        for eid, qty in requested.items()
        if qty > entries[eid].stock
    ]


class AutomationEngine:
    def __init__(self, policy: Optional[AutomationPolicy] = None, monitor: Optional[AutomationMonitor] = None):
        self.policy = policy or get_policy()
        self.monitor = monitor

    def decide(self, intent: OrderIntent, total: Optional[float] = None,
               policy: Optional[AutomationPolicy] = None, order_ref: Optional[str] = None) -> AutomationVerdict:
        verdict = decide(intent, intent.total if total is None else total, policy or self.policy)
        if self.monitor is not None:
            self.monitor.record_decision(verdict, order_ref=order_ref)
        return verdict


def decide(intent: OrderIntent, total: float, policy: AutomationPolicy) -> AutomationVerdict:
    def hold(gate: str, reason: str) -> AutomationVerdict:
        logger.debug("hold at gate %s: %s", gate, reason)
        return AutomationVerdict(auto=False, reason=reason, policy=policy.name, total=total, gate=gate)

    if intent.confidence not in policy.allowed_tiers:
        return hold("confidence",
                    f"confidence {intent.confidence.value} not allowed under policy `{policy.name}`")

    if total > policy.monetary_cap:
        return hold("monetary_cap",
                    f"total {total:,.2f} exceeds cap {policy.monetary_cap:,.2f} of policy `{policy.name}`")

    if policy.require_known_customer and intent.customer.kind != CustomerKind.known:
        return hold("known_customer", f"customer '{intent.customer.name}' is not a known customer")

    if policy.require_exact_match:
        fuzzy = [i.entry.name for i in intent.items if i.quality != MatchQuality.exact]
        if fuzzy:
            return hold("exact_match", f"non-exact match for {', '.join(fuzzy)}")

    short = stock_shortfalls(intent)
    if short:
        detail = ", ".join(f"{s.item_name} ({s.requested} > {s.available})" for s in short)
        return hold("stock", f"insufficient stock: {detail}")

    return AutomationVerdict(auto=True, reason=f"approved under policy `{policy.name}`",
                             policy=policy.name, total=total)
