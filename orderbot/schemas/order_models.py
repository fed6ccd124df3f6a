"""Order domain pydantic models with stricter types.

- Enums for every closed vocabulary (confidence tier, payment, match quality,
  customer kind, command type) so invalid values are rejected at the boundary.
- Catalog and customer records are frozen; they are built once per snapshot
  and replaced wholesale on reload.
"""
from enum import Enum
from typing import Dict, FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ConfidenceTier(str, Enum):
    high = "high"
    medium = "medium"
    low = "low"

    @property
    def rank(self) -> int:
        return {"low": 0, "medium": 1, "high": 2}[self.value]

    @classmethod
    def weakest(cls, *tiers: "ConfidenceTier") -> "ConfidenceTier":
        return min(tiers, key=lambda t: t.rank)


class PaymentStatus(str, Enum):
    paid = "paid"
    unpaid = "unpaid"
    credit = "credit"


class MatchQuality(str, Enum):
    exact = "exact"
    high = "high"
    medium = "medium"


class MatchStatus(str, Enum):
    matched = "matched"
    ambiguous = "ambiguous"
    unknown = "unknown"


class QuantitySource(str, Enum):
    stated = "stated"
    history = "history"
    default = "default"


class CustomerKind(str, Enum):
    known = "known"
    new = "new"
    unspecified = "unspecified"


class CommandType(str, Enum):
    order = "order"
    stock_adjustment = "stock_adjustment"


class StockOperation(str, Enum):
    add = "add"
    subtract = "subtract"
    set = "set"


class OrderStatus(str, Enum):
    pending = "pending"
    confirmed = "confirmed"
    cancelled = "cancelled"


class CatalogEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    unit: str = ""
    price: float
    cost: float = 0.0
    stock: int = 0
    category: str = ""
    sku: Optional[str] = None
    keywords: FrozenSet[str] = frozenset()


class ItemHistory(BaseModel):
    model_config = ConfigDict(frozen=True)

    item_id: str
    item_name: str
    count: int = 0
    quantities: List[int] = Field(default_factory=list)

    @property
    def average_quantity(self) -> int:
        if not self.quantities:
            return 1
        return max(1, int(sum(self.quantities) / len(self.quantities) + 0.5))


class CustomerProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    name: str
    normalized_name: str
    phone: Optional[str] = None
    item_history: Dict[str, ItemHistory] = Field(default_factory=dict)
    total_orders: int = 0
    unpaid_orders: int = 0
    reliable_payer: bool = False

    def most_common_items(self, limit: int = 3) -> List[ItemHistory]:
        ranked = sorted(self.item_history.values(), key=lambda h: (-h.count, h.item_name))
        return ranked[:limit]


class OrderRecordLine(BaseModel):
    item_id: str
    item_name: str
    quantity: int
    unit_price: float = 0.0


class OrderRecord(BaseModel):
    """One historical order as read back from the store."""
    id: Optional[str] = None
    customer: Optional[str] = None
    payment: PaymentStatus = PaymentStatus.unpaid
    status: OrderStatus = OrderStatus.confirmed
    lines: List[OrderRecordLine] = Field(default_factory=list)


class SegmentPattern(str, Enum):
    honorific = "honorific"
    generic = "generic"
    product_guard = "product_guard"
    verb_first = "verb_first"


class Segment(BaseModel):
    """Structural split of an utterance before any catalog lookup."""
    customer_phrase: Optional[str] = None
    item_phrases: List[str] = Field(default_factory=list)
    payment: Optional[PaymentStatus] = None
    payment_confidence: ConfidenceTier = ConfidenceTier.low
    payment_tie_break: bool = False
    delivery_person: Optional[str] = None
    delivery_first: bool = False
    pattern_used: SegmentPattern
    confidence: ConfidenceTier

    @property
    def item_phrase(self) -> str:
        return ", ".join(self.item_phrases)


class ItemHint(BaseModel):
    text: str
    keyword: str
    keywords: FrozenSet[str] = frozenset()
    price: Optional[float] = None
    quantity: Optional[int] = None
    unit: Optional[str] = None
    confidence: ConfidenceTier = ConfidenceTier.low
    warnings: List[str] = Field(default_factory=list)


class MatchFactors(BaseModel):
    keyword_overlap: int = 0
    containment: bool = False
    price_delta: Optional[float] = None
    price_bonus: int = 0
    stock_bonus: int = 0
    tie_break_bonus: int = 0


class CatalogMatch(BaseModel):
    entry: CatalogEntry
    score: float
    factors: MatchFactors


class LineItem(BaseModel):
    entry: CatalogEntry
    quantity: int
    unit_price: float
    quality: MatchQuality
    score: float = 0.0
    historical: bool = False
    quantity_source: QuantitySource = QuantitySource.stated
    corrected: bool = False

    @property
    def subtotal(self) -> float:
        return round(self.quantity * self.unit_price, 2)


class ResolvedCustomer(BaseModel):
    kind: CustomerKind
    name: str
    profile: Optional[CustomerProfile] = None
    similarity: float = 0.0


class OrderIntent(BaseModel):
    raw_text: str = ""
    customer: ResolvedCustomer
    items: List[LineItem] = Field(default_factory=list)
    payment: PaymentStatus = PaymentStatus.unpaid
    payment_confidence: ConfidenceTier = ConfidenceTier.low
    delivery_person: Optional[str] = None
    confidence: ConfidenceTier = ConfidenceTier.low
    match_rate: float = 0.0
    total: float = 0.0
    pattern_used: str = ""
    assisted: bool = False
    warnings: List[str] = Field(default_factory=list)

    def warn(self, message: str):
        if message not in self.warnings:
            self.warnings.append(message)

    def compute_total(self) -> float:
        return round(sum(i.subtotal for i in self.items), 2)


class AutomationPolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    allowed_tiers: FrozenSet[ConfidenceTier]
    monetary_cap: float
    require_known_customer: bool = False
    require_exact_match: bool = False
    allow_new_customer_auto_create: bool = False
    smart_correction: bool = False


class AutomationVerdict(BaseModel):
    auto: bool
    reason: str
    policy: str
    total: float
    gate: Optional[str] = None


class StockShortfall(BaseModel):
    """InsufficientStock: a line asks for more than is on hand."""
    item_id: str
    item_name: str
    requested: int
    available: int


class StockAdjustmentCommand(BaseModel):
    operation: StockOperation
    item_phrase: str
    quantity: int
    raw_text: str = ""
