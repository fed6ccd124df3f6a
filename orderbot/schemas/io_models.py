"""Pydantic models for API I/O and agent contracts.

Interpretation outcomes are a tagged union keyed on ``kind`` so every consumer
switches over a closed set: ParseSuccess | Disambiguation | ParseFailure |
StockAdjustmentResult.
"""
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from .order_models import (
    AutomationVerdict,
    CatalogEntry,
    CatalogMatch,
    OrderIntent,
    StockAdjustmentCommand,
    StockShortfall,
)


class ResultKind(str, Enum):
    success = "success"
    disambiguation = "disambiguation"
    failure = "failure"
    stock_adjustment = "stock_adjustment"


class FailureReason(str, Enum):
    empty_input = "empty_input"
    spam = "spam"
    no_pattern = "no_pattern"
    no_items = "no_items"
    too_many_items = "too_many_items"
    quantity_exceeds_max = "quantity_exceeds_max"
    invalid_quantity = "invalid_quantity"


class AmbiguousMatch(BaseModel):
    hint: str
    candidates: List[CatalogMatch]


class UnknownItem(BaseModel):
    hint: str
    keyword: str


class ParseSuccess(BaseModel):
    kind: Literal[ResultKind.success] = ResultKind.success
    intent: OrderIntent
    verdict: AutomationVerdict
    stock_shortfalls: List[StockShortfall] = Field(default_factory=list)


class Disambiguation(BaseModel):
    kind: Literal[ResultKind.disambiguation] = ResultKind.disambiguation
    draft: OrderIntent
    ambiguous: List[AmbiguousMatch] = Field(default_factory=list)
    unknown: List[UnknownItem] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)


class ParseFailure(BaseModel):
    kind: Literal[ResultKind.failure] = ResultKind.failure
    reason: FailureReason
    detail: str = ""
    warnings: List[str] = Field(default_factory=list)


class StockAdjustmentResult(BaseModel):
    kind: Literal[ResultKind.stock_adjustment] = ResultKind.stock_adjustment
    command: StockAdjustmentCommand
    applied: bool
    reason: str
    entry: Optional[CatalogEntry] = None
    previous_stock: Optional[int] = None
    new_stock: Optional[int] = None
    candidates: List[CatalogMatch] = Field(default_factory=list)


InterpretResult = Annotated[
    Union[ParseSuccess, Disambiguation, ParseFailure, StockAdjustmentResult],
    Field(discriminator="kind"),
]


class InterpretRequest(BaseModel):
    text: str
    transcription_confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)


class CommitRequest(BaseModel):
    intent: OrderIntent
    verdict: Optional[AutomationVerdict] = None  # as returned by /interpret


class CommitResponse(BaseModel):
    order_id: str
    total: float


class CancelResponse(BaseModel):
    order_id: str
    cancelled: bool


class ReloadResponse(BaseModel):
    catalog_entries: int
    customers: int
    stale: bool = False


class StatsResponse(BaseModel):
    policy: str
    stats: Dict[str, Any]
