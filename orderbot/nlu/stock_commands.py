"""Stock-adjustment command parsing and command-type detection."""
import re
from typing import List, Optional, Tuple

from ..schemas.order_models import CommandType, StockAdjustmentCommand, StockOperation
from . import rules
from .normalizer import clean_text

_UNIT = rules.alternation(rules.UNIT_WORDS)
_ORDER_VERB = rules.alternation(rules.ORDER_VERBS + rules.ORDER_VERBS_THAI)


def _verb_patterns(verbs: List[str], operation: StockOperation) -> List[Tuple[re.Pattern, StockOperation]]:
    latin = rules.alternation([v for v in verbs if not rules.is_thai(v)])
    thai = "(?:" + "|".join(v for v in verbs if rules.is_thai(v)) + ")"
    return [
        (re.compile(rf"^{latin}\s+(?P<n>\d+)\s+(?:{_UNIT}\s+)?(?:of\s+)?(?P<item>.+?)$"), operation),
        (re.compile(rf"^{latin}\s+(?P<item>.+?)\s+(?:by\s+|to\s+)?(?P<n>\d+)(?:\s+{_UNIT})?$"), operation),
        (re.compile(rf"^{thai}\s*(?P<item>.+?)\s*(?P<n>\d+)(?:\s*{_UNIT})?$"), operation),
    ]


PATTERNS: List[Tuple[re.Pattern, StockOperation]] = (
    [(re.compile(rf"^(?:ปรับ(?:สต็อก)?)\s*(?P<item>.+?)\s*เหลือ\s*(?P<n>\d+)"), StockOperation.set)]
    + _verb_patterns(rules.STOCK_ADD_VERBS, StockOperation.add)
    + _verb_patterns(rules.STOCK_SUBTRACT_VERBS, StockOperation.subtract)
    + _verb_patterns(rules.STOCK_SET_VERBS, StockOperation.set)
)
LEFT_PATTERN = re.compile(
    rf"^(?P<item>.+?)\s*{rules.alternation(rules.STOCK_LEFT_WORDS)}\s*(?P<n>\d+)(?:\s*{_UNIT})?$"
)


def parse_adjustment(text: str) -> Optional[StockAdjustmentCommand]:
    """``add ice tube 20`` / ``reduce coke can by 5`` / ``ice tube left 3`` -> command, else None."""
    t = clean_text(text)
    if not t:
        return None
    for pattern, operation in PATTERNS:
        m = pattern.match(t)
        if m:
            return _command(m, operation, text)
    if not re.search(_ORDER_VERB, t):
        m = LEFT_PATTERN.match(t)
        if m:
            return _command(m, StockOperation.set, text)
    return None


def _command(m: re.Match, operation: StockOperation, raw: str) -> Optional[StockAdjustmentCommand]:
    item = m.group("item").strip(" ,")
    if not item:
        return None
    return StockAdjustmentCommand(operation=operation, item_phrase=item, quantity=int(m.group("n")), raw_text=raw)


def detect_command_type(text: str) -> CommandType:
    return CommandType.stock_adjustment if parse_adjustment(text) else CommandType.order
