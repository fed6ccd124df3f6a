"""Stock Agent: parses ``add/remove/set <item> <n>`` commands and resolves the item.

The agent only computes the new stock level; the controller performs the
write and the cache reload.
"""
from typing import Optional

from ..app.cache import CacheState
from ..data import matcher
from ..data.catalog_index import extract_keywords
from ..nlu.normalizer import clean_text
from ..nlu.preprocess import Preprocessor
from ..nlu.stock_commands import parse_adjustment
from ..schemas.io_models import FailureReason, InterpretResult, StockAdjustmentResult
from ..schemas.order_models import CatalogEntry, ItemHint, MatchStatus, StockAdjustmentCommand, StockOperation
from ..utils.logger import get_logger
from .base_agent import BaseAgent

logger = get_logger(__name__)


def apply_operation(operation: StockOperation, current: int, quantity: int) -> int:
    if operation == StockOperation.add:
        return current + quantity
    if operation == StockOperation.subtract:
        return current - quantity
    return quantity


class StockAgent(BaseAgent):
    name = "stock"

    def __init__(self, preprocessor: Optional[Preprocessor] = None):
        self.preprocessor = preprocessor or Preprocessor()

    def handle(self, text: str, state: CacheState, **kwargs) -> InterpretResult:
        pre = self.preprocessor.preprocess_query(text)
        command = parse_adjustment(pre["preprocessed"])
        if command is None:
            return self._failure(FailureReason.no_pattern, "not a stock adjustment command")
        command = command.model_copy(update={"raw_text": pre["original"]})

        phrase = clean_text(command.item_phrase)
        hint = ItemHint(text=phrase, keyword=phrase, keywords=extract_keywords(phrase))
        resolution = matcher.resolve(hint, state.catalog)
        if resolution.status == MatchStatus.ambiguous:
            return self._result(command, False, f"'{command.item_phrase}' matches several items",
                                candidates=resolution.candidates)
        if resolution.status == MatchStatus.unknown:
            return self._result(command, False, f"no catalog item matches '{command.item_phrase}'")

        entry = resolution.best.entry
        new_stock = apply_operation(command.operation, entry.stock, command.quantity)
        if new_stock < 0:
            return self._result(command, False,
                                f"cannot remove {command.quantity} {entry.name}: only {entry.stock} in stock",
                                entry=entry)
        logger.debug("stock %s %s %d: %d -> %d", command.operation.value, entry.name,
                     command.quantity, entry.stock, new_stock)
        return self._result(command, False, "ready to apply", entry=entry, new_stock=new_stock)

    def _result(self, command: StockAdjustmentCommand, applied: bool, reason: str,
                entry: Optional[CatalogEntry] = None, new_stock: Optional[int] = None,
                candidates=None) -> StockAdjustmentResult:
        return StockAdjustmentResult(
            command=command,
            applied=applied,
            reason=reason,
            entry=entry,
            previous_stock=entry.stock if entry is not None else None,
            new_stock=new_stock,
            candidates=list(candidates or []),
        )
