"""Controller / Orchestrator: routes utterances to agents and owns all I/O.

Agents are synchronous and pure. Everything that waits on a collaborator
(cache reloads, the completion provider, store writes) happens here, so the
event loop is never held by a lock across a suspension point.
"""
import asyncio
from typing import Dict, Optional

from ..agents.base_agent import BaseAgent
from ..agents.order_agent import OrderAgent
from ..agents.stock_agent import StockAgent
from ..automation.engine import AutomationEngine, get_policy
from ..automation.monitor import AutomationMonitor
from ..data.store import SqlOrderStore
from ..nlu.preprocess import Preprocessor
from ..nlu.stock_commands import detect_command_type
from ..schemas.io_models import (
    CancelResponse,
    CommitResponse,
    Disambiguation,
    FailureReason,
    InterpretResult,
    ParseFailure,
    ReloadResponse,
    StatsResponse,
    StockAdjustmentResult,
)
from ..schemas.order_models import CommandType, OrderIntent, StockOperation
from ..utils.errors import ProviderUnavailable
from ..utils.logger import get_logger
from ..utils.security import mask_pii
from .cache import CacheService, CacheState
from .completion import TranscriptCorrector, get_completion_client

logger = get_logger(__name__)

ASSISTED_WARNING = "text corrected by assistant"
ASSISTANT_DOWN_WARNING = "assistant unavailable"


class Controller:
    def __init__(self, store=None, cache: Optional[CacheService] = None,
                 engine: Optional[AutomationEngine] = None,
                 corrector: Optional[TranscriptCorrector] = None):
        self.store = store or SqlOrderStore()
        self.cache = cache or CacheService(self.store)
        if engine is None:
            policy = get_policy()
            engine = AutomationEngine(policy, AutomationMonitor(namespace=policy.name))
        self.engine = engine
        self.monitor = engine.monitor or AutomationMonitor(namespace=engine.policy.name, use_redis=False)
        if engine.monitor is None:
            engine.monitor = self.monitor
        self.corrector = corrector
        self.preprocessor = Preprocessor()
        self.agents: Dict[CommandType, BaseAgent] = {
            CommandType.order: OrderAgent(engine, preprocessor=self.preprocessor),
            CommandType.stock_adjustment: StockAgent(preprocessor=self.preprocessor),
        }

    @classmethod
    def from_config(cls) -> "Controller":
        client = get_completion_client()
        return cls(corrector=TranscriptCorrector(client) if client is not None else None)

    def route(self, text: str) -> CommandType:
        return detect_command_type(self.preprocessor.preprocess_query(text)["preprocessed"])

    # ----------------------------------------------------------- interpret
    async def interpret(self, text: str, transcription_confidence: Optional[float] = None) -> InterpretResult:
        state = await self.cache.ensure_fresh()
        command = self.route(text)
        logger.debug("routing %r to %s", mask_pii(text), command.value)
        result = self.agents[command].handle(text, state, transcription_confidence=transcription_confidence)

        if isinstance(result, StockAdjustmentResult):
            return await self._apply_stock(result)
        if self.corrector is not None and self._needs_assist(result):
            return await self._assist(text, state, result, transcription_confidence)
        return result

    def _needs_assist(self, result: InterpretResult) -> bool:
        if isinstance(result, ParseFailure):
            return result.reason == FailureReason.no_pattern
        return isinstance(result, Disambiguation) and bool(result.unknown)

    async def _assist(self, text: str, state: CacheState, original: InterpretResult,
                      transcription_confidence: Optional[float]) -> InterpretResult:
        try:
            corrected = await self.corrector.correct(text, state.catalog.names(), state.customers.names())
        except ProviderUnavailable as e:
            logger.warning("assisted correction skipped: %s", e)
            return _with_warning(original, ASSISTANT_DOWN_WARNING)
        if corrected is None:
            return original

        retry = self.agents[CommandType.order].handle(
            corrected, state, transcription_confidence=transcription_confidence, assisted=True)
        if isinstance(retry, ParseFailure):
            logger.info("assisted text still did not parse (%s)", retry.reason.value)
            return original
        return retry

    async def _apply_stock(self, result: StockAdjustmentResult) -> StockAdjustmentResult:
        if result.entry is None or result.new_stock is None:
            return result
        command = result.command
        try:
            if command.operation == StockOperation.set:
                await asyncio.to_thread(self.store.update_stock, result.entry.id, result.new_stock)
                new_stock = result.new_stock
            else:
                delta = command.quantity if command.operation == StockOperation.add else -command.quantity
                new_stock = await asyncio.to_thread(self.store.adjust_stock, result.entry.id, delta)
        except ProviderUnavailable as e:
            logger.warning("stock adjustment not applied: %s", e)
            return result.model_copy(update={"reason": "store unavailable; stock not changed"})
        except KeyError:
            return result.model_copy(update={"reason": f"{result.entry.name} is no longer in the catalog"})
        except ValueError:
            await self.cache.reload()
            return result.model_copy(update={
                "reason": f"cannot remove {command.quantity} {result.entry.name}: not enough in stock",
                "new_stock": None,
            })
        await self.cache.reload()
        previous = result.previous_stock if command.operation == StockOperation.set else new_stock - delta
        logger.info("stock of %s: %d -> %d", result.entry.name, previous, new_stock)
        return result.model_copy(update={
            "applied": True,
            "previous_stock": previous,
            "new_stock": new_stock,
            "reason": f"{result.entry.name} stock {previous} -> {new_stock}",
        })

    # ------------------------------------------------------------ execution
    async def commit(self, intent: OrderIntent, auto_approved: bool = False) -> CommitResponse:
        """Persist an order; the store takes its quantities out of stock in the same transaction.

        Raises:
            ValueError: when the intent has no line items
            ProviderUnavailable: when the store write fails
        """
        if not intent.items:
            raise ValueError("cannot commit an order without line items")
        order_id = await asyncio.to_thread(self.store.append_order, intent, auto_approved)
        if auto_approved:
            self.monitor.remember_auto(order_id)
        await self.cache.reload()
        return CommitResponse(order_id=order_id, total=intent.total)

    async def cancel(self, order_id: str) -> Optional[CancelResponse]:
        was_auto = await asyncio.to_thread(self.store.cancel_order, order_id)
        if was_auto is None:
            return None
        self.monitor.record_cancellation(order_id, was_auto=was_auto)
        await self.cache.reload()
        return CancelResponse(order_id=order_id, cancelled=True)

    # --------------------------------------------------------------- admin
    async def reload(self) -> ReloadResponse:
        state = await self.cache.reload()
        return ReloadResponse(catalog_entries=len(state.catalog), customers=len(state.customers), stale=state.stale)

    def stats(self) -> StatsResponse:
        return StatsResponse(policy=self.engine.policy.name, stats=self.monitor.stats())


def _with_warning(result: InterpretResult, message: str) -> InterpretResult:
    if isinstance(result, Disambiguation):
        draft = result.draft.model_copy(deep=True)
        draft.warn(message)
        return result.model_copy(update={"draft": draft})
    if isinstance(result, ParseFailure):
        if message in result.warnings:
            return result
        return result.model_copy(update={"warnings": result.warnings + [message]})
    return result
