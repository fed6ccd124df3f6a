"""BaseAgent interface for all command handlers."""
from abc import ABC, abstractmethod
from typing import List, Optional

from ..app.cache import CacheState
from ..schemas.io_models import FailureReason, InterpretResult, ParseFailure
from ..utils.logger import get_logger

logger = get_logger(__name__)


class BaseAgent(ABC):
    name: str = "base"

    @abstractmethod
    def handle(self, text: str, state: CacheState, **kwargs) -> InterpretResult:
        """Return a structured result; no I/O and no reply prose here."""
        ...

    def _failure(self, reason: FailureReason, detail: str, warnings: Optional[List[str]] = None) -> ParseFailure:
        logger.debug("[%s] failure %s: %s", self.name, reason.value, detail)
        return ParseFailure(reason=reason, detail=detail, warnings=list(warnings or []))
