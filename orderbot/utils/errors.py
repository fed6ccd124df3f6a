"""Exceptions raised by the collaborator adapters.

Interpretation outcomes (parse failure, ambiguity, unknown items, short stock)
are result models in ``schemas.io_models``; only collaborator failures travel
as exceptions, and the controller absorbs them.
"""
from typing import Optional


class OrderBotError(Exception):
    """Base class for project errors."""


class ProviderUnavailable(OrderBotError):
    """A persistence or completion provider failed or timed out."""

    def __init__(self, provider: str, message: str = "", cause: Optional[BaseException] = None):
        self.provider = provider
        self.cause = cause
        super().__init__(f"{provider} unavailable: {message or cause}")
