#!/usr/bin/env python3
"""
Catalog / customer cache with build-then-swap reloads.

Readers take ``cache.state`` once and use that object for the whole
interpretation. A reload fetches from the store, builds a complete new state
and replaces the single reference, so a reader sees either the old or the new
snapshot, never a mix. The lock only serialises reloads against each other.
"""

import asyncio
import time
from typing import Callable, NamedTuple, Optional

from ..data.catalog_index import EMPTY_CATALOG, CatalogSnapshot, build
from ..data.customer_resolver import EMPTY_REGISTRY, CustomerRegistry
from ..utils.errors import ProviderUnavailable
from ..utils.logger import get_logger
from .config import Config

logger = get_logger(__name__)


class CacheState(NamedTuple):
    catalog: CatalogSnapshot
    customers: CustomerRegistry
    version: int = 0
    loaded_at: Optional[float] = None
    stale: bool = False


class CacheService:
    """Holds the current catalog/customer snapshot for the process."""

    def __init__(self, store, ttl: float = Config.CACHE_TTL_SECONDS,
                 history_limit: int = Config.ORDER_HISTORY_LIMIT,
                 clock: Callable[[], float] = time.monotonic):
        self.store = store
        self.ttl = ttl
        self.history_limit = history_limit
        self.clock = clock
        self._state = CacheState(EMPTY_CATALOG, EMPTY_REGISTRY)
        self._lock = asyncio.Lock()
        self.last_error: Optional[ProviderUnavailable] = None

    @property
    def state(self) -> CacheState:
        return self._state

    @property
    def catalog(self) -> CatalogSnapshot:
        return self._state.catalog

    @property
    def customers(self) -> CustomerRegistry:
        return self._state.customers

    def is_expired(self) -> bool:
        loaded_at = self._state.loaded_at
        return loaded_at is None or self.clock() - loaded_at >= self.ttl

    async def ensure_fresh(self) -> CacheState:
        """Current state, reloading first when the TTL has run out."""
        if self.is_expired():
            return await self.reload(force=False)
        return self._state

    async def reload(self, force: bool = True) -> CacheState:
        """Rebuild and swap. Shielded so a cancelled caller does not abort the swap."""
        return await asyncio.shield(self._reload(force))

    async def _reload(self, force: bool) -> CacheState:
        async with self._lock:
            if not force and not self.is_expired():
                return self._state
            try:
                rows = await asyncio.to_thread(self.store.get_catalog)
                customers = await asyncio.to_thread(self.store.get_customers)
                history = await asyncio.to_thread(self.store.get_order_history, self.history_limit)
            except ProviderUnavailable as e:
                self.last_error = e
                logger.warning("cache reload failed (%s); serving snapshot v%d", e, self._state.version)
                self._state = self._state._replace(stale=True)
                return self._state

            version = self._state.version + 1
            new_state = CacheState(
                catalog=build(rows, version=version),
                customers=CustomerRegistry.build(customers, history, version=version),
                version=version,
                loaded_at=self.clock(),
            )
            self._state = new_state
            self.last_error = None
            logger.info("cache swapped to v%d (%d entries, %d customers)",
                        version, len(new_state.catalog), len(new_state.customers))
            return new_state
