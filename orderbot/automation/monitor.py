#!/usr/bin/env python3
"""
Automation statistics tracker.

Counts auto-approved vs held decisions and recomputes auto accuracy when an
auto-approved order is later cancelled. Counters live in Redis when it is
reachable and in process memory otherwise. One monitor is constructed per
policy (or per test) and passed to the engine.
"""

from typing import Any, Dict, Optional, Set

import redis

from ..app.config import Config
from ..schemas.order_models import AutomationVerdict
from ..utils.logger import get_logger

logger = get_logger(__name__)

_COUNTERS = ("total", "auto", "held", "errors")


class AutomationMonitor:
    """Running automation statistics for one namespace."""

    def __init__(self, namespace: str = "default", use_redis: bool = Config.USE_REDIS,
                 redis_client: Optional[Any] = None):
        """Initialize with a Redis connection or fall back to in-memory counters."""
        self.namespace = namespace
        self.memory_counters: Dict[str, int] = {k: 0 for k in _COUNTERS}
        self.memory_auto_orders: Set[str] = set()
        self.redis_client = redis_client
        self.use_redis = redis_client is not None

        if self.redis_client is None and use_redis:
            try:
                client = redis.Redis(
                    host=Config.REDIS_HOST,
                    port=Config.REDIS_PORT,
                    db=Config.REDIS_DB,
                    decode_responses=True,
                    socket_connect_timeout=1,
                )
                client.ping()
                self.redis_client = client
                self.use_redis = True
                logger.info("automation stats stored in Redis (%s)", self._key("counters"))
            except redis.RedisError as e:
                logger.info("Redis not available (%s), keeping automation stats in memory", e)

    def _key(self, suffix: str) -> str:
        return f"automation:{self.namespace}:{suffix}"

    def _incr(self, counter: str, by: int = 1):
        if self.use_redis:
            try:
                self.redis_client.hincrby(self._key("counters"), counter, by)
                return
            except redis.RedisError as e:
                logger.warning("Redis write failed (%s), switching to in-memory stats", e)
                self._fall_back()
        self.memory_counters[counter] = self.memory_counters.get(counter, 0) + by

    def _fall_back(self):
        """Seed memory from whatever Redis still returns, then stop using it."""
        try:
            counters = self.redis_client.hgetall(self._key("counters")) or {}
            for k, v in counters.items():
                self.memory_counters[k] = int(v)
        except redis.RedisError as e:
            logger.debug("could not read counters back from Redis: %s", e)
        self.use_redis = False

    def _counters(self) -> Dict[str, int]:
        if self.use_redis:
            try:
                raw = self.redis_client.hgetall(self._key("counters")) or {}
                counters = {k: 0 for k in _COUNTERS}
                counters.update({k: int(v) for k, v in raw.items()})
                return counters
            except redis.RedisError as e:
                logger.warning("Redis read failed (%s), switching to in-memory stats", e)
                self._fall_back()
        return dict(self.memory_counters)

    def record_decision(self, verdict: AutomationVerdict, order_ref: Optional[str] = None):
        self._incr("total")
        if verdict.auto:
            self._incr("auto")
            if order_ref:
                self.remember_auto(order_ref)
            logger.info("auto %s: %s", order_ref or "-", verdict.reason)
        else:
            self._incr("held")
            self._incr(f"hold:{verdict.gate or 'other'}")
            logger.info("held %s: %s", order_ref or "-", verdict.reason)

    def remember_auto(self, order_ref: str):
        if self.use_redis:
            try:
                self.redis_client.sadd(self._key("auto_orders"), order_ref)
                return
            except redis.RedisError as e:
                logger.warning("Redis write failed (%s)", e)
                self._fall_back()
        self.memory_auto_orders.add(order_ref)

    def was_auto(self, order_ref: str) -> bool:
        if self.use_redis:
            try:
                return bool(self.redis_client.sismember(self._key("auto_orders"), order_ref))
            except redis.RedisError as e:
                logger.warning("Redis read failed (%s)", e)
                self._fall_back()
        return order_ref in self.memory_auto_orders

    def record_cancellation(self, order_ref: str, was_auto: Optional[bool] = None) -> float:
        """Count a reversed auto-approval as an error; returns the new accuracy."""
        if was_auto is None:
            was_auto = self.was_auto(order_ref)
        if was_auto:
            self._incr("errors")
            accuracy = self.accuracy
            logger.warning("auto error on %s, accuracy now %.1f%%", order_ref, accuracy)
        return self.accuracy

    @property
    def accuracy(self) -> float:
        c = self._counters()
        if not c["auto"]:
            return 100.0
        return (c["auto"] - c["errors"]) / c["auto"] * 100

    def recommendation(self) -> str:
        accuracy = self.accuracy
        if accuracy >= 95:
            return "aggressive"
        if accuracy >= 85:
            return "balanced"
        return "conservative"

    def stats(self) -> Dict[str, Any]:
        c = self._counters()
        holds = {k.split(":", 1)[1]: v for k, v in c.items() if k.startswith("hold:")}
        return {
            "total": c["total"],
            "auto_processed": c["auto"],
            "manual_review": c["held"],
            "errors": c["errors"],
            "auto_rate": round(c["auto"] / c["total"] * 100, 1) if c["total"] else 0.0,
            "accuracy": round(self.accuracy, 1),
            "holds_by_gate": holds,
            "recommendation": self.recommendation(),
            "backend": "redis" if self.use_redis else "memory",
        }

    def report(self) -> str:
        s = self.stats()
        lines = [
            f"Automation report ({self.namespace})",
            "=" * 40,
            f"Total orders: {s['total']}",
            f"Auto-processed: {s['auto_processed']} ({s['auto_rate']}%)",
            f"Manual review: {s['manual_review']}",
            f"Errors: {s['errors']}",
            f"Accuracy: {s['accuracy']}%",
            f"Recommended policy: {s['recommendation']}",
        ]
        return "\n".join(lines)
