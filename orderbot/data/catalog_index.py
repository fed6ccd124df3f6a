"""Catalog keyword index: per-entry search keywords plus an inverted keyword map.

A ``CatalogSnapshot`` is built in one go from the rows the store returns and
is never mutated afterwards; a reload builds a new snapshot and the cache
service swaps the reference.
"""
import time
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Set, Tuple

from ..nlu.normalizer import normalize, tokenize
from ..nlu.rules import PRODUCT_ALIASES
from ..schemas.order_models import CatalogEntry
from ..utils.logger import get_logger

logger = get_logger(__name__)

_ALIASES: Tuple[Tuple[str, FrozenSet[str]], ...] = tuple(
    (normalize(key), frozenset(normalize(v) for v in variants if normalize(v)))
    for key, variants in PRODUCT_ALIASES.items()
)


def extract_keywords(name: str, *extras: Optional[str]) -> FrozenSet[str]:
    """Keywords for a product name plus optional extra fields (category, unit, id, sku).

    Hints are keyed with the same function (name only) so both sides meet in
    the same keyword space.
    """
    normalized = normalize(name)
    keywords: Set[str] = set()
    if normalized:
        keywords.add(normalized)
    for token in tokenize(name):
        norm = normalize(token)
        if len(norm) >= 2:
            keywords.add(norm)
    for extra in extras:
        norm = normalize(extra or "")
        if norm:
            keywords.add(norm)
    for key, variants in _ALIASES:
        if key and key in normalized:
            keywords.add(key)
            keywords.update(variants)
    return frozenset(keywords)


class CatalogSnapshot:
    """Immutable view of one catalog load."""

    def __init__(self, entries: Iterable[CatalogEntry], version: int = 0):
        self.entries: Tuple[CatalogEntry, ...] = tuple(entries)
        self.version = version
        self.built_at = time.time()
        by_id: Dict[str, CatalogEntry] = {}
        keyword_map: Dict[str, Set[str]] = {}
        for entry in self.entries:
            by_id[entry.id] = entry
            for kw in entry.keywords:
                keyword_map.setdefault(kw, set()).add(entry.id)
        self.by_id: Mapping[str, CatalogEntry] = MappingProxyType(by_id)
        self.keyword_map: Mapping[str, FrozenSet[str]] = MappingProxyType(
            {k: frozenset(v) for k, v in keyword_map.items()}
        )
        self._names = frozenset(normalize(e.name) for e in self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, entry: CatalogEntry) -> bool:
        return self.by_id.get(entry.id) is entry

    def get(self, entry_id: str) -> Optional[CatalogEntry]:
        return self.by_id.get(entry_id)

    def is_product_keyword(self, token: str) -> bool:
        """True when ``token`` is a catalog keyword of length >= 3 or a whole product name."""
        norm = normalize(token)
        if not norm:
            return False
        if norm in self._names:
            return True
        return len(norm) >= 3 and norm in self.keyword_map

    def candidates_for(self, keywords: Iterable[str]) -> List[CatalogEntry]:
        ids: Set[str] = set()
        for kw in keywords:
            ids.update(self.keyword_map.get(kw, ()))
        return [self.by_id[i] for i in sorted(ids)]

    def names(self) -> List[str]:
        return [e.name for e in self.entries]


def build(entries: Iterable[CatalogEntry], version: int = 0) -> CatalogSnapshot:
    """Attach keywords to every entry and return a fresh snapshot.

    Entries are copied, never modified, so a snapshot that is still being read
    elsewhere keeps its own objects.
    """
    indexed = []
    for entry in entries:
        keywords = extract_keywords(entry.name, entry.category, entry.unit, entry.id, entry.sku)
        indexed.append(entry.model_copy(update={"keywords": keywords}))
    snapshot = CatalogSnapshot(indexed, version=version)
    logger.info("catalog index built: %d entries, %d keywords (v%d)",
                len(snapshot), len(snapshot.keyword_map), version)
    return snapshot


EMPTY_CATALOG = CatalogSnapshot(())
