"""Fuzzy matcher & scorer: rank catalog entries against an item hint.

Score per entry:

* +15 per hint keyword that overlaps an entry keyword (exact, or a fuzzy hit
  for keywords of 4+ characters)
* +20 when the normalized hint and entry name contain one another
* +100 for an exact price, else +40 within the price tolerance
* +10 when stock covers the hinted quantity (or 1)
* +3 / +2 tie-break for generally well-stocked entries

An entry needs a textual signal (overlap or containment) to be scored at all;
price and stock only rank candidates that already look like the product.
"""
from typing import List, Optional

from pydantic import BaseModel, Field

from ..app.config import Config
from ..nlu.normalizer import normalize, similarity
from ..schemas.order_models import CatalogEntry, CatalogMatch, ItemHint, MatchFactors, MatchQuality, MatchStatus
from ..utils.logger import get_logger
from .catalog_index import CatalogSnapshot

logger = get_logger(__name__)


class MatchResolution(BaseModel):
    status: MatchStatus
    best: Optional[CatalogMatch] = None
    quality: Optional[MatchQuality] = None
    candidates: List[CatalogMatch] = Field(default_factory=list)

    @property
    def matched(self) -> bool:
        return self.status == MatchStatus.matched


def _keyword_overlap(hint: ItemHint, entry: CatalogEntry, fuzzy_threshold: float) -> int:
    count = 0
    for kw in hint.keywords:
        if kw in entry.keywords:
            count += 1
        elif len(kw) >= Config.FUZZY_KEYWORD_MIN_LENGTH and any(
            len(ek) >= Config.FUZZY_KEYWORD_MIN_LENGTH and similarity(kw, ek) >= fuzzy_threshold
            for ek in entry.keywords
        ):
            count += 1
    return count


def score_entry(hint: ItemHint, entry: CatalogEntry,
                price_tolerance: float = Config.PRICE_TOLERANCE,
                fuzzy_threshold: float = Config.FUZZY_KEYWORD_SIMILARITY) -> Optional[CatalogMatch]:
    """Score one entry, or None when nothing in the text points at it."""
    factors = MatchFactors()
    factors.keyword_overlap = _keyword_overlap(hint, entry, fuzzy_threshold)

    hint_key = normalize(hint.keyword)
    entry_key = normalize(entry.name)
    if len(hint_key) >= 2 and entry_key and (hint_key in entry_key or entry_key in hint_key):
        factors.containment = True

    if not factors.keyword_overlap and not factors.containment:
        return None

    score = Config.KEYWORD_SCORE * factors.keyword_overlap
    if factors.containment:
        score += Config.CONTAINMENT_BONUS

    if hint.price is not None and hint.price > 0:
        delta = abs(entry.price - hint.price)
        factors.price_delta = round(delta, 2)
        if delta < 1e-6:
            factors.price_bonus = Config.PRICE_EXACT_BONUS
        elif delta <= price_tolerance * hint.price:
            factors.price_bonus = Config.PRICE_NEAR_BONUS
        score += factors.price_bonus

    if entry.stock >= (hint.quantity or 1):
        factors.stock_bonus = Config.STOCK_AVAILABLE_BONUS
        score += factors.stock_bonus

    if entry.stock > Config.HIGH_STOCK_LEVEL:
        factors.tie_break_bonus = Config.HIGH_STOCK_BONUS
    elif entry.stock > Config.MEDIUM_STOCK_LEVEL:
        factors.tie_break_bonus = Config.MEDIUM_STOCK_BONUS
    score += factors.tie_break_bonus

    return CatalogMatch(entry=entry, score=float(score), factors=factors)


def match(hint: ItemHint, snapshot: CatalogSnapshot,
          min_score: float = Config.MIN_MATCH_SCORE,
          price_tolerance: float = Config.PRICE_TOLERANCE) -> List[CatalogMatch]:
    """All entries of ``snapshot`` scoring at least ``min_score``, best first."""
    matches = []
    for entry in snapshot.entries:
        m = score_entry(hint, entry, price_tolerance=price_tolerance)
        if m is not None and m.score >= min_score:
            matches.append(m)
    matches.sort(key=lambda m: (-m.score, m.entry.name))
    return matches


def match_quality(hint: ItemHint, best: CatalogMatch,
                  high_score: float = Config.HIGH_MATCH_SCORE) -> MatchQuality:
    key = normalize(hint.keyword)
    if key and (key == normalize(best.entry.name) or (best.entry.sku and key == normalize(best.entry.sku))):
        return MatchQuality.exact
    if best.score >= high_score:
        return MatchQuality.high
    return MatchQuality.medium


def resolve(hint: ItemHint, snapshot: CatalogSnapshot,
            min_score: float = Config.MIN_MATCH_SCORE,
            margin: float = Config.AMBIGUITY_MARGIN,
            limit: int = Config.MAX_DISAMBIGUATION_CANDIDATES) -> MatchResolution:
    """Pick the single best entry, or report ambiguity / no match.

    Candidates within ``margin`` of the top score make the hint ambiguous; all
    of them (up to ``limit``) are returned for the caller to choose from.
    """
    matches = match(hint, snapshot, min_score=min_score)
    if not matches:
        logger.debug("no catalog match for %r", hint.keyword)
        return MatchResolution(status=MatchStatus.unknown)

    top = matches[0]
    near = [m for m in matches if top.score - m.score < margin][:limit]
    if len(near) > 1:
        logger.debug("ambiguous %r: %s", hint.keyword,
                     [(m.entry.name, m.score) for m in near])
        return MatchResolution(status=MatchStatus.ambiguous, candidates=near)

    quality = match_quality(hint, top)
    logger.debug("matched %r -> %s (%.0f, %s)", hint.keyword, top.entry.name, top.score, quality.value)
    return MatchResolution(status=MatchStatus.matched, best=top, quality=quality, candidates=matches[:limit])
