"""Heuristics for matching a free-text marketplace SKU to catalog products."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import SkuMatchStatus
from app.models.product import Product

PARTIAL_MATCH_LIMIT = 25
MAX_CANDIDATES = 10

_SEPARATORS = re.compile(r"[\s\-_]+")


@dataclass(frozen=True)
class SkuMatchers:
    exact: List[str]
    separator_pattern: str
    no_separator_pattern: str


@dataclass
class SkuMatchResult:
    sku: str
    status: SkuMatchStatus
    product: Optional[Product] = None
    candidates: List[Product] = field(default_factory=list)
    tier: Optional[str] = None

    @property
    def product_id(self) -> Optional[int]:
        return self.product.id if self.product is not None else None


def _normalize(value: Optional[str]) -> str:
    return (value or "").strip()


def build_sku_matchers(raw: str) -> SkuMatchers:
    """
    Build the three lookup forms of a SKU.

    ``AA-bc 0123`` gives exact candidates {``AA-bc 0123``, ``AA-BC 0123``}
    (leading zeros only matter when the SKU starts with them), the
    separator-tolerant pattern ``%AA%BC%0123%`` and the no-separator pattern
    ``%AABC0123%``.
    """
    base = _normalize(raw)
    upper = base.upper()

    exact: List[str] = []
    for candidate in (base, upper, upper.lstrip("0")):
        if candidate and candidate not in exact:
            exact.append(candidate)

    return SkuMatchers(
        exact=exact,
        separator_pattern=f"%{_SEPARATORS.sub('%', upper)}%",
        no_separator_pattern=f"%{_SEPARATORS.sub('', upper)}%",
    )


def _prefer_parents(sku: str, products: Sequence[Product], tier: str) -> SkuMatchResult:
    if len(products) == 1:
        return SkuMatchResult(sku=sku, status=SkuMatchStatus.MATCHED, product=products[0], candidates=list(products), tier=tier)

    parents = [p for p in products if p.parent_id is None]
    if len(parents) == 1:
        return SkuMatchResult(sku=sku, status=SkuMatchStatus.MATCHED, product=parents[0], candidates=parents, tier=tier)

    # Ambiguous: hand the choice back rather than guessing
    candidates = (parents or list(products))[:MAX_CANDIDATES]
    return SkuMatchResult(sku=sku, status=SkuMatchStatus.MULTIPLE_MATCHES, candidates=candidates, tier=tier)


async def match_catalog_sku(db: AsyncSession, sku: str) -> SkuMatchResult:
    """
    Find the catalog product a free-text SKU refers to.

    Tiers run in order and stop at the first one returning rows: exact
    match, separator-tolerant partial match, then partial match with every
    separator removed. When several products match, parent products win;
    more than one parent (or no parent at all) is reported as
    ``multiple_matches``.
    """
    sku = _normalize(sku)
    if not sku:
        return SkuMatchResult(sku=sku, status=SkuMatchStatus.NOT_FOUND)

    matchers = build_sku_matchers(sku)

    tiers = [("exact", select(Product).where(Product.sku.in_(matchers.exact)))]
    # A SKU made only of separators would turn into a match-everything pattern
    if matchers.no_separator_pattern != "%%":
        tiers.extend([
            ("separator", select(Product).where(Product.sku.ilike(matchers.separator_pattern)).limit(PARTIAL_MATCH_LIMIT)),
            ("no_separator", select(Product).where(Product.sku.ilike(matchers.no_separator_pattern)).limit(PARTIAL_MATCH_LIMIT)),
        ])

    for tier, stmt in tiers:
        result = await db.execute(stmt.order_by(Product.id))
        products = list(result.scalars().all())
        if products:
            return _prefer_parents(sku, products, tier)

    return SkuMatchResult(sku=sku, status=SkuMatchStatus.NOT_FOUND)
