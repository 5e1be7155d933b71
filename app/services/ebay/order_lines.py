"""Canonical order lines extracted from eBay order payloads.

Order payloads differ by endpoint version, so every concept is resolved from
an ordered list of candidate field names. Nothing past this module looks at
raw payload keys.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

ORDER_ID_FIELDS = ("orderId", "order_id", "id")
LINE_LIST_FIELDS = ("lineItems", "lineItemSummaries")
LINE_ID_FIELDS = ("lineItemId", "lineItemIdValue")
SKU_FIELDS = ("sku", "legacySku", "lineItemSku")
QUANTITY_FIELDS = ("quantity", "quantityPurchased")


@dataclass(frozen=True)
class OrderLine:
    remote_order_id: str
    remote_line_id: str
    sku: str
    quantity: int

    @property
    def key(self) -> Tuple[str, str]:
        return (self.remote_order_id, self.remote_line_id)


def _first_text(payload: Dict[str, Any], fields: Iterable[str]) -> str:
    for name in fields:
        value = payload.get(name)
        if value is None or isinstance(value, (dict, list)):
            continue
        text = str(value).strip()
        if text:
            return text
    return ""


def _first_list(payload: Dict[str, Any], fields: Iterable[str]) -> List[Any]:
    for name in fields:
        value = payload.get(name)
        if isinstance(value, list):
            return value
    return []


def _quantity(payload: Dict[str, Any]) -> int:
    for name in QUANTITY_FIELDS:
        value = payload.get(name)
        if value in (None, "", 0, "0"):
            continue
        try:
            number = float(value)
        except (TypeError, ValueError):
            return 0
        if not math.isfinite(number):
            return 0
        return int(number)
    return 0


def normalize_order(order: Any) -> List[OrderLine]:
    """Extract the usable lines of one raw order.

    Lines without an order id, line id or SKU, or with a quantity that is
    not positive, are dropped.
    """
    if not isinstance(order, dict):
        return []

    remote_order_id = _first_text(order, ORDER_ID_FIELDS)
    if not remote_order_id:
        return []

    lines: List[OrderLine] = []
    for item in _first_list(order, LINE_LIST_FIELDS):
        if not isinstance(item, dict):
            continue
        remote_line_id = _first_text(item, LINE_ID_FIELDS)
        sku = _first_text(item, SKU_FIELDS)
        quantity = _quantity(item)
        if not remote_line_id or not sku or quantity <= 0:
            continue
        lines.append(OrderLine(remote_order_id, remote_line_id, sku, quantity))
    return lines


class LineDeduplicator:
    """Drops lines already seen during the current run (first one wins)."""

    def __init__(self):
        self._seen: Set[Tuple[str, str]] = set()

    def __len__(self) -> int:
        return len(self._seen)

    def filter(self, lines: Iterable[OrderLine]) -> List[OrderLine]:
        fresh: List[OrderLine] = []
        for line in lines:
            if line.key in self._seen:
                continue
            self._seen.add(line.key)
            fresh.append(line)
        return fresh


def normalize_orders(orders: Iterable[Any], seen: Optional[LineDeduplicator] = None) -> List[OrderLine]:
    """Normalize a page of orders, skipping lines ``seen`` already holds"""
    seen = seen if seen is not None else LineDeduplicator()
    lines: List[OrderLine] = []
    for order in orders:
        lines.extend(seen.filter(normalize_order(order)))
    return lines
