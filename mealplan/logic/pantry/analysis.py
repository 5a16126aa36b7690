"""Pantry analysis helpers: expiring-soon and low-stock views over pantry items."""
from __future__ import annotations
from typing import Any, Dict, Iterable, List, Optional

from mealplan.domain.Pantry import PantryItem, TrackingMode, StockLevel, now_ms
from mealplan.events.Event_Bus import EventBus
from mealplan.events.event_helpers import publish_expiring_snapshot, publish_near_expiry
from mealplan.utilities.config import DAYS_BEFORE_EXPIRY

__all__ = ["compute_expiring_soon", "compute_low_stock", "compute_pantry_snapshots", "needing_attention"]


def compute_expiring_soon(items: Iterable[PantryItem], *, window: int | None = None,
                          now: Optional[int] = None) -> List[Dict[str, Any]]:
    """Return items expiring in <= window days (including already expired)."""
    expiring_window = window if window is not None else DAYS_BEFORE_EXPIRY
    now = now if now is not None else now_ms()
    result: List[Dict[str, Any]] = []
    for item in items:
        days_left = item.days_until_expiry(now)
        if days_left is None or days_left > expiring_window:
            continue
        result.append({
            'id': item.id,
            'name': item.name,
            'quantity': item.quantity_remaining,
            'unit': item.unit,
            'days_left': days_left,
            'category': item.category.value,
        })
    result.sort(key=lambda x: (x['days_left'], x['name']))
    return result


def compute_low_stock(items: Iterable[PantryItem]) -> List[Dict[str, Any]]:
    """Return UNITS items under the low-stock ratio and STOCK_LEVEL items at LOW or OUT."""
    low: List[Dict[str, Any]] = []
    for item in items:
        if item.tracking_mode == TrackingMode.STOCK_LEVEL:
            if item.effective_stock_level not in (StockLevel.LOW, StockLevel.OUT):
                continue
        elif not item.is_low_stock:
            continue
        low.append({
            'id': item.id,
            'name': item.name,
            'quantity': item.quantity_remaining,
            'unit': item.unit,
            'level': item.effective_stock_level.value,
            'category': item.category.value,
        })
    low.sort(key=lambda x: (StockLevel(x['level']).rank, x['name']))
    return low


def needing_attention(items: Iterable[PantryItem], now: Optional[int] = None) -> List[PantryItem]:
    return [item for item in items if item.needs_attention(now)]


def compute_pantry_snapshots(items: Iterable[PantryItem], *, window: int | None = None,
                             now: Optional[int] = None, bus: Optional[EventBus] = None):
    items = list(items)
    exp = compute_expiring_soon(items, window=window, now=now)
    low = compute_low_stock(items)
    by_id = {item.id: item for item in items}
    threshold = window if window is not None else DAYS_BEFORE_EXPIRY
    for entry in exp:
        publish_near_expiry(by_id.get(entry['id']), entry['days_left'], threshold, bus=bus)
    if exp:
        publish_expiring_snapshot(exp, bus=bus)
    return exp, low
