"""Event helper utilities.

Helpers that build the payloads documented in Event_Bus and publish them on
a given bus (the global one by default).

Quick import:
    from mealplan.events.event_helpers import (
        publish_low_stock, publish_near_expiry, publish_expiring_snapshot,
        publish_job_completed, publish_job_failed, publish_substitution_fallback
    )
"""
from __future__ import annotations
from typing import Iterable, Any, Optional
from .Event_Bus import (
    EventBus, GLOBAL_EVENT_BUS,
    PANTRY_LOW_STOCK, PANTRY_NEAR_EXPIRY, PANTRY_EXPIRING_SNAPSHOT,
    ENRICHMENT_JOB_COMPLETED, ENRICHMENT_JOB_FAILED, SUBSTITUTION_FALLBACK,
)

__all__ = [
    'publish_low_stock', 'publish_near_expiry', 'publish_expiring_snapshot',
    'publish_job_completed', 'publish_job_failed', 'publish_substitution_fallback',
]


def _bus(bus: Optional[EventBus]) -> EventBus:
    return bus if bus is not None else GLOBAL_EVENT_BUS


def publish_low_stock(item: Any, remaining: float, percent: float, bus: Optional[EventBus] = None):
    """Publish a pantry.low_stock event."""
    _bus(bus).publish(PANTRY_LOW_STOCK, {
        'item': item,
        'remaining': remaining,
        'percent': percent,
    })


def publish_near_expiry(item: Any, days_left: int, threshold: int, bus: Optional[EventBus] = None):
    """Publish a pantry.near_expiry event."""
    _bus(bus).publish(PANTRY_NEAR_EXPIRY, {
        'item': item,
        'days_left': days_left,
        'threshold': threshold,
    })


def publish_expiring_snapshot(items: Iterable[dict], bus: Optional[EventBus] = None):
    """Publish a snapshot of pantry items that will expire soon.

    Payload structure:
        {
          'count': <int>,
          'items': [ { name, quantity, unit, days_left, category }, ... ]
        }
    """
    items_list = list(items) if not isinstance(items, list) else items
    _bus(bus).publish(PANTRY_EXPIRING_SNAPSHOT, {
        'count': len(items_list),
        'items': items_list,
    })


def publish_job_completed(job: Any, result: Any, bus: Optional[EventBus] = None):
    _bus(bus).publish(ENRICHMENT_JOB_COMPLETED, {'job': job, 'result': result})


def publish_job_failed(job: Any, reason: str, timed_out: bool = False, bus: Optional[EventBus] = None):
    _bus(bus).publish(ENRICHMENT_JOB_FAILED, {'job': job, 'reason': reason, 'timed_out': timed_out})


def publish_substitution_fallback(item_id: Any, recipe_id: str, new_name: str, error: str,
                                  bus: Optional[EventBus] = None):
    _bus(bus).publish(SUBSTITUTION_FALLBACK, {
        'item_id': item_id,
        'recipe_id': recipe_id,
        'new_name': new_name,
        'error': error,
    })
