"""Simple Event Bus / Observer implementation.

Event names:
  pantry.low_stock -> payload {"item": PantryItem, "remaining": float, "percent": float}
  pantry.near_expiry -> payload {"item": PantryItem, "days_left": int, "threshold": int}
  pantry.expiring_snapshot -> payload {"count": int, "items": [dict, ...]}
  enrichment.job_completed -> payload {"job": PendingJob, "result": Any}
  enrichment.job_failed -> payload {"job": PendingJob, "reason": str, "timed_out": bool}
  substitution.fallback -> payload {"item_id": int, "recipe_id": str, "new_name": str, "error": str}

Subscribers are callables taking (event_name, payload).
"""
from __future__ import annotations
import logging
from collections import defaultdict
from typing import Callable, Any, Dict, List

logger = logging.getLogger(__name__)

# --- Event name constants (used across modules) ---
PANTRY_LOW_STOCK = "pantry.low_stock"
PANTRY_NEAR_EXPIRY = "pantry.near_expiry"
PANTRY_EXPIRING_SNAPSHOT = "pantry.expiring_snapshot"
ENRICHMENT_JOB_COMPLETED = "enrichment.job_completed"
ENRICHMENT_JOB_FAILED = "enrichment.job_failed"
SUBSTITUTION_FALLBACK = "substitution.fallback"


class EventBus:
	def __init__(self):
		self._subscribers: Dict[str, List[Callable[[str, Any], None]]] = defaultdict(list)

	def subscribe(self, event_name: str, callback: Callable[[str, Any], None]):
		if callback not in self._subscribers[event_name]:
			self._subscribers[event_name].append(callback)

	def unsubscribe(self, event_name: str, callback: Callable[[str, Any], None]):
		try:
			self._subscribers[event_name].remove(callback)
		except (ValueError, KeyError):
			pass

	def publish(self, event_name: str, payload: Any):
		for cb in list(self._subscribers.get(event_name, [])):
			try:
				cb(event_name, payload)
			except Exception:
				logger.exception(f"Error delivering {event_name} to {cb}")


# A singleton-like instance (can be imported)
GLOBAL_EVENT_BUS = EventBus()


__all__ = [
	'EventBus', 'GLOBAL_EVENT_BUS',
	'PANTRY_LOW_STOCK', 'PANTRY_NEAR_EXPIRY', 'PANTRY_EXPIRING_SNAPSHOT',
	'ENRICHMENT_JOB_COMPLETED', 'ENRICHMENT_JOB_FAILED', 'SUBSTITUTION_FALLBACK',
]
