"""Exception types raised by the meal planning core.

Absence (no pantry match, no provenance, nothing to merge into) is never an
error. These types cover the two real failure families, the external
enrichment service and local storage, plus a few caller mistakes.
"""
from typing import Any, Dict, Optional


class MealPlanError(Exception):
    """Base exception carrying the failed operation and extra context."""

    def __init__(self, message: str, operation: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.operation = operation
        self.details = details or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        parts = [self.message]
        if self.operation:
            parts.insert(0, f"[{self.operation}]")
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            parts.append(f"({detail_str})")
        return " ".join(parts)


class StorageError(MealPlanError):
    """Local database failure. The surrounding transaction has been rolled back."""


class RecipeParseError(MealPlanError):
    """A stored recipe document does not match the recipe schema."""


class EnrichmentError(MealPlanError):
    """External enrichment service failure (network, status, payload)."""

    def __init__(self, message: str, operation: Optional[str] = None,
                 status_code: Optional[int] = None, job_id: Optional[str] = None, **kwargs):
        details = kwargs.pop('details', {})
        if status_code is not None:
            details['status_code'] = status_code
        if job_id:
            details['job_id'] = job_id
        super().__init__(message, operation, details)
        self.status_code = status_code
        self.job_id = job_id


class JobFailedError(EnrichmentError):
    """The remote job reached the failed status."""


class JobTimeoutError(EnrichmentError):
    """The remote job did not finish within its poll budget."""


class DuplicateJobError(MealPlanError):
    """A job of the same type is already pending."""


__all__ = [
    'MealPlanError', 'StorageError', 'RecipeParseError', 'EnrichmentError',
    'JobFailedError', 'JobTimeoutError', 'DuplicateJobError',
]
