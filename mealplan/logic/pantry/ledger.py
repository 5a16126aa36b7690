"""Pantry ledger: sufficiency checks, deductions, stock levels and restocking.

Absence is never an error here. A recipe may name an ingredient that was
never pantried, a restock entry may have nothing to merge into; both take
their ordinary path. Only storage failures propagate (as StorageError).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional

from mealplan.domain.Pantry import PantryItem, StockLevel, TrackingMode, now_ms
from mealplan.domain.Recipe import RecipeIngredient
from mealplan.events.Event_Bus import EventBus, GLOBAL_EVENT_BUS
from mealplan.events.event_helpers import publish_low_stock
from mealplan.infra.Pantry_Repository import PantryRepository
from mealplan.logic.matching.normalizer import DEFAULT_NORMALIZER, NameNormalizer
from mealplan.logic.pantry.analysis import compute_pantry_snapshots
from mealplan.logic.pantry.classifier import classify_tracking_mode, estimate_shelf_life_days
from mealplan.utilities.constants import MS_PER_DAY
from mealplan.utilities.validators import PantryItemInput

logger = logging.getLogger(__name__)

__all__ = ["PantryLedger", "RestockReport", "DeductionWarning", "pantry_covers"]


def pantry_covers(name: str, items: Iterable[PantryItem],
                  normalizer: NameNormalizer = DEFAULT_NORMALIZER) -> bool:
    """True when the pantry already holds enough of ``name``.

    An item whose key equals the ingredient key decides on its own; otherwise
    any sufficient containment match counts.
    """
    key = normalizer.normalize(name)
    candidates = list(items)
    exact = [i for i in candidates if normalizer.normalize(i.name) == key]
    if exact:
        return any(i.is_sufficient for i in exact)
    return any(i.is_sufficient for i in candidates if normalizer.matches(i.name, name))


@dataclass
class RestockReport:
    added: List[PantryItem] = field(default_factory=list)
    merged: List[PantryItem] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.added) + len(self.merged)


@dataclass
class DeductionWarning:
    name: str
    kind: str  # "missing" or "insufficient"
    needed: float = 0.0
    available: float = 0.0

    def __str__(self) -> str:
        if self.kind == "missing":
            return f"{self.name} is not in the pantry"
        return f"{self.name}: needed {self.needed:g}, only {self.available:g} left"


class PantryLedger:
    def __init__(self, repository: PantryRepository, bus: Optional[EventBus] = None,
                 clock: Callable[[], int] = now_ms, normalizer: NameNormalizer = DEFAULT_NORMALIZER):
        self.repository = repository
        self.bus = bus if bus is not None else GLOBAL_EVENT_BUS
        self.clock = clock
        self.normalizer = normalizer

    @property
    def db(self):
        return self.repository.db

    # --- reads ---------------------------------------------------------------
    def items(self) -> List[PantryItem]:
        return self.repository.all()

    def get_item(self, item_id: int) -> Optional[PantryItem]:
        return self.repository.get(item_id)

    def search(self, text: str) -> List[PantryItem]:
        return self.repository.search(text)

    def find_matches(self, name: str) -> List[PantryItem]:
        return [i for i in self.items() if self.normalizer.matches(i.name, name)]

    def is_sufficient(self, name: str) -> bool:
        return pantry_covers(name, self.items(), self.normalizer)

    # --- mutations -----------------------------------------------------------
    def add_item(self, entry: PantryItemInput) -> PantryItem:
        item = self._new_item(entry)
        return self.repository.insert(item)

    def remove_item(self, item_id: int) -> bool:
        return self.repository.delete(item_id)

    def update_quantity(self, item_id: int, quantity: float, stock_checked: bool = False) -> bool:
        """Set the remaining quantity, clamped to [0, initial]."""
        with self.db.transaction():
            item = self.repository.get(item_id)
            if item is None:
                return False
            was_low = item.is_low_stock
            item.quantity_remaining = min(max(float(quantity), 0.0), item.quantity_initial)
            item.last_updated = self.clock()
            if stock_checked:
                item.last_stock_check = item.last_updated
            self.repository.update(item)
        self._notify_if_newly_low(item, was_low)
        return True

    def deduct(self, name: str, amount: float) -> int:
        """Subtract ``amount`` from every UNITS item matching ``name``; floors at zero.

        Returns the number of items touched, 0 when nothing matches.
        """
        affected: List[tuple] = []
        with self.db.transaction():
            for item in self.find_matches(name):
                if item.tracking_mode != TrackingMode.UNITS:
                    continue
                was_low = item.is_low_stock
                item.quantity_remaining = max(0.0, item.quantity_remaining - amount)
                item.last_updated = self.clock()
                self.repository.update(item)
                affected.append((item, was_low))
        for item, was_low in affected:
            self._notify_if_newly_low(item, was_low)
        if affected:
            logger.debug(f"Deducted {amount:g} of '{name}' from {len(affected)} pantry item(s)")
        return len(affected)

    def set_stock_level(self, item_id: int, level: StockLevel) -> bool:
        with self.db.transaction():
            item = self.repository.get(item_id)
            if item is None:
                return False
            item.stock_level = level
            item.last_updated = self.clock()
            item.last_stock_check = item.last_updated
            return self.repository.update(item)

    def reduce_stock_level(self, item_id: int) -> bool:
        """Step the level down one notch (PLENTY > SOME > LOW > OUT); stays at OUT.

        Only STOCK_LEVEL items have a level to step; UNITS items are left alone.
        """
        with self.db.transaction():
            item = self.repository.get(item_id)
            if item is None or item.tracking_mode != TrackingMode.STOCK_LEVEL:
                return False
            current = item.stock_level or StockLevel.SOME
            item.stock_level = current.step_down()
            if item.stock_level != current:
                item.last_updated = self.clock()
                self.repository.update(item)
        return True

    def restock(self, entries: Iterable[PantryItemInput]) -> RestockReport:
        """Add bought items to the pantry, merging into existing ones.

        An entry merges into an item with the same normalized name and unit:
        UNITS quantities add up and become the new baseline, STOCK_LEVEL items
        go back to PLENTY. Anything else is inserted with a tracking mode from
        the classifier. Entries without a name are skipped.
        """
        report = RestockReport()
        with self.db.transaction():
            existing = self.items()
            for entry in entries:
                if not entry.name.strip():
                    report.skipped.append(entry.name)
                    continue
                target = self._merge_target(entry, existing)
                if target is None:
                    item = self.repository.insert(self._new_item(entry))
                    existing.append(item)
                    report.added.append(item)
                    continue
                self._merge(target, entry)
                self.repository.update(target)
                report.merged.append(target)
        logger.info(f"Restocked pantry: {len(report.added)} added, {len(report.merged)} merged, "
                    f"{len(report.skipped)} skipped")
        return report

    def consume_recipe(self, ingredients: Iterable[RecipeIngredient]) -> List[DeductionWarning]:
        """Take a cooked recipe's ingredients out of the pantry.

        UNITS items are deducted, STOCK_LEVEL items step down one level.
        Missing or short items produce warnings, never errors.
        """
        warnings: List[DeductionWarning] = []
        with self.db.transaction():
            for ing in ingredients:
                matches = self.find_matches(ing.name)
                if not matches:
                    warnings.append(DeductionWarning(ing.name, "missing", ing.quantity, 0.0))
                    continue
                counted = [m for m in matches if m.tracking_mode == TrackingMode.UNITS]
                available = sum(m.quantity_remaining for m in counted)
                if counted and available < ing.quantity:
                    warnings.append(DeductionWarning(ing.name, "insufficient", ing.quantity, available))
                if counted:
                    self.deduct(ing.name, ing.quantity)
                for m in matches:
                    if m.tracking_mode == TrackingMode.STOCK_LEVEL:
                        self.reduce_stock_level(m.id)
        return warnings

    def snapshot(self, window: Optional[int] = None):
        """(expiring_soon, low_stock) lists; publishes the matching pantry events."""
        return compute_pantry_snapshots(self.items(), window=window, now=self.clock(), bus=self.bus)

    # --- helpers -------------------------------------------------------------
    def _merge_target(self, entry: PantryItemInput, existing: List[PantryItem]) -> Optional[PantryItem]:
        key = self.normalizer.normalize(entry.name)
        unit = entry.unit.strip().lower()
        for item in existing:
            if self.normalizer.normalize(item.name) == key and item.unit.strip().lower() == unit:
                return item
        return None

    def _merge(self, item: PantryItem, entry: PantryItemInput) -> None:
        now = self.clock()
        if item.tracking_mode == TrackingMode.STOCK_LEVEL:
            item.stock_level = StockLevel.PLENTY
        else:
            item.quantity_remaining += entry.quantity
            item.quantity_initial = item.quantity_remaining
        if entry.expiry_days is not None:
            item.expiry = now + entry.expiry_days * MS_PER_DAY
        item.last_updated = now

    def _new_item(self, entry: PantryItemInput) -> PantryItem:
        now = self.clock()
        mode = entry.tracking_mode or classify_tracking_mode(entry.name, entry.category, entry.tracking_hint)
        expiry_days = entry.expiry_days
        if expiry_days is None:
            expiry_days = estimate_shelf_life_days(entry.name, entry.category)
        return PantryItem(
            name=entry.name,
            quantity_initial=entry.quantity,
            quantity_remaining=entry.quantity,
            unit=entry.unit,
            category=entry.category,
            tracking_mode=mode,
            stock_level=(entry.stock_level or StockLevel.PLENTY) if mode == TrackingMode.STOCK_LEVEL else None,
            perishable=entry.perishable,
            expiry=now + expiry_days * MS_PER_DAY if expiry_days is not None else None,
            date_added=now,
            last_updated=now,
        )

    def _notify_if_newly_low(self, item: PantryItem, was_low: bool) -> None:
        if item.is_low_stock and not was_low:
            publish_low_stock(item, item.quantity_remaining, item.percent_remaining, bus=self.bus)
