"""Pantry domain: tracked ingredients with either a precise count or a coarse stock level."""
from __future__ import annotations

import time
from enum import Enum
from typing import Optional

from mealplan.utilities.constants import LOW_STOCK_RATIO, MS_PER_DAY, STOCK_CHECK_GRACE_DAYS


def now_ms() -> int:
    return int(time.time() * 1000)


class TrackingMode(str, Enum):
    UNITS = "UNITS"
    STOCK_LEVEL = "STOCK_LEVEL"

    @classmethod
    def from_string(cls, value: Optional[str]) -> "TrackingMode":
        '''Maps service spellings (STOCK_LEVEL, COUNT, PRECISE) onto the two local modes.'''
        if value and value.strip().upper() == "STOCK_LEVEL":
            return cls.STOCK_LEVEL
        return cls.UNITS


class StockLevel(str, Enum):
    OUT = "OUT"
    LOW = "LOW"
    SOME = "SOME"
    PLENTY = "PLENTY"

    @property
    def rank(self) -> int:
        return _STOCK_ORDER.index(self)

    @property
    def display_name(self) -> str:
        return self.value.capitalize()

    def step_down(self) -> "StockLevel":
        return _STOCK_ORDER[max(0, self.rank - 1)]

    @classmethod
    def from_percentage(cls, percent: float) -> "StockLevel":
        if percent <= 0:
            return cls.OUT
        if percent < 0.25:
            return cls.LOW
        if percent < 0.6:
            return cls.SOME
        return cls.PLENTY

    @classmethod
    def from_string(cls, value: Optional[str]) -> "StockLevel":
        if value:
            v = value.strip().upper()
            # service spellings
            v = {"OUT_OF_STOCK": "OUT", "FULL": "PLENTY", "HIGH": "PLENTY", "MEDIUM": "SOME"}.get(v, v)
            for level in cls:
                if level.value == v:
                    return level
        return cls.SOME


_STOCK_ORDER = (StockLevel.OUT, StockLevel.LOW, StockLevel.SOME, StockLevel.PLENTY)


class PantryCategory(str, Enum):
    PRODUCE = "PRODUCE"
    PROTEIN = "PROTEIN"
    DAIRY = "DAIRY"
    DRY_GOODS = "DRY_GOODS"
    SPICE = "SPICE"
    OILS = "OILS"
    CONDIMENT = "CONDIMENT"
    FROZEN = "FROZEN"
    OTHER = "OTHER"

    @property
    def perishable(self) -> bool:
        return self in (PantryCategory.PRODUCE, PantryCategory.PROTEIN, PantryCategory.DAIRY)

    @classmethod
    def from_string(cls, value: Optional[str]) -> "PantryCategory":
        if value:
            v = value.strip().upper().replace(" ", "_")
            aliases = {"SPICES": "SPICE", "CONDIMENTS": "CONDIMENT", "PANTRY": "DRY_GOODS", "OIL": "OILS"}
            v = aliases.get(v, v)
            for category in cls:
                if category.value == v:
                    return category
        return cls.OTHER


class PantryItem:
    def __init__(self, id: Optional[int] = None, name: str = "", quantity_initial: float = 0.0,
                 quantity_remaining: Optional[float] = None, unit: str = "",
                 category: PantryCategory = PantryCategory.OTHER,
                 tracking_mode: TrackingMode = TrackingMode.UNITS,
                 stock_level: Optional[StockLevel] = None, perishable: Optional[bool] = None,
                 expiry: Optional[int] = None, date_added: Optional[int] = None,
                 last_updated: Optional[int] = None, last_stock_check: Optional[int] = None):
        self.id = id
        self.name = name
        self.quantity_initial = float(quantity_initial or 0)
        remaining = self.quantity_initial if quantity_remaining is None else float(quantity_remaining)
        # remaining never exceeds the initial baseline
        self.quantity_remaining = min(max(remaining, 0.0), self.quantity_initial)
        self.unit = unit or ""
        self.category = category
        self.tracking_mode = tracking_mode
        if tracking_mode == TrackingMode.STOCK_LEVEL and stock_level is None:
            stock_level = StockLevel.PLENTY
        self.stock_level = stock_level
        self.perishable = category.perishable if perishable is None else bool(perishable)
        self.expiry = expiry
        now = now_ms()
        self.date_added = date_added or now
        self.last_updated = last_updated or now
        self.last_stock_check = last_stock_check

    @property
    def percent_remaining(self) -> float:
        if self.quantity_initial <= 0:
            return 0.0
        return min(max(self.quantity_remaining / self.quantity_initial, 0.0), 1.0)

    @property
    def is_low_stock(self) -> bool:
        return self.percent_remaining < LOW_STOCK_RATIO

    @property
    def effective_stock_level(self) -> StockLevel:
        if self.tracking_mode == TrackingMode.STOCK_LEVEL:
            return self.stock_level or StockLevel.SOME
        return StockLevel.from_percentage(self.percent_remaining)

    @property
    def is_sufficient(self) -> bool:
        if self.tracking_mode == TrackingMode.STOCK_LEVEL:
            return self.effective_stock_level in (StockLevel.SOME, StockLevel.PLENTY)
        return self.quantity_remaining > 0 and not self.is_low_stock

    def needs_attention(self, at: Optional[int] = None) -> bool:
        """Perishable item that should be used or checked soon.

        Flags items expiring within two days, items older than three days and
        partially used items, unless their stock was checked in the last three
        days. Items added within the last day are exempt from the expiry rule.
        """
        if not self.perishable:
            return False
        now = at if at is not None else now_ms()
        grace = STOCK_CHECK_GRACE_DAYS * MS_PER_DAY
        if self.last_stock_check is not None and self.last_stock_check > now - grace:
            return False
        newly_purchased = self.date_added > now - MS_PER_DAY
        if self.expiry is not None and self.expiry <= now + 2 * MS_PER_DAY and not newly_purchased:
            return True
        if self.date_added <= now - grace:
            return True
        return self.quantity_remaining < self.quantity_initial

    def days_until_expiry(self, at: Optional[int] = None) -> Optional[int]:
        if self.expiry is None:
            return None
        now = at if at is not None else now_ms()
        return (self.expiry - now) // MS_PER_DAY

    @property
    def availability(self) -> str:
        if self.tracking_mode == TrackingMode.STOCK_LEVEL:
            return self.effective_stock_level.display_name
        qty = self.quantity_remaining
        qty_str = str(int(qty)) if qty == int(qty) else f"{qty:g}"
        return f"{qty_str} {self.unit}".strip()

    def __str__(self) -> str:
        return f"{self.name} - {self.availability} ({self.category.value})"

    __repr__ = __str__

    @staticmethod
    def from_row(row) -> "PantryItem":
        return PantryItem(
            id=row["id"],
            name=row["name"],
            quantity_initial=row["quantity_initial"],
            quantity_remaining=row["quantity_remaining"],
            unit=row["unit"],
            category=PantryCategory.from_string(row["category"]),
            tracking_mode=TrackingMode(row["tracking_mode"]),
            stock_level=StockLevel(row["stock_level"]) if row["stock_level"] else None,
            perishable=bool(row["perishable"]),
            expiry=row["expiry"],
            date_added=row["date_added"],
            last_updated=row["last_updated"],
            last_stock_check=row["last_stock_check"],
        )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "quantity_initial": self.quantity_initial,
            "quantity_remaining": self.quantity_remaining,
            "unit": self.unit,
            "category": self.category.value,
            "tracking_mode": self.tracking_mode.value,
            "stock_level": self.stock_level.value if self.stock_level else None,
            "perishable": self.perishable,
            "expiry": self.expiry,
            "date_added": self.date_added,
            "last_updated": self.last_updated,
            "last_stock_check": self.last_stock_check,
        }
