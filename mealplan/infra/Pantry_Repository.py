"""Pantry item persistence."""
import logging
from typing import List, Optional

from mealplan.domain.Pantry import PantryItem
from mealplan.infra.database import Database

logger = logging.getLogger(__name__)

_COLUMNS = (
    "name", "quantity_initial", "quantity_remaining", "unit", "category", "tracking_mode",
    "stock_level", "perishable", "expiry", "date_added", "last_updated", "last_stock_check",
)


def _values(item: PantryItem) -> tuple:
    d = item.to_dict()
    d["perishable"] = int(d["perishable"])
    return tuple(d[c] for c in _COLUMNS)


class PantryRepository:
    def __init__(self, db: Database):
        self.db = db

    def all(self) -> List[PantryItem]:
        rows = self.db.query("SELECT * FROM pantry_items ORDER BY name COLLATE NOCASE, id")
        return [PantryItem.from_row(r) for r in rows]

    def get(self, item_id: int) -> Optional[PantryItem]:
        row = self.db.query_one("SELECT * FROM pantry_items WHERE id = ?", (item_id,))
        return PantryItem.from_row(row) if row else None

    def search(self, text: str) -> List[PantryItem]:
        rows = self.db.query(
            "SELECT * FROM pantry_items WHERE LOWER(name) LIKE ? ORDER BY name COLLATE NOCASE",
            (f"%{(text or '').strip().lower()}%",),
        )
        return [PantryItem.from_row(r) for r in rows]

    def insert(self, item: PantryItem) -> PantryItem:
        placeholders = ", ".join("?" for _ in _COLUMNS)
        with self.db.transaction() as conn:
            cur = conn.execute(
                f"INSERT INTO pantry_items ({', '.join(_COLUMNS)}) VALUES ({placeholders})",
                _values(item),
            )
        item.id = cur.lastrowid
        return item

    def update(self, item: PantryItem) -> bool:
        assignments = ", ".join(f"{c} = ?" for c in _COLUMNS)
        with self.db.transaction() as conn:
            cur = conn.execute(
                f"UPDATE pantry_items SET {assignments} WHERE id = ?", _values(item) + (item.id,)
            )
        return cur.rowcount > 0

    def delete(self, item_id: int) -> bool:
        with self.db.transaction() as conn:
            cur = conn.execute("DELETE FROM pantry_items WHERE id = ?", (item_id,))
        return cur.rowcount > 0

    def clear(self) -> None:
        with self.db.transaction() as conn:
            conn.execute("DELETE FROM pantry_items")
