"""Shopping list persistence: items per meal plan and their ingredient sources."""
import logging
from typing import Iterable, List, Optional

from mealplan.domain.ShoppingList import IngredientSource, ShoppingItem, ShoppingList
from mealplan.infra.database import Database

logger = logging.getLogger(__name__)


class ShoppingRepository:
    def __init__(self, db: Database):
        self.db = db

    # --- items ---------------------------------------------------------------
    def get_items(self, meal_plan_id: int) -> List[ShoppingItem]:
        rows = self.db.query(
            "SELECT * FROM shopping_items WHERE meal_plan_id = ? ORDER BY id", (meal_plan_id,)
        )
        return [ShoppingItem.from_row(r) for r in rows]

    def get_list(self, meal_plan_id: int) -> ShoppingList:
        return ShoppingList(meal_plan_id, self.get_items(meal_plan_id))

    def get_item(self, item_id: int) -> Optional[ShoppingItem]:
        row = self.db.query_one("SELECT * FROM shopping_items WHERE id = ?", (item_id,))
        return ShoppingItem.from_row(row) if row else None

    def get_checked(self, meal_plan_id: int) -> List[ShoppingItem]:
        rows = self.db.query(
            "SELECT * FROM shopping_items WHERE meal_plan_id = ? AND checked = 1 ORDER BY id",
            (meal_plan_id,),
        )
        return [ShoppingItem.from_row(r) for r in rows]

    def replace(self, meal_plan_id: int, drafts: Iterable[ShoppingItem]) -> List[ShoppingItem]:
        """Delete every item of the plan (sources cascade) and insert the drafts.

        Sources carried by the drafts are stored with the new item ids. The
        whole swap is one transaction.
        """
        stored: List[ShoppingItem] = []
        with self.db.transaction() as conn:
            conn.execute("DELETE FROM shopping_items WHERE meal_plan_id = ?", (meal_plan_id,))
            for draft in drafts:
                draft.meal_plan_id = meal_plan_id
                draft.id = None
                item = self._insert(conn, draft)
                for source in draft.sources:
                    source.shopping_item_id = item.id
                    source.id = None
                self._insert_sources(conn, draft.sources)
                stored.append(item)
        logger.info(f"Shopping list for plan {meal_plan_id} replaced with {len(stored)} item(s)")
        return stored

    def upsert(self, item: ShoppingItem) -> ShoppingItem:
        with self.db.transaction() as conn:
            if item.id is None:
                item = self._insert(conn, item)
                if item.sources:
                    for source in item.sources:
                        source.shopping_item_id = item.id
                    self._insert_sources(conn, item.sources)
                return item
            conn.execute(
                """UPDATE shopping_items
                   SET name = ?, quantity = ?, unit = ?, category = ?, display_quantity = ?,
                       checked = ?, in_cart = ?
                   WHERE id = ?""",
                (item.name, item.quantity, item.unit, item.category, item.display_quantity,
                 int(item.checked), int(item.in_cart), item.id),
            )
        return item

    def _insert(self, conn, item: ShoppingItem) -> ShoppingItem:
        cur = conn.execute(
            """INSERT INTO shopping_items
               (meal_plan_id, name, quantity, unit, category, display_quantity, checked, in_cart)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (item.meal_plan_id, item.name, item.quantity, item.unit, item.category,
             item.display_quantity, int(item.checked), int(item.in_cart)),
        )
        item.id = cur.lastrowid
        return item

    def toggle_checked(self, item_id: int) -> Optional[bool]:
        '''Flips the checked flag; returns the new value or None for an unknown id.'''
        return self._toggle(item_id, "checked")

    def toggle_in_cart(self, item_id: int) -> Optional[bool]:
        return self._toggle(item_id, "in_cart")

    def _toggle(self, item_id: int, column: str) -> Optional[bool]:
        with self.db.transaction() as conn:
            cur = conn.execute(
                f"UPDATE shopping_items SET {column} = 1 - {column} WHERE id = ?", (item_id,)
            )
            if cur.rowcount == 0:
                return None
            row = conn.execute(f"SELECT {column} FROM shopping_items WHERE id = ?", (item_id,)).fetchone()
        return bool(row[0])

    def delete_item(self, item_id: int) -> bool:
        with self.db.transaction() as conn:
            cur = conn.execute("DELETE FROM shopping_items WHERE id = ?", (item_id,))
        return cur.rowcount > 0

    def reset_all(self, meal_plan_id: int) -> None:
        """Uncheck every item of the plan and take it out of the cart."""
        with self.db.transaction() as conn:
            conn.execute(
                "UPDATE shopping_items SET checked = 0, in_cart = 0 WHERE meal_plan_id = ?",
                (meal_plan_id,),
            )

    def clear_plan(self, meal_plan_id: int) -> None:
        with self.db.transaction() as conn:
            conn.execute("DELETE FROM shopping_items WHERE meal_plan_id = ?", (meal_plan_id,))

    def clear_all(self) -> None:
        with self.db.transaction() as conn:
            conn.execute("DELETE FROM shopping_items")

    # --- sources -------------------------------------------------------------
    def sources_for_item(self, item_id: int) -> List[IngredientSource]:
        rows = self.db.query(
            "SELECT * FROM shopping_item_sources WHERE shopping_item_id = ? ORDER BY id", (item_id,)
        )
        return [IngredientSource.from_row(r) for r in rows]

    def sources_for_plan(self, meal_plan_id: int) -> List[IngredientSource]:
        rows = self.db.query(
            """SELECT s.* FROM shopping_item_sources s
               JOIN shopping_items i ON i.id = s.shopping_item_id
               WHERE i.meal_plan_id = ? ORDER BY s.id""",
            (meal_plan_id,),
        )
        return [IngredientSource.from_row(r) for r in rows]

    def sources_for_recipe(self, recipe_id: str) -> List[IngredientSource]:
        rows = self.db.query(
            "SELECT * FROM shopping_item_sources WHERE recipe_id = ? ORDER BY id", (recipe_id,)
        )
        return [IngredientSource.from_row(r) for r in rows]

    def add_sources(self, sources: Iterable[IngredientSource]) -> None:
        with self.db.transaction() as conn:
            self._insert_sources(conn, sources)

    def replace_sources(self, meal_plan_id: int, sources: Iterable[IngredientSource]) -> None:
        """Drop every source of the plan's items and store the given ones instead."""
        with self.db.transaction() as conn:
            conn.execute(
                """DELETE FROM shopping_item_sources WHERE shopping_item_id IN
                   (SELECT id FROM shopping_items WHERE meal_plan_id = ?)""",
                (meal_plan_id,),
            )
            self._insert_sources(conn, sources)

    def update_source(self, source: IngredientSource) -> None:
        with self.db.transaction() as conn:
            conn.execute(
                """UPDATE shopping_item_sources
                   SET shopping_item_id = ?, recipe_id = ?, ingredient_index = ?,
                       original_name = ?, original_quantity = ?, original_unit = ?
                   WHERE id = ?""",
                (source.shopping_item_id, source.recipe_id, source.ingredient_index,
                 source.original_name, source.original_quantity, source.original_unit, source.id),
            )

    def delete_source(self, source_id: int) -> None:
        with self.db.transaction() as conn:
            conn.execute("DELETE FROM shopping_item_sources WHERE id = ?", (source_id,))

    def _insert_sources(self, conn, sources: Iterable[IngredientSource]) -> None:
        for source in sources:
            cur = conn.execute(
                """INSERT INTO shopping_item_sources
                   (shopping_item_id, recipe_id, ingredient_index, original_name,
                    original_quantity, original_unit)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (source.shopping_item_id, source.recipe_id, source.ingredient_index,
                 source.original_name, source.original_quantity, source.original_unit),
            )
            source.id = cur.lastrowid
