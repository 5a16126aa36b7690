"""Meal plan persistence. Deleting a plan cascades to its recipes and shopping list."""
import logging
from typing import List, Optional

from mealplan.domain.Pantry import now_ms
from mealplan.domain.Plan import MealPlan
from mealplan.infra.database import Database

logger = logging.getLogger(__name__)


class PlanRepository:
    def __init__(self, db: Database):
        self.db = db

    def create(self, created_at: Optional[int] = None) -> MealPlan:
        created_at = created_at or now_ms()
        with self.db.transaction() as conn:
            cur = conn.execute("INSERT INTO meal_plans (created_at) VALUES (?)", (created_at,))
        logger.info(f"Meal plan {cur.lastrowid} created")
        return MealPlan(id=cur.lastrowid, created_at=created_at)

    def get(self, meal_plan_id: int) -> Optional[MealPlan]:
        row = self.db.query_one("SELECT * FROM meal_plans WHERE id = ?", (meal_plan_id,))
        return MealPlan.from_row(row) if row else None

    def latest(self) -> Optional[MealPlan]:
        row = self.db.query_one("SELECT * FROM meal_plans ORDER BY created_at DESC, id DESC LIMIT 1")
        return MealPlan.from_row(row) if row else None

    def all(self) -> List[MealPlan]:
        return [MealPlan.from_row(r) for r in self.db.query("SELECT * FROM meal_plans ORDER BY id")]

    def mark_shopping_complete(self, meal_plan_id: int) -> bool:
        with self.db.transaction() as conn:
            cur = conn.execute(
                "UPDATE meal_plans SET shopping_complete = 1 WHERE id = ?", (meal_plan_id,)
            )
        return cur.rowcount > 0

    def delete(self, meal_plan_id: int) -> None:
        with self.db.transaction() as conn:
            conn.execute("DELETE FROM meal_plans WHERE id = ?", (meal_plan_id,))
