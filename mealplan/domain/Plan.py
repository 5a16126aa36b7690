"""MealPlan domain entity: a week's planned recipes and the shopping list built from them."""
from typing import Optional


class MealPlan:
    def __init__(self, id: Optional[int] = None, created_at: int = 0, shopping_complete: bool = False):
        self.id = id
        self.created_at = created_at
        self.shopping_complete = shopping_complete

    def __str__(self) -> str:
        state = "shopping complete" if self.shopping_complete else "shopping open"
        return f"MealPlan {self.id} ({state})"

    __repr__ = __str__

    @staticmethod
    def from_row(row) -> "MealPlan":
        return MealPlan(id=row["id"], created_at=row["created_at"],
                        shopping_complete=bool(row["shopping_complete"]))
