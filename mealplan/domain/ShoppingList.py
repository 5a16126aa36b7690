"""ShoppingList aggregate: items to purchase with provenance back to recipe ingredients."""
from __future__ import annotations

from typing import List, Optional

from mealplan.utilities.constants import SHOPPING_CATEGORIES, UNCATEGORIZED

# (low, high, display) ranges for the fractional part of a quantity
_FRACTIONS = (
    (0.12, 0.13, "1/8"),
    (0.24, 0.26, "1/4"),
    (0.32, 0.34, "1/3"),
    (0.37, 0.38, "3/8"),
    (0.49, 0.51, "1/2"),
    (0.62, 0.63, "5/8"),
    (0.66, 0.68, "2/3"),
    (0.74, 0.76, "3/4"),
    (0.87, 0.88, "7/8"),
)


def format_quantity(quantity: float) -> str:
    """Render a quantity with common kitchen fractions, e.g. 1.5 -> '1 1/2'."""
    if quantity is None or quantity <= 0:
        return ""
    whole = int(quantity)
    fractional = quantity - whole
    if fractional < 0.01:
        return str(whole)
    fraction_str = None
    for low, high, display in _FRACTIONS:
        if low <= fractional <= high:
            fraction_str = display
            break
    if fraction_str and whole > 0:
        return f"{whole} {fraction_str}"
    if fraction_str:
        return fraction_str
    return f"{quantity:.1f}"


class IngredientSource:
    """Links a shopping item to the recipe ingredient line it was built from."""

    def __init__(self, recipe_id: str, ingredient_index: int, original_name: str,
                 original_quantity: float = 0.0, original_unit: str = "",
                 id: Optional[int] = None, shopping_item_id: Optional[int] = None):
        self.id = id
        self.shopping_item_id = shopping_item_id
        self.recipe_id = recipe_id
        self.ingredient_index = ingredient_index
        self.original_name = original_name
        self.original_quantity = float(original_quantity or 0)
        self.original_unit = original_unit or ""

    def __str__(self) -> str:
        return (f"{self.recipe_id}[{self.ingredient_index}] "
                f"{self.original_quantity:g} {self.original_unit} {self.original_name}")

    __repr__ = __str__

    @staticmethod
    def from_row(row) -> "IngredientSource":
        return IngredientSource(
            id=row["id"],
            shopping_item_id=row["shopping_item_id"],
            recipe_id=row["recipe_id"],
            ingredient_index=row["ingredient_index"],
            original_name=row["original_name"],
            original_quantity=row["original_quantity"],
            original_unit=row["original_unit"],
        )

    def key(self):
        return (self.recipe_id, self.ingredient_index)

    def to_dict(self):
        return {
            "id": self.id,
            "shopping_item_id": self.shopping_item_id,
            "recipe_id": self.recipe_id,
            "ingredient_index": self.ingredient_index,
            "original_name": self.original_name,
            "original_quantity": self.original_quantity,
            "original_unit": self.original_unit,
        }


class ShoppingItem:
    """One line of the shopping list.

    Before it is stored an item may carry ``sources`` drafts; once stored the
    provenance lives in its own table and is read through the repository.
    """

    def __init__(self, name: str = "", quantity: float = 0.0, unit: str = "",
                 category: str = UNCATEGORIZED, display_quantity: Optional[str] = None,
                 checked: bool = False, in_cart: bool = False, id: Optional[int] = None,
                 meal_plan_id: Optional[int] = None,
                 sources: Optional[List[IngredientSource]] = None):
        self.id = id
        self.meal_plan_id = meal_plan_id
        self.name = name
        self.quantity = float(quantity or 0)
        self.unit = unit or ""
        self.category = category or UNCATEGORIZED
        self.display_quantity = display_quantity or None
        self.checked = bool(checked)
        self.in_cart = bool(in_cart)
        self.sources = sources[:] if sources else []

    @property
    def display(self) -> str:
        if self.display_quantity:
            return self.display_quantity
        qty = format_quantity(self.quantity)
        return f"{qty} {self.unit}".strip() if self.unit else qty

    @property
    def display_text(self) -> str:
        return f"{self.display} {self.name}".strip()

    def __str__(self) -> str:
        mark = "x" if self.checked else " "
        return f"[{mark}] {self.display_text} ({self.category})"

    __repr__ = __str__

    @staticmethod
    def from_row(row) -> "ShoppingItem":
        return ShoppingItem(
            id=row["id"],
            meal_plan_id=row["meal_plan_id"],
            name=row["name"],
            quantity=row["quantity"],
            unit=row["unit"],
            category=row["category"],
            display_quantity=row["display_quantity"],
            checked=bool(row["checked"]),
            in_cart=bool(row["in_cart"]),
        )

    def to_dict(self):
        return {
            "id": self.id,
            "meal_plan_id": self.meal_plan_id,
            "name": self.name,
            "quantity": self.quantity,
            "unit": self.unit,
            "category": self.category,
            "display_quantity": self.display_quantity,
            "checked": self.checked,
            "in_cart": self.in_cart,
        }


class ShoppingList:
    def __init__(self, meal_plan_id: int, items: Optional[List[ShoppingItem]] = None):
        self.meal_plan_id = meal_plan_id
        self.items = items[:] if items else []

    @property
    def categories(self) -> List[str]:
        '''
        Categories present on the list, in store-walk order; unknown ones last, alphabetically.
        '''
        present = {item.category for item in self.items}
        ordered = [c for c in SHOPPING_CATEGORIES if c in present]
        ordered += sorted(present - set(SHOPPING_CATEGORIES))
        return ordered

    def items_by_category(self, category: str) -> List[ShoppingItem]:
        return [item for item in self.items if item.category == category]

    @property
    def total_items(self) -> int:
        return len(self.items)

    @property
    def checked_count(self) -> int:
        return sum(1 for item in self.items if item.checked)

    @property
    def unchecked_count(self) -> int:
        return self.total_items - self.checked_count

    @property
    def progress(self) -> float:
        return self.checked_count / self.total_items if self.items else 0.0

    def __str__(self) -> str:
        items_str = ",\n\t".join(str(item) for item in self.items)
        return f"Shopping List {self.meal_plan_id}:\n\t{items_str}"

    def __repr__(self) -> str:
        return self.__str__()

    def to_dict(self):
        return {
            "meal_plan_id": self.meal_plan_id,
            "categories": self.categories,
            "progress": self.progress,
            "items": [item.to_dict() for item in self.items],
        }
