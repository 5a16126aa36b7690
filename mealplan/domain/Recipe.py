"""Recipe domain entities: structured ingredients and steps, planned recipe versions."""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional


class RecipeIngredient:
    def __init__(self, name: str = "", quantity: float = 0.0, unit: str = "",
                 preparation: Optional[str] = None):
        self.name = name
        self.quantity = float(quantity or 0)
        self.unit = unit or ""
        self.preparation = preparation or None

    def __str__(self) -> str:
        qty = f"{self.quantity:g}"
        text = f"{qty} {self.unit} {self.name}".replace("  ", " ").strip()
        if self.preparation:
            text += f", {self.preparation}"
        return text

    __repr__ = __str__

    def __eq__(self, other):
        if not isinstance(other, RecipeIngredient):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def copy(self, **changes) -> "RecipeIngredient":
        data = self.to_dict()
        data.update(changes)
        return RecipeIngredient.from_dict(data)

    @staticmethod
    def from_dict(data):
        d = dict(data) if isinstance(data, dict) else {}
        return RecipeIngredient(
            name=d.get("name", ""),
            quantity=d.get("quantity", 0) or 0,
            unit=d.get("unit", "") or "",
            preparation=d.get("preparation"),
        )

    def to_dict(self):
        return {
            "name": self.name,
            "quantity": self.quantity,
            "unit": self.unit,
            "preparation": self.preparation,
        }


class CookingStep:
    def __init__(self, title: str = "", substeps: Optional[List[str]] = None):
        self.title = title
        self.substeps = substeps[:] if substeps else []

    def __str__(self) -> str:
        return f"{self.title} ({len(self.substeps)} substeps)"

    __repr__ = __str__

    def __eq__(self, other):
        if not isinstance(other, CookingStep):
            return NotImplemented
        return self.title == other.title and self.substeps == other.substeps

    @staticmethod
    def from_dict(data):
        d = dict(data) if isinstance(data, dict) else {}
        return CookingStep(title=d.get("title", ""), substeps=list(d.get("substeps") or []))

    def to_dict(self):
        return {"title": self.title, "substeps": list(self.substeps)}


class Recipe:
    def __init__(self, name: str = "", description: str = "", servings: int = 0,
                 ingredients: Optional[List[RecipeIngredient]] = None,
                 steps: Optional[List[CookingStep]] = None):
        self.name = name
        self.description = description
        self.servings = servings
        self.ingredients = ingredients[:] if ingredients else []
        self.steps = steps[:] if steps else []

    def __str__(self) -> str:
        return f"{self.name} - {self.servings} servings - {len(self.ingredients)} ingredients"

    __repr__ = __str__

    def copy(self) -> "Recipe":
        return Recipe.from_dict(self.to_dict())

    @staticmethod
    def from_dict(data):
        d = dict(data)
        return Recipe(
            name=d.get("name", ""),
            description=d.get("description", "") or "",
            servings=d.get("servings", 0) or 0,
            ingredients=[RecipeIngredient.from_dict(i) for i in d.get("ingredients", [])],
            steps=[CookingStep.from_dict(s) for s in d.get("steps", [])],
        )

    def to_dict(self):
        return {
            "name": self.name,
            "description": self.description,
            "servings": self.servings,
            "ingredients": [ing.to_dict() for ing in self.ingredients],
            "steps": [step.to_dict() for step in self.steps],
        }


@dataclass(frozen=True)
class RecipeIngredientRef:
    """One ingredient line of one saved recipe version."""
    recipe_id: str
    ingredient_index: int
    name: str
    quantity: float
    unit: str
    preparation: Optional[str] = None


class PlannedRecipe:
    """A recipe placed in a meal plan. Each save bumps ``version``."""

    def __init__(self, id: str, meal_plan_id: int, recipe: Recipe, version: int = 1,
                 cooked: bool = False, cooked_at: Optional[int] = None):
        self.id = id
        self.meal_plan_id = meal_plan_id
        self.recipe = recipe
        self.version = version
        self.cooked = cooked
        self.cooked_at = cooked_at

    @property
    def name(self) -> str:
        return self.recipe.name

    def ingredient_refs(self) -> List[RecipeIngredientRef]:
        return [
            RecipeIngredientRef(self.id, idx, ing.name, ing.quantity, ing.unit, ing.preparation)
            for idx, ing in enumerate(self.recipe.ingredients)
        ]

    def __str__(self) -> str:
        status = "cooked" if self.cooked else "planned"
        return f"{self.recipe.name} (v{self.version}, {status})"

    __repr__ = __str__
