"""Recipe customization results: what to add, remove and modify in a recipe."""
from __future__ import annotations

from typing import List, Optional

from mealplan.domain.Recipe import CookingStep, RecipeIngredient


class ModifiedIngredient:
    def __init__(self, original_name: str, new_name: Optional[str] = None,
                 new_quantity: Optional[float] = None, new_unit: Optional[str] = None,
                 new_preparation: Optional[str] = None):
        self.original_name = original_name
        self.new_name = new_name
        self.new_quantity = new_quantity
        self.new_unit = new_unit
        self.new_preparation = new_preparation

    def apply_to(self, ingredient: RecipeIngredient) -> RecipeIngredient:
        '''Returns a copy of ingredient with every provided field replaced.'''
        return RecipeIngredient(
            name=self.new_name or ingredient.name,
            quantity=ingredient.quantity if self.new_quantity is None else self.new_quantity,
            unit=ingredient.unit if self.new_unit is None else self.new_unit,
            preparation=ingredient.preparation if self.new_preparation is None else self.new_preparation,
        )

    def __str__(self) -> str:
        return f"{self.original_name} -> {self.new_name or self.original_name}"

    __repr__ = __str__


class CustomizationResult:
    def __init__(self, updated_recipe_name: str,
                 ingredients_to_add: Optional[List[RecipeIngredient]] = None,
                 ingredients_to_remove: Optional[List[str]] = None,
                 ingredients_to_modify: Optional[List[ModifiedIngredient]] = None,
                 updated_steps: Optional[List[CookingStep]] = None,
                 changes_summary: str = "", notes: Optional[str] = None):
        self.updated_recipe_name = updated_recipe_name
        self.ingredients_to_add = ingredients_to_add[:] if ingredients_to_add else []
        self.ingredients_to_remove = ingredients_to_remove[:] if ingredients_to_remove else []
        self.ingredients_to_modify = ingredients_to_modify[:] if ingredients_to_modify else []
        self.updated_steps = updated_steps[:] if updated_steps else []
        self.changes_summary = changes_summary
        self.notes = notes

    @property
    def is_empty(self) -> bool:
        return not (self.ingredients_to_add or self.ingredients_to_remove or self.ingredients_to_modify)

    def __str__(self) -> str:
        return (f"{self.updated_recipe_name}: +{len(self.ingredients_to_add)} "
                f"-{len(self.ingredients_to_remove)} ~{len(self.ingredients_to_modify)}")

    __repr__ = __str__
