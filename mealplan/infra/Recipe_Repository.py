"""Planned recipe persistence. Recipes are stored as versioned JSON documents."""
import logging
import uuid
from typing import List, Optional

from mealplan.domain.Recipe import CookingStep, PlannedRecipe, Recipe, RecipeIngredient, RecipeIngredientRef
from mealplan.infra.database import Database
from mealplan.utilities.validators import dump_recipe_document, parse_recipe_document

logger = logging.getLogger(__name__)


class RecipeRepository:
    def __init__(self, db: Database):
        self.db = db

    def _from_row(self, row) -> PlannedRecipe:
        return PlannedRecipe(
            id=row["id"],
            meal_plan_id=row["meal_plan_id"],
            recipe=parse_recipe_document(row["document"], row["id"]),
            version=row["version"],
            cooked=bool(row["cooked"]),
            cooked_at=row["cooked_at"],
        )

    def add(self, meal_plan_id: int, recipe: Recipe, recipe_id: Optional[str] = None) -> PlannedRecipe:
        recipe_id = recipe_id or uuid.uuid4().hex
        document = dump_recipe_document(recipe)
        with self.db.transaction() as conn:
            row = conn.execute(
                "SELECT COALESCE(MAX(position), -1) + 1 FROM planned_recipes WHERE meal_plan_id = ?",
                (meal_plan_id,),
            ).fetchone()
            conn.execute(
                """INSERT INTO planned_recipes (id, meal_plan_id, position, version, document)
                   VALUES (?, ?, ?, 1, ?)""",
                (recipe_id, meal_plan_id, row[0], document),
            )
        return PlannedRecipe(recipe_id, meal_plan_id, recipe.copy(), version=1)

    def get(self, recipe_id: str) -> Optional[PlannedRecipe]:
        row = self.db.query_one("SELECT * FROM planned_recipes WHERE id = ?", (recipe_id,))
        return self._from_row(row) if row else None

    def for_plan(self, meal_plan_id: int, include_cooked: bool = True) -> List[PlannedRecipe]:
        sql = "SELECT * FROM planned_recipes WHERE meal_plan_id = ?"
        if not include_cooked:
            sql += " AND cooked = 0"
        rows = self.db.query(sql + " ORDER BY position, id", (meal_plan_id,))
        return [self._from_row(r) for r in rows]

    def ingredient_refs(self, meal_plan_id: int, include_cooked: bool = False) -> List[RecipeIngredientRef]:
        """Every ingredient line of the plan's recipes, in plan order."""
        refs: List[RecipeIngredientRef] = []
        for planned in self.for_plan(meal_plan_id, include_cooked=include_cooked):
            refs.extend(planned.ingredient_refs())
        return refs

    def save(self, recipe_id: str, recipe: Recipe) -> PlannedRecipe:
        """Store a new version of the recipe document; raises KeyError for an unknown id."""
        document = dump_recipe_document(recipe)
        with self.db.transaction() as conn:
            cur = conn.execute(
                "UPDATE planned_recipes SET document = ?, version = version + 1 WHERE id = ?",
                (document, recipe_id),
            )
            if cur.rowcount == 0:
                raise KeyError(recipe_id)
            row = conn.execute("SELECT * FROM planned_recipes WHERE id = ?", (recipe_id,)).fetchone()
        logger.debug(f"Recipe {recipe_id} saved as version {row['version']}")
        return self._from_row(row)

    def update_ingredient(self, recipe_id: str, index: int, ingredient: RecipeIngredient,
                          recipe_name: Optional[str] = None,
                          steps: Optional[List[CookingStep]] = None) -> bool:
        """Replace one ingredient line, optionally with a new name and steps.

        Returns False when the recipe or the index does not exist.
        """
        with self.db.transaction():
            planned = self.get(recipe_id)
            if planned is None or not 0 <= index < len(planned.recipe.ingredients):
                return False
            recipe = planned.recipe
            recipe.ingredients[index] = ingredient
            if recipe_name:
                recipe.name = recipe_name
            if steps:
                recipe.steps = list(steps)
            self.save(recipe_id, recipe)
        return True

    def rename_ingredient(self, recipe_id: str, index: int, new_name: str) -> bool:
        """Name-only edit: quantity, unit, preparation and steps stay as they are."""
        with self.db.transaction():
            planned = self.get(recipe_id)
            if planned is None or not 0 <= index < len(planned.recipe.ingredients):
                return False
            current = planned.recipe.ingredients[index]
            return self.update_ingredient(recipe_id, index, current.copy(name=new_name))

    def mark_cooked(self, recipe_id: str, at: int) -> bool:
        with self.db.transaction() as conn:
            cur = conn.execute(
                "UPDATE planned_recipes SET cooked = 1, cooked_at = ? WHERE id = ?", (at, recipe_id)
            )
        return cur.rowcount > 0

    def delete(self, recipe_id: str) -> None:
        with self.db.transaction() as conn:
            conn.execute("DELETE FROM planned_recipes WHERE id = ?", (recipe_id,))
