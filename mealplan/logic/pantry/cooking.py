"""Marking planned recipes as cooked."""
import logging
from typing import Callable, List

from mealplan.domain.Pantry import now_ms
from mealplan.infra.Recipe_Repository import RecipeRepository
from mealplan.logic.pantry.ledger import DeductionWarning, PantryLedger

logger = logging.getLogger(__name__)


def mark_recipe_cooked(recipes: RecipeRepository, ledger: PantryLedger, recipe_id: str,
                       clock: Callable[[], int] = now_ms) -> List[DeductionWarning]:
    """Consume the recipe's ingredients from the pantry and flag it cooked.

    Cooking something twice does not deduct twice. Raises ValueError for an
    unknown recipe.
    """
    with recipes.db.transaction():
        planned = recipes.get(recipe_id)
        if planned is None:
            raise ValueError(f"Unknown recipe {recipe_id}")
        if planned.cooked:
            logger.info(f"Recipe '{planned.name}' was already cooked")
            return []
        warnings = ledger.consume_recipe(planned.recipe.ingredients)
        recipes.mark_cooked(recipe_id, clock())
    for w in warnings:
        logger.warning(f"Cooking '{planned.name}': {w}")
    return warnings
