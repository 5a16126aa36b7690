"""Shopping list builder.

aggregate() turns the ingredient lines of a plan's recipes into shopping
items with provenance. rebuild_sources() re-links items to recipe lines after
the enrichment service has rewritten the list.
"""
from typing import Dict, Iterable, List, Tuple

from mealplan.domain.Pantry import PantryItem
from mealplan.domain.Recipe import RecipeIngredientRef
from mealplan.domain.ShoppingList import IngredientSource, ShoppingItem
from mealplan.logic.matching.normalizer import names_match, normalize_name
from mealplan.logic.pantry.ledger import pantry_covers
from mealplan.utilities.constants import UNCATEGORIZED

__all__ = ['aggregate', 'rebuild_sources', 'bucket_key']


def bucket_key(name: str, unit: str) -> Tuple[str, str]:
    return normalize_name(name), (unit or '').strip().lower()


def aggregate(refs: Iterable[RecipeIngredientRef],
              pantry_items: Iterable[PantryItem] = ()) -> List[ShoppingItem]:
    """Compute the shopping items needed for a set of recipe ingredient lines.

    Args:
        refs: Ingredient lines of every planned recipe, in plan order.
        pantry_items: Current pantry snapshot; lines it already covers are skipped.

    Returns:
        Unsaved ShoppingItem drafts in first-appearance order, each carrying
        one IngredientSource per contributing line. Units are compared
        exactly (case-insensitive), never converted.
    """
    pantry = list(pantry_items)
    buckets: Dict[Tuple[str, str], ShoppingItem] = {}
    for ref in refs:
        if not (ref.name or '').strip():
            continue
        if pantry and pantry_covers(ref.name, pantry):
            continue
        key = bucket_key(ref.name, ref.unit)
        item = buckets.get(key)
        if item is None:
            item = ShoppingItem(name=ref.name.strip(), quantity=0.0, unit=(ref.unit or '').strip(),
                                category=UNCATEGORIZED)
            buckets[key] = item
        item.quantity += ref.quantity
        item.sources.append(IngredientSource(
            recipe_id=ref.recipe_id,
            ingredient_index=ref.ingredient_index,
            original_name=ref.name,
            original_quantity=ref.quantity,
            original_unit=ref.unit,
        ))
    return list(buckets.values())


def rebuild_sources(items: Iterable[ShoppingItem],
                    refs: Iterable[RecipeIngredientRef]) -> List[IngredientSource]:
    """Link stored items to every recipe line whose name matches by containment.

    Best effort: an item whose name no longer resembles any recipe line ends
    up with no sources.
    """
    ref_list = list(refs)
    sources: List[IngredientSource] = []
    for item in items:
        for ref in ref_list:
            if names_match(item.name, ref.name):
                sources.append(IngredientSource(
                    recipe_id=ref.recipe_id,
                    ingredient_index=ref.ingredient_index,
                    original_name=ref.name,
                    original_quantity=ref.quantity,
                    original_unit=ref.unit,
                    shopping_item_id=item.id,
                ))
    return sources
