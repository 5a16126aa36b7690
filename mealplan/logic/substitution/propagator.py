"""Substitution propagator.

Keeps planned recipes and the shopping list consistent when the user edits
a shopping line (single substitution) or customizes a whole recipe (batch).
Provenance records decide which recipe lines and which shopping items are
touched; an ingredient line without provenance never reached the list and
is left alone on the list side.

Network calls (one substitution job per source, sequentially) happen before
any write. All writes of one operation share one transaction.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from pydantic import ValidationError

from mealplan.api.schemas import (
    SubstitutionIngredient, SubstitutionRequest, SubstitutionResponse, SubstitutionStep,
)
from mealplan.domain.Customization import CustomizationResult
from mealplan.domain.PendingJob import JobType
from mealplan.domain.Recipe import CookingStep, PlannedRecipe, Recipe, RecipeIngredient
from mealplan.domain.ShoppingList import IngredientSource, ShoppingItem
from mealplan.events.Event_Bus import EventBus, GLOBAL_EVENT_BUS
from mealplan.events.event_helpers import publish_substitution_fallback
from mealplan.infra.Recipe_Repository import RecipeRepository
from mealplan.infra.Shopping_Repository import ShoppingRepository
from mealplan.logic.enrichment.coordinator import EnrichmentCoordinator
from mealplan.logic.matching.normalizer import DEFAULT_NORMALIZER, NameNormalizer
from mealplan.logic.pantry.classifier import guess_category, shopping_category_for
from mealplan.utilities.errors import EnrichmentError
from mealplan.utilities.validators import CustomizationInput, RecipeDocument

logger = logging.getLogger(__name__)

__all__ = [
    "SubstitutionPropagator", "SubstitutionReport", "INGREDIENT_ORDER", "ingredient_order",
    "insert_by_category",
]

# (priority, keywords) checked in this order; the first table with a
# substring hit wins. Spices come before produce so "fresh basil" is a spice
# and "garlic powder" is not produce.
INGREDIENT_ORDER: Tuple[Tuple[int, Tuple[str, ...]], ...] = (
    (0, ("chicken", "beef", "pork", "lamb", "turkey", "duck", "salmon", "fish", "shrimp", "prawn",
         "tuna", "cod", "tilapia", "halibut", "tofu", "tempeh", "seitan", "bacon", "sausage", "ham",
         "steak", "fillet", "thigh", "breast", "ground")),
    (1, ("milk", "cream", "cheese", "butter", "yogurt", "sour cream", "parmesan", "mozzarella",
         "cheddar", "feta", "ricotta")),
    (4, ("salt", "pepper", "paprika", "cumin", "oregano", "thyme", "basil", "rosemary", "parsley",
         "cilantro", "dill", "chili", "cayenne", "cinnamon", "nutmeg", "turmeric", "curry", "ginger",
         "garlic powder", "onion powder", "bay leaf", "clove", "coriander", "fennel seed")),
    (2, ("onion", "garlic", "tomato", "potato", "carrot", "celery", "broccoli", "spinach", "lettuce",
         "kale", "cabbage", "zucchini", "cucumber", "mushroom", "asparagus", "green bean", "pea",
         "corn", "avocado", "lemon", "lime", "orange", "apple", "banana", "berry", "scallion",
         "leek", "shallot", "jalapeño", "bell pepper", "snap pea")),
    (3, ("rice", "pasta", "noodle", "quinoa", "couscous", "bread", "flour", "oil", "vinegar",
         "soy sauce", "sauce", "broth", "stock", "bean", "lentil", "chickpea", "canned", "sugar",
         "honey")),
)
OTHER_PRIORITY = 5


def ingredient_order(name: str) -> int:
    """Ordering priority of an ingredient: protein, dairy, produce, pantry, spice, other."""
    lower = (name or "").lower()
    for priority, keywords in INGREDIENT_ORDER:
        if any(k in lower for k in keywords):
            return priority
    return OTHER_PRIORITY


def insert_by_category(entries: List[Tuple[Optional[int], RecipeIngredient]],
                       ingredient: RecipeIngredient) -> None:
    """Insert before the first entry of a later category, else append."""
    priority = ingredient_order(ingredient.name)
    for pos, (_, existing) in enumerate(entries):
        if ingredient_order(existing.name) > priority:
            entries.insert(pos, (None, ingredient))
            return
    entries.append((None, ingredient))


def _same_unit(a: str, b: str) -> bool:
    return (a or "").strip().lower() == (b or "").strip().lower()


@dataclass
class SubstitutionReport:
    item: ShoppingItem
    renamed: bool = False
    substituted: List[str] = field(default_factory=list)
    fallbacks: List[str] = field(default_factory=list)
    errors: List[EnrichmentError] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.fallbacks)


class SubstitutionPropagator:
    def __init__(self, recipes: RecipeRepository, shopping: ShoppingRepository,
                 coordinator: EnrichmentCoordinator, bus: Optional[EventBus] = None,
                 normalizer: NameNormalizer = DEFAULT_NORMALIZER):
        self.recipes = recipes
        self.shopping = shopping
        self.coordinator = coordinator
        self.bus = bus if bus is not None else GLOBAL_EVENT_BUS
        self.normalizer = normalizer

    @property
    def db(self):
        return self.shopping.db

    # --- single item ---------------------------------------------------------
    async def apply_customization(self, item_id: int, new_name: str,
                                  new_display_quantity: Optional[str] = None) -> SubstitutionReport:
        """Rename a shopping item and carry the substitution into its recipes.

        Every source recipe line is rewritten by the substitution service; a
        failed rewrite falls back to changing the ingredient name only.
        Raises ValueError for an unknown item or a blank name.
        """
        edit = CustomizationInput(item_id=item_id, new_name=new_name,
                                  new_display_quantity=new_display_quantity)
        item_id, new_name = edit.item_id, edit.new_name
        new_display_quantity = edit.new_display_quantity
        item = self.shopping.get_item(item_id)
        if item is None:
            raise ValueError(f"Unknown shopping item {item_id}")
        report = SubstitutionReport(item, renamed=item.name.strip().lower() != new_name.lower())

        working: Dict[str, Recipe] = {}
        changed_sources: List[IngredientSource] = []
        if report.renamed:
            for source in self.shopping.sources_for_item(item_id):
                recipe = working.get(source.recipe_id)
                if recipe is None:
                    planned = self.recipes.get(source.recipe_id)
                    if planned is None:
                        logger.debug(f"Source {source} points at a deleted recipe, skipping")
                        continue
                    recipe = planned.recipe
                if not 0 <= source.ingredient_index < len(recipe.ingredients):
                    logger.debug(f"Source {source} is out of range for '{recipe.name}', skipping")
                    continue
                updated = await self._substitute(item_id, source, recipe, new_name, report)
                recipe.ingredients[source.ingredient_index] = updated
                working[source.recipe_id] = recipe
                source.original_name = updated.name
                source.original_quantity = updated.quantity
                source.original_unit = updated.unit
                changed_sources.append(source)

        with self.db.transaction():
            for recipe_id, recipe in working.items():
                self.recipes.save(recipe_id, recipe)
            item.name = new_name
            if new_display_quantity is not None:
                item.display_quantity = new_display_quantity
            self.shopping.upsert(item)
            for source in changed_sources:
                self.shopping.update_source(source)

        logger.info(f"Shopping item {item_id} is now '{item.name}': {len(report.substituted)} recipe(s) "
                    f"rewritten, {len(report.fallbacks)} renamed only")
        return report

    async def _substitute(self, item_id: int, source: IngredientSource, recipe: Recipe,
                          new_name: str, report: SubstitutionReport) -> RecipeIngredient:
        original = recipe.ingredients[source.ingredient_index]
        request = SubstitutionRequest(
            recipe_name=recipe.name,
            original_ingredient=SubstitutionIngredient(name=original.name, quantity=original.quantity,
                                                       unit=original.unit,
                                                       preparation=original.preparation),
            new_ingredient_name=new_name,
            steps=[SubstitutionStep(title=s.title, substeps=s.substeps) for s in recipe.steps],
        )
        try:
            response: SubstitutionResponse = await self.coordinator.run(
                JobType.INGREDIENT_SUBSTITUTION, request, source.recipe_id)
        except EnrichmentError as e:
            return self._rename_only(item_id, source, recipe, original, new_name, e, report)

        line = response.updated_ingredient
        updated = RecipeIngredient(name=line.name.strip() or new_name, quantity=line.quantity, unit=line.unit,
                                   preparation=line.preparation)
        name = response.updated_recipe_name.strip() or recipe.name
        steps = [CookingStep(s.title, s.substeps) for s in response.updated_steps] or recipe.steps
        try:
            RecipeDocument.from_recipe(Recipe(name, ingredients=[updated], steps=steps))
        except ValidationError as e:
            error = EnrichmentError(f"Substitution result cannot be stored: {e.error_count()} error(s)",
                                    "substitute_ingredient", details={"recipe_id": source.recipe_id})
            return self._rename_only(item_id, source, recipe, original, new_name, error, report)

        recipe.name = name
        recipe.steps = steps
        report.substituted.append(source.recipe_id)
        return updated

    def _rename_only(self, item_id: int, source: IngredientSource, recipe: Recipe, original: RecipeIngredient,
                     new_name: str, error: EnrichmentError, report: SubstitutionReport) -> RecipeIngredient:
        logger.warning(f"Substitution of '{original.name}' -> '{new_name}' in '{recipe.name}' "
                       f"failed, renaming only: {error}")
        publish_substitution_fallback(item_id, source.recipe_id, new_name, str(error), bus=self.bus)
        report.fallbacks.append(source.recipe_id)
        report.errors.append(error)
        return original.copy(name=new_name)

    # --- whole recipe --------------------------------------------------------
    def apply_recipe_customization(self, recipe_id: str,
                                   customization: CustomizationResult) -> PlannedRecipe:
        """Rewrite a planned recipe and adjust the shopping list to match.

        Removed lines subtract their quantity from their shopping item, which
        goes away only when nothing is left. Modified lines rename or
        requantify their item. Added lines merge into a matching item with the
        same unit or become new items. Provenance indices follow the new
        ingredient order. Raises ValueError for an unknown recipe.

        Removals and modifications reach the shopping list only through the
        recipe's source links, never by name. Manually added items, or items
        that mention the ingredient without being sourced from this recipe,
        are left as they are.
        """
        with self.db.transaction():
            planned = self.recipes.get(recipe_id)
            if planned is None:
                raise ValueError(f"Unknown recipe {recipe_id}")
            recipe = planned.recipe

            entries: List[Tuple[Optional[int], RecipeIngredient]] = []
            removed: List[int] = []
            modified: List[Tuple[int, RecipeIngredient, RecipeIngredient]] = []
            for idx, ing in enumerate(recipe.ingredients):
                if any(self.normalizer.matches(ing.name, r) for r in customization.ingredients_to_remove):
                    logger.debug(f"Removing '{ing.name}' from '{recipe.name}'")
                    removed.append(idx)
                    continue
                mod = next((m for m in customization.ingredients_to_modify
                            if self.normalizer.matches(ing.name, m.original_name)), None)
                if mod is not None:
                    new_ing = mod.apply_to(ing)
                    modified.append((idx, ing, new_ing))
                    entries.append((idx, new_ing))
                else:
                    entries.append((idx, ing))
            for addition in customization.ingredients_to_add:
                insert_by_category(entries, addition)

            recipe.ingredients = [ing for _, ing in entries]
            if customization.updated_recipe_name.strip():
                recipe.name = customization.updated_recipe_name.strip()
            if customization.updated_steps:
                recipe.steps = list(customization.updated_steps)
            saved = self.recipes.save(recipe_id, recipe)

            new_index = {old: pos for pos, (old, _) in enumerate(entries) if old is not None}
            by_index: Dict[int, List[IngredientSource]] = {}
            for source in self.shopping.sources_for_recipe(recipe_id):
                by_index.setdefault(source.ingredient_index, []).append(source)

            for idx in removed:
                for source in by_index.pop(idx, []):
                    self._remove_contribution(source)
            for idx, old, new in modified:
                for source in by_index.get(idx, []):
                    self._modify_contribution(planned.meal_plan_id, source, old, new)
            for old_idx, sources in by_index.items():
                for source in sources:
                    if old_idx not in new_index:
                        self.shopping.delete_source(source.id)
                    else:
                        source.ingredient_index = new_index[old_idx]
                        self.shopping.update_source(source)
            for pos, (old, ing) in enumerate(entries):
                if old is None:
                    self._add_contribution(planned.meal_plan_id, recipe_id, pos, ing)

        logger.info(f"Customized recipe {recipe_id} as '{saved.name}': -{len(removed)} "
                    f"~{len(modified)} +{len(customization.ingredients_to_add)}")
        return saved

    def _remove_contribution(self, source: IngredientSource) -> None:
        self.shopping.delete_source(source.id)
        item = self.shopping.get_item(source.shopping_item_id)
        if item is not None:
            self._take_out(item, source.original_quantity, source.original_unit)

    def _take_out(self, item: ShoppingItem, quantity: float, unit: str) -> None:
        """Subtract one contribution; the item is deleted only when nothing remains."""
        if item.quantity > 0 and _same_unit(item.unit, unit):
            remainder = item.quantity - quantity
            if remainder <= 0:
                self.shopping.delete_item(item.id)
                logger.debug(f"Removed shopping item '{item.name}'")
                return
            item.quantity = remainder
            item.display_quantity = None
            self.shopping.upsert(item)
        elif not self.shopping.sources_for_item(item.id):
            # polished or mixed-unit line with no other contributor left
            self.shopping.delete_item(item.id)
            logger.debug(f"Removed shopping item '{item.name}'")

    def _modify_contribution(self, meal_plan_id: int, source: IngredientSource,
                             old: RecipeIngredient, new: RecipeIngredient) -> None:
        item = self.shopping.get_item(source.shopping_item_id)
        if item is None:
            return
        renamed = self.normalizer.normalize(old.name) != self.normalizer.normalize(new.name)
        shared = len(self.shopping.sources_for_item(item.id)) > 1
        source.original_name = new.name
        source.original_quantity = new.quantity
        source.original_unit = new.unit
        if renamed and shared:
            target = self._merge_or_create(meal_plan_id, new, exclude=item.id)
            source.shopping_item_id = target.id
            self.shopping.update_source(source)
            self._take_out(item, old.quantity, old.unit)
        else:
            if renamed:
                item.name = new.name
            self._requantify(item, old, new, shared)
            self.shopping.upsert(item)

    def _requantify(self, item: ShoppingItem, old: RecipeIngredient, new: RecipeIngredient,
                    shared: bool) -> None:
        if old.quantity == new.quantity and _same_unit(old.unit, new.unit):
            return
        if item.quantity > 0 and _same_unit(item.unit, old.unit) and _same_unit(old.unit, new.unit):
            item.quantity = max(item.quantity + new.quantity - old.quantity, 0.0)
            item.display_quantity = None
        elif not shared:
            item.quantity, item.unit = new.quantity, new.unit
            item.display_quantity = None

    def _add_contribution(self, meal_plan_id: int, recipe_id: str, index: int,
                          ingredient: RecipeIngredient) -> None:
        target = self._merge_or_create(meal_plan_id, ingredient)
        self.shopping.add_sources([IngredientSource(
            recipe_id=recipe_id,
            ingredient_index=index,
            original_name=ingredient.name,
            original_quantity=ingredient.quantity,
            original_unit=ingredient.unit,
            shopping_item_id=target.id,
        )])

    def _merge_or_create(self, meal_plan_id: int, ingredient: RecipeIngredient,
                         exclude: Optional[int] = None) -> ShoppingItem:
        for item in self.shopping.get_items(meal_plan_id):
            if item.id == exclude:
                continue
            if self.normalizer.matches(item.name, ingredient.name) and _same_unit(item.unit, ingredient.unit):
                item.quantity += ingredient.quantity
                item.display_quantity = None
                return self.shopping.upsert(item)
        item = ShoppingItem(name=ingredient.name, quantity=ingredient.quantity, unit=ingredient.unit,
                            category=shopping_category_for(guess_category(ingredient.name)),
                            meal_plan_id=meal_plan_id)
        return self.shopping.upsert(item)
