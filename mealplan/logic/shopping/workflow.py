"""Shopping workflow: build, polish and complete a plan's shopping list.

Enrichment is optional everywhere. When the service fails the user keeps
the locally computed data and the result object carries the error.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from pydantic import ValidationError

from mealplan.api.schemas import (
    CategorizedPantryItem, GroceryIngredient, GroceryPolishRequest, GroceryPolishResponse,
    PantryCategorizeRequest, PantryCategorizeResponse, PantrySnapshotItem, ShoppingItemForPantry,
)
from mealplan.domain.Pantry import PantryCategory, StockLevel, TrackingMode
from mealplan.domain.PendingJob import JobType
from mealplan.domain.ShoppingList import ShoppingItem, ShoppingList
from mealplan.infra.Plan_Repository import PlanRepository
from mealplan.infra.Recipe_Repository import RecipeRepository
from mealplan.infra.Shopping_Repository import ShoppingRepository
from mealplan.logic.enrichment.coordinator import EnrichmentCoordinator, JobCompleted, JobOutcome
from mealplan.logic.pantry.classifier import guess_category, shopping_category_for
from mealplan.logic.pantry.ledger import PantryLedger, RestockReport
from mealplan.logic.shopping.list_builder import aggregate, rebuild_sources
from mealplan.utilities.config import EnvSettingsProvider
from mealplan.utilities.errors import EnrichmentError, MealPlanError
from mealplan.utilities.validators import PantryItemInput, ShoppingItemInput

logger = logging.getLogger(__name__)


@dataclass
class ListResult:
    shopping_list: ShoppingList
    error: Optional[EnrichmentError] = None

    @property
    def enriched(self) -> bool:
        return self.error is None


@dataclass
class TripResult:
    restock: RestockReport = field(default_factory=RestockReport)
    categorized: bool = False
    error: Optional[EnrichmentError] = None


class ShoppingWorkflow:
    def __init__(self, plans: PlanRepository, recipes: RecipeRepository, shopping: ShoppingRepository,
                 ledger: PantryLedger, coordinator: EnrichmentCoordinator,
                 settings: Optional[EnvSettingsProvider] = None):
        self.plans = plans
        self.recipes = recipes
        self.shopping = shopping
        self.ledger = ledger
        self.coordinator = coordinator
        self.settings = settings or EnvSettingsProvider()
        coordinator.register_handler(JobType.LIST_POLISH, self._on_resumed_polish)
        coordinator.register_handler(JobType.PANTRY_CATEGORIZE, self._on_resumed_categorize)

    @property
    def db(self):
        return self.shopping.db

    # --- generation ----------------------------------------------------------
    def generate_list(self, meal_plan_id: int) -> ShoppingList:
        """Aggregate the plan's uncooked recipes into a fresh, unenriched list."""
        refs = self.recipes.ingredient_refs(meal_plan_id)
        drafts = aggregate(refs, self.ledger.items())
        self.shopping.replace(meal_plan_id, drafts)
        shopping_list = self.shopping.get_list(meal_plan_id)
        logger.info(f"Generated {shopping_list.total_items} shopping item(s) from {len(refs)} "
                    f"ingredient line(s) for plan {meal_plan_id}")
        return shopping_list

    def add_item(self, meal_plan_id: int, entry: ShoppingItemInput) -> ShoppingItem:
        category = entry.category or shopping_category_for(guess_category(entry.name))
        item = ShoppingItem(name=entry.name, quantity=entry.quantity, unit=entry.unit,
                            category=category, meal_plan_id=meal_plan_id)
        return self.shopping.upsert(item)

    # --- polish --------------------------------------------------------------
    def _polish_request(self, items: List[ShoppingItem]) -> GroceryPolishRequest:
        return GroceryPolishRequest(
            ingredients=[GroceryIngredient(id=i.id, name=i.name, quantity=i.quantity, unit=i.unit)
                         for i in items],
            pantry_items=[
                PantrySnapshotItem(name=p.name, quantity=p.quantity_remaining, unit=p.unit,
                                   availability=p.effective_stock_level.value.lower())
                for p in self.ledger.items()
            ],
            unit_system=self.settings.unit_system,
        )

    async def polish_list(self, meal_plan_id: int) -> ListResult:
        """Send the list for enrichment and swap in the polished lines.

        On failure the raw list stays and the result carries the error.
        """
        items = self.shopping.get_items(meal_plan_id)
        if not items:
            return ListResult(self.shopping.get_list(meal_plan_id))
        try:
            response = await self.coordinator.run(JobType.LIST_POLISH, self._polish_request(items),
                                                  str(meal_plan_id))
        except EnrichmentError as e:
            logger.warning(f"Polish failed for plan {meal_plan_id}, keeping raw list: {e}")
            return ListResult(self.shopping.get_list(meal_plan_id), error=e)
        self.apply_polish(meal_plan_id, response)
        return ListResult(self.shopping.get_list(meal_plan_id))

    def apply_polish(self, meal_plan_id: int, response: GroceryPolishResponse) -> List[ShoppingItem]:
        """Replace the plan's items with the polished ones and re-link sources."""
        drafts = [
            ShoppingItem(name=p.name, quantity=0.0, unit="", category=p.category,
                         display_quantity=p.display_quantity)
            for p in response.items
        ]
        with self.db.transaction():
            stored = self.shopping.replace(meal_plan_id, drafts)
            try:
                with self.db.transaction():
                    sources = rebuild_sources(stored, self.recipes.ingredient_refs(meal_plan_id))
                    self.shopping.add_sources(sources)
            except MealPlanError:
                logger.exception(f"Could not rebuild sources for plan {meal_plan_id}; list kept without them")
        logger.info(f"Applied polish to plan {meal_plan_id}: {len(stored)} item(s)")
        return stored

    def _on_resumed_polish(self, outcome: JobOutcome) -> None:
        if isinstance(outcome, JobCompleted) and outcome.job.related_entity_id:
            self.apply_polish(int(outcome.job.related_entity_id), outcome.result)

    # --- trip completion -----------------------------------------------------
    async def complete_trip(self, meal_plan_id: int) -> TripResult:
        """Move checked items into the pantry and close the plan's shopping.

        Items are categorized by the service when it answers, otherwise by
        the local keyword tables.
        """
        checked = self.shopping.get_checked(meal_plan_id)
        result = TripResult()
        if checked:
            request = PantryCategorizeRequest(items=[
                ShoppingItemForPantry(id=i.id, name=i.name, polished_display_quantity=i.display,
                                      shopping_category=i.category)
                for i in checked
            ])
            try:
                response = await self.coordinator.run(JobType.PANTRY_CATEGORIZE, request, str(meal_plan_id))
                entries = categorized_entries(response, str(meal_plan_id))
                result.categorized = True
            except EnrichmentError as e:
                logger.warning(f"Categorization failed for plan {meal_plan_id}, using local guesses: {e}")
                entries = [local_entry(i) for i in checked]
                result.error = e
            result.restock = self.ledger.restock(entries)
        self.plans.mark_shopping_complete(meal_plan_id)
        return result

    def _on_resumed_categorize(self, outcome: JobOutcome) -> None:
        if not isinstance(outcome, JobCompleted):
            return
        plan_id = outcome.job.related_entity_id
        try:
            entries = categorized_entries(outcome.result, plan_id)
        except EnrichmentError as e:
            if not plan_id:
                logger.warning(f"Dropping resumed categorization {outcome.job.job_id}: {e}")
                return
            logger.warning(f"Resumed categorization for plan {plan_id} unusable, using local guesses: {e}")
            entries = [local_entry(i) for i in self.shopping.get_checked(int(plan_id))]
        self.ledger.restock(entries)
        if plan_id:
            self.plans.mark_shopping_complete(int(plan_id))


def categorized_entries(response: PantryCategorizeResponse, plan_id: Optional[str] = None) -> List[PantryItemInput]:
    """Turn the service's answer into ledger entries, rejecting the whole batch if any row does not fit."""
    try:
        return [categorized_entry(c) for c in response.items]
    except ValidationError as e:
        raise EnrichmentError("Categorization result does not fit the pantry", "categorize_pantry",
                              details={"plan_id": plan_id, "errors": e.error_count()}) from e


def categorized_entry(item: CategorizedPantryItem) -> PantryItemInput:
    return PantryItemInput(
        name=item.name,
        quantity=max(item.quantity, 0.0),
        unit=item.unit.lower(),
        category=PantryCategory.from_string(item.category),
        tracking_hint=TrackingMode.from_string(item.tracking_style),
        stock_level=StockLevel.from_string(item.stock_level) if item.stock_level else None,
        expiry_days=item.expiry_days,
        perishable=item.perishable,
    )


def local_entry(item: ShoppingItem) -> PantryItemInput:
    return PantryItemInput(
        name=item.name,
        quantity=item.quantity if item.quantity > 0 else 1.0,
        unit=item.unit,
        category=guess_category(item.name),
    )
