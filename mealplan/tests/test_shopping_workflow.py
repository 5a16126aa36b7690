import asyncio
import unittest

import httpx

from mealplan.api.enrichment_api import EnrichmentClient
from mealplan.domain.Pantry import PantryCategory, StockLevel, TrackingMode
from mealplan.domain.PendingJob import JobType, PendingJob
from mealplan.domain.Recipe import Recipe, RecipeIngredient
from mealplan.events.Event_Bus import EventBus
from mealplan.infra.Job_Repository import JobRepository
from mealplan.infra.Pantry_Repository import PantryRepository
from mealplan.infra.Plan_Repository import PlanRepository
from mealplan.infra.Recipe_Repository import RecipeRepository
from mealplan.infra.Shopping_Repository import ShoppingRepository
from mealplan.infra.database import Database
from mealplan.logic.enrichment.coordinator import EnrichmentCoordinator
from mealplan.logic.pantry.ledger import PantryLedger
from mealplan.logic.shopping.workflow import ShoppingWorkflow
from mealplan.tests.fakes import NOW, FakeEnrichmentClient, completed, failed, no_wait
from mealplan.tests.test_enrichment_api import build_fake_service
from mealplan.utilities.config import EnvSettingsProvider
from mealplan.utilities.validators import PantryItemInput, ShoppingItemInput

POLISHED = {"items": [
    {"name": "Jasmine rice", "displayQuantity": "3 cups", "category": "Pantry"},
    {"name": "Whole milk", "displayQuantity": "1 carton", "category": "Dairy"},
]}


class WorkflowFixture:

    def build(self, client):
        self.db = Database(":memory:")
        self.bus = EventBus()
        self.plans = PlanRepository(self.db)
        self.plan = self.plans.create(created_at=NOW)
        self.recipes = RecipeRepository(self.db)
        self.shopping = ShoppingRepository(self.db)
        self.ledger = PantryLedger(PantryRepository(self.db), bus=self.bus, clock=lambda: NOW)
        self.client = client
        self.coordinator = EnrichmentCoordinator(client, JobRepository(self.db), bus=self.bus,
                                                 clock=lambda: NOW, max_polls=3, sleep=no_wait)
        self.workflow = ShoppingWorkflow(self.plans, self.recipes, self.shopping, self.ledger, self.coordinator,
                                         settings=EnvSettingsProvider("imperial"))

        self.recipes.add(self.plan.id, Recipe("Rice Pudding", ingredients=[
            RecipeIngredient("rice", 1, "cup"), RecipeIngredient("milk", 2, "cup")]), recipe_id="A")
        self.recipes.add(self.plan.id, Recipe("Fried Rice", ingredients=[
            RecipeIngredient("rice", 2, "cup"), RecipeIngredient("eggs", 2, "")]), recipe_id="B")

    def names(self):
        return [i.name for i in self.shopping.get_items(self.plan.id)]


class TestGenerateList(WorkflowFixture, unittest.TestCase):

    def setUp(self):
        self.build(FakeEnrichmentClient())

    def tearDown(self):
        self.db.close()

    def test_generate_aggregates_uncooked_recipes(self):
        shopping_list = self.workflow.generate_list(self.plan.id)

        rice = shopping_list.items[0]
        self.assertEqual((rice.name, rice.quantity, rice.unit), ("rice", 3, "cup"))
        self.assertEqual([s.key() for s in self.shopping.sources_for_item(rice.id)], [("A", 0), ("B", 0)])
        self.assertEqual(self.names(), ["rice", "milk", "eggs"])

    def test_milk_in_pantry_stays_off_the_list(self):
        self.ledger.add_item(PantryItemInput(name="Milk", unit="l", category=PantryCategory.DAIRY,
                                             tracking_mode=TrackingMode.STOCK_LEVEL,
                                             stock_level=StockLevel.SOME))

        self.workflow.generate_list(self.plan.id)

        self.assertEqual(self.names(), ["rice", "eggs"])

    def test_cooked_recipes_are_left_out(self):
        self.recipes.mark_cooked("A", NOW)

        self.workflow.generate_list(self.plan.id)

        rice = self.shopping.get_items(self.plan.id)[0]
        self.assertEqual(rice.quantity, 2)
        self.assertEqual(self.names(), ["rice", "eggs"])

    def test_regenerating_replaces_the_list(self):
        self.workflow.generate_list(self.plan.id)
        self.workflow.generate_list(self.plan.id)

        self.assertEqual(len(self.shopping.get_items(self.plan.id)), 3)
        self.assertEqual(len(self.shopping.sources_for_plan(self.plan.id)), 4)

    def test_add_item_guesses_category(self):
        lime = self.workflow.add_item(self.plan.id, ShoppingItemInput(name=" lime ", quantity=2))
        tape = self.workflow.add_item(self.plan.id, ShoppingItemInput(name="tape", category="Hardware"))

        self.assertEqual((lime.name, lime.category), ("lime", "Produce"))
        self.assertEqual(tape.category, "Hardware")
        self.assertEqual(self.shopping.sources_for_item(lime.id), [])


class TestPolishAndTrip(WorkflowFixture, unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.build(FakeEnrichmentClient())
        self.workflow.generate_list(self.plan.id)

    async def asyncTearDown(self):
        await self.coordinator.shutdown()
        self.db.close()

    async def test_polish_swaps_lines_and_relinks_sources(self):
        self.client.script(JobType.LIST_POLISH, completed(POLISHED))

        result = await self.workflow.polish_list(self.plan.id)

        self.assertTrue(result.enriched)
        self.assertEqual([i.display_text for i in result.shopping_list.items],
                         ["3 cups Jasmine rice", "1 carton Whole milk"])
        rice = result.shopping_list.items[0]
        self.assertEqual([s.key() for s in self.shopping.sources_for_item(rice.id)], [("A", 0), ("B", 0)])
        request = self.client.started[0][1]
        self.assertEqual(request.unit_system, "imperial")
        self.assertEqual([i.name for i in request.ingredients], ["rice", "milk", "eggs"])

    async def test_failed_polish_keeps_raw_list(self):
        self.client.script(JobType.LIST_POLISH, failed("upstream timeout"))

        with self.assertLogs("mealplan.logic.shopping.workflow", level="WARNING"):
            result = await self.workflow.polish_list(self.plan.id)

        self.assertFalse(result.enriched)
        self.assertIn("upstream timeout", str(result.error))
        self.assertEqual(self.names(), ["rice", "milk", "eggs"])
        self.assertEqual(len(self.shopping.sources_for_plan(self.plan.id)), 4)

    async def test_empty_list_is_not_sent(self):
        self.shopping.clear_plan(self.plan.id)

        result = await self.workflow.polish_list(self.plan.id)

        self.assertTrue(result.enriched)
        self.assertEqual(self.client.started, [])

    async def test_resumed_polish_is_applied(self):
        self.coordinator.jobs.insert(PendingJob("list_polish-9", JobType.LIST_POLISH, NOW, str(self.plan.id)))
        self.client.script(JobType.LIST_POLISH, completed(POLISHED))

        tasks = await self.coordinator.resume_pending()
        await asyncio.gather(*tasks)

        self.assertEqual(self.names(), ["Jasmine rice", "Whole milk"])

    async def test_trip_restocks_categorized_items(self):
        rice = self.shopping.get_items(self.plan.id)[0]
        self.shopping.toggle_checked(rice.id)
        self.client.script(JobType.PANTRY_CATEGORIZE, completed({"items": [{
            "id": rice.id, "name": "Rice", "quantity": 3, "unit": "CUP", "category": "Pantry",
            "trackingStyle": "STOCK_LEVEL", "stockLevel": "FULL", "perishable": False,
        }]}))

        result = await self.workflow.complete_trip(self.plan.id)

        self.assertTrue(result.categorized)
        self.assertIsNone(result.error)
        added = result.restock.added[0]
        self.assertEqual((added.name, added.unit, added.category), ("Rice", "cup", PantryCategory.DRY_GOODS))
        self.assertEqual((added.tracking_mode, added.stock_level), (TrackingMode.STOCK_LEVEL, StockLevel.PLENTY))
        self.assertTrue(self.plans.get(self.plan.id).shopping_complete)
        request = self.client.started[0][1]
        self.assertEqual(request.items[0].polished_display_quantity, "3 cup")

    async def test_trip_falls_back_to_local_categories(self):
        items = self.shopping.get_items(self.plan.id)
        for item in items[1:]:
            self.shopping.toggle_checked(item.id)
        self.client.script(JobType.PANTRY_CATEGORIZE, failed())

        with self.assertLogs("mealplan.logic.shopping.workflow", level="WARNING"):
            result = await self.workflow.complete_trip(self.plan.id)

        self.assertFalse(result.categorized)
        self.assertIsNotNone(result.error)
        self.assertEqual([(i.name, i.quantity, i.category) for i in result.restock.added],
                         [("milk", 2, PantryCategory.DAIRY), ("eggs", 2, PantryCategory.DAIRY)])
        self.assertTrue(self.plans.get(self.plan.id).shopping_complete)

    async def test_trip_with_out_of_range_rows_uses_local_categories(self):
        items = self.shopping.get_items(self.plan.id)
        for item in items[1:]:
            self.shopping.toggle_checked(item.id)
        for bad in ({"name": "Milk", "expiryDays": -3}, {"name": "", "expiryDays": 7}):
            with self.subTest(row=bad):
                self.client.script(JobType.PANTRY_CATEGORIZE, completed({"items": [
                    {"id": items[2].id, "name": "Eggs", "quantity": 2, "unit": "", "category": "Dairy",
                     "trackingStyle": "UNITS"},
                    dict({"id": items[1].id, "quantity": 2, "unit": "cup", "category": "Dairy",
                          "trackingStyle": "STOCK_LEVEL"}, **bad),
                ]}))

                with self.assertLogs("mealplan.logic.shopping.workflow", level="WARNING"):
                    result = await self.workflow.complete_trip(self.plan.id)

                self.assertFalse(result.categorized)
                self.assertIn("does not fit the pantry", str(result.error))
                self.assertEqual(sorted(i.name for i in result.restock.added + result.restock.merged),
                                 ["eggs", "milk"])
                self.assertTrue(self.plans.get(self.plan.id).shopping_complete)

    async def test_resumed_categorize_with_out_of_range_rows_uses_local_categories(self):
        milk = self.shopping.get_items(self.plan.id)[1]
        self.shopping.toggle_checked(milk.id)
        self.coordinator.jobs.insert(PendingJob("pantry_categorize-4", JobType.PANTRY_CATEGORIZE, NOW,
                                                str(self.plan.id)))
        self.client.script(JobType.PANTRY_CATEGORIZE, completed({"items": [{
            "id": milk.id, "name": "Milk", "quantity": 2, "unit": "cup", "category": "Dairy",
            "trackingStyle": "STOCK_LEVEL", "expiryDays": -1,
        }]}))

        with self.assertLogs("mealplan.logic.shopping.workflow", level="WARNING"):
            tasks = await self.coordinator.resume_pending()
            await asyncio.gather(*tasks)

        stored = self.ledger.items()
        self.assertEqual([(i.name, i.category) for i in stored], [("milk", PantryCategory.DAIRY)])
        self.assertTrue(self.plans.get(self.plan.id).shopping_complete)

    async def test_trip_without_checked_items_only_closes_the_plan(self):
        result = await self.workflow.complete_trip(self.plan.id)

        self.assertEqual(result.restock.total, 0)
        self.assertEqual(self.client.started, [])
        self.assertTrue(self.plans.get(self.plan.id).shopping_complete)


class TestPolishOverHttp(WorkflowFixture, unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        self.app = build_fake_service()
        self.build(EnrichmentClient(base_url="http://enrichment.test", api_key="secret",
                                    transport=httpx.ASGITransport(app=self.app)))
        self.workflow.generate_list(self.plan.id)

    async def asyncTearDown(self):
        await self.coordinator.shutdown()
        await self.client.aclose()
        self.db.close()

    async def test_polish_round_trip(self):
        result = await self.workflow.polish_list(self.plan.id)

        self.assertTrue(result.enriched)
        self.assertEqual(self.names(), ["Rice"])
        _, body = self.app.state.requests[0]
        self.assertEqual(body["unitSystem"], "imperial")
        self.assertEqual([i["name"] for i in body["ingredients"]], ["rice", "milk", "eggs"])
        self.assertEqual(self.app.state.jobs, {})
        self.assertEqual(self.coordinator.jobs.all(), [])


if __name__ == "__main__":
    unittest.main()
