import unittest

from mealplan.domain.Pantry import PantryCategory, StockLevel, TrackingMode
from mealplan.domain.Recipe import Recipe, RecipeIngredient
from mealplan.events.Event_Bus import EventBus
from mealplan.infra.Pantry_Repository import PantryRepository
from mealplan.infra.Plan_Repository import PlanRepository
from mealplan.infra.Recipe_Repository import RecipeRepository
from mealplan.infra.database import Database
from mealplan.logic.pantry.cooking import mark_recipe_cooked
from mealplan.logic.pantry.ledger import PantryLedger
from mealplan.utilities.validators import PantryItemInput

NOW = 1_700_000_000_000


class TestMarkRecipeCooked(unittest.TestCase):

    def setUp(self):
        self.db = Database(":memory:")
        plan = PlanRepository(self.db).create(created_at=NOW)
        self.recipes = RecipeRepository(self.db)
        self.ledger = PantryLedger(PantryRepository(self.db), bus=EventBus(), clock=lambda: NOW)
        self.eggs = self.ledger.add_item(PantryItemInput(name="eggs", quantity=6, unit="pcs",
                                                         category=PantryCategory.DAIRY,
                                                         tracking_mode=TrackingMode.UNITS))
        self.milk = self.ledger.add_item(PantryItemInput(name="milk", unit="l", category=PantryCategory.DAIRY,
                                                         tracking_mode=TrackingMode.STOCK_LEVEL))
        self.recipes.add(plan.id, Recipe("Saffron Custard", ingredients=[
            RecipeIngredient("eggs", 2, ""), RecipeIngredient("whole milk", 1, "cup"),
            RecipeIngredient("saffron", 1, "pinch"),
        ]), recipe_id="C")

    def tearDown(self):
        self.db.close()

    def test_cooking_consumes_pantry_and_flags_recipe(self):
        with self.assertLogs("mealplan.logic.pantry.cooking", level="WARNING") as logs:
            warnings = mark_recipe_cooked(self.recipes, self.ledger, "C", clock=lambda: NOW)

        self.assertEqual([(w.name, w.kind) for w in warnings], [("saffron", "missing")])
        self.assertIn("saffron is not in the pantry", logs.output[0])
        self.assertEqual(self.ledger.get_item(self.eggs.id).quantity_remaining, 4)
        self.assertEqual(self.ledger.get_item(self.milk.id).stock_level, StockLevel.SOME)
        cooked = self.recipes.get("C")
        self.assertTrue(cooked.cooked)
        self.assertEqual(cooked.cooked_at, NOW)

    def test_cooking_twice_deducts_once(self):
        with self.assertLogs("mealplan.logic.pantry.cooking", level="WARNING"):
            mark_recipe_cooked(self.recipes, self.ledger, "C")

        self.assertEqual(mark_recipe_cooked(self.recipes, self.ledger, "C"), [])
        self.assertEqual(self.ledger.get_item(self.eggs.id).quantity_remaining, 4)

    def test_unknown_recipe(self):
        with self.assertRaises(ValueError):
            mark_recipe_cooked(self.recipes, self.ledger, "missing")


if __name__ == "__main__":
    unittest.main()
