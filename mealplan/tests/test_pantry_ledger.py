import unittest

from mealplan.domain.Pantry import PantryCategory, PantryItem, StockLevel, TrackingMode
from mealplan.domain.Recipe import RecipeIngredient
from mealplan.events.Event_Bus import PANTRY_EXPIRING_SNAPSHOT, PANTRY_LOW_STOCK, PANTRY_NEAR_EXPIRY, EventBus
from mealplan.infra.Pantry_Repository import PantryRepository
from mealplan.infra.database import Database
from mealplan.logic.pantry.analysis import compute_low_stock, needing_attention
from mealplan.logic.pantry.classifier import (
    classify_tracking_mode, estimate_shelf_life_days, guess_category, shopping_category_for,
)
from mealplan.logic.pantry.ledger import PantryLedger
from mealplan.utilities.constants import MS_PER_DAY
from mealplan.utilities.validators import PantryItemInput

NOW = 1_700_000_000_000


class LedgerTestCase(unittest.TestCase):

    def setUp(self):
        self.db = Database(":memory:")
        self.bus = EventBus()
        self.events = []
        for name in (PANTRY_LOW_STOCK, PANTRY_NEAR_EXPIRY, PANTRY_EXPIRING_SNAPSHOT):
            self.bus.subscribe(name, lambda n, payload: self.events.append((n, payload)))
        self.ledger = PantryLedger(PantryRepository(self.db), bus=self.bus, clock=lambda: NOW)

    def tearDown(self):
        self.db.close()

    def add(self, name, quantity=1, unit="", **kwargs):
        return self.ledger.add_item(PantryItemInput(name=name, quantity=quantity, unit=unit, **kwargs))

    def event_names(self):
        return [n for n, _ in self.events]


class TestDeduction(LedgerTestCase):

    def test_deduct_floors_at_zero(self):
        eggs = self.add("eggs", 6, "pcs")

        self.assertEqual(self.ledger.deduct("eggs", 10), 1)
        self.assertEqual(self.ledger.get_item(eggs.id).quantity_remaining, 0)

    def test_deduct_matches_by_normalized_name(self):
        garlic = self.add("Fresh Garlic", 10, "cloves", tracking_mode=TrackingMode.UNITS)

        self.assertEqual(self.ledger.deduct("garlic cloves", 3), 1)
        self.assertEqual(self.ledger.get_item(garlic.id).quantity_remaining, 7)

    def test_deduct_ignores_stock_level_items(self):
        milk = self.add("milk", 1, "l", tracking_mode=TrackingMode.STOCK_LEVEL)

        self.assertEqual(self.ledger.deduct("milk", 1), 0)
        self.assertEqual(self.ledger.get_item(milk.id).stock_level, StockLevel.PLENTY)

    def test_deduct_without_match_is_not_an_error(self):
        self.assertEqual(self.ledger.deduct("saffron", 1), 0)

    def test_low_stock_published_once_when_crossing(self):
        self.add("eggs", 10, "pcs")

        self.ledger.deduct("eggs", 7)
        self.assertEqual(self.event_names(), [])
        self.ledger.deduct("eggs", 2)
        self.ledger.deduct("eggs", 0.5)

        self.assertEqual(self.event_names(), [PANTRY_LOW_STOCK])
        self.assertEqual(self.events[0][1]["remaining"], 1)

    def test_update_quantity_clamps_to_baseline(self):
        eggs = self.add("eggs", 6, "pcs")

        self.assertTrue(self.ledger.update_quantity(eggs.id, 10))
        self.assertEqual(self.ledger.get_item(eggs.id).quantity_remaining, 6)
        self.ledger.update_quantity(eggs.id, -2, stock_checked=True)
        stored = self.ledger.get_item(eggs.id)
        self.assertEqual(stored.quantity_remaining, 0)
        self.assertEqual(stored.last_stock_check, NOW)
        self.assertFalse(self.ledger.update_quantity(9999, 1))


class TestStockLevels(LedgerTestCase):

    def test_reduce_steps_down_and_stays_at_out(self):
        milk = self.add("milk", tracking_mode=TrackingMode.STOCK_LEVEL)
        seen = []
        for _ in range(5):
            self.assertTrue(self.ledger.reduce_stock_level(milk.id))
            seen.append(self.ledger.get_item(milk.id).stock_level)

        self.assertEqual(seen, [StockLevel.SOME, StockLevel.LOW, StockLevel.OUT, StockLevel.OUT, StockLevel.OUT])

    def test_reduce_unknown_item(self):
        self.assertFalse(self.ledger.reduce_stock_level(42))

    def test_reduce_leaves_counted_items_alone(self):
        eggs = self.add("eggs", 6, "pcs", tracking_mode=TrackingMode.UNITS)

        self.assertFalse(self.ledger.reduce_stock_level(eggs.id))

        stored = self.ledger.get_item(eggs.id)
        self.assertIsNone(stored.stock_level)
        self.assertEqual(stored.quantity_remaining, 6)

    def test_set_stock_level_records_check(self):
        flour = self.add("flour", tracking_mode=TrackingMode.STOCK_LEVEL)

        self.assertTrue(self.ledger.set_stock_level(flour.id, StockLevel.LOW))
        stored = self.ledger.get_item(flour.id)
        self.assertEqual(stored.stock_level, StockLevel.LOW)
        self.assertEqual(stored.last_stock_check, NOW)

    def test_sufficiency(self):
        self.add("milk", tracking_mode=TrackingMode.STOCK_LEVEL, stock_level=StockLevel.LOW)
        self.add("rice", tracking_mode=TrackingMode.STOCK_LEVEL, stock_level=StockLevel.SOME)
        self.add("eggs", 0, "pcs")

        self.assertFalse(self.ledger.is_sufficient("milk"))
        self.assertTrue(self.ledger.is_sufficient("rice"))
        self.assertFalse(self.ledger.is_sufficient("eggs"))
        self.assertFalse(self.ledger.is_sufficient("saffron"))


class TestRestock(LedgerTestCase):

    def test_counted_item_merges_and_resets_baseline(self):
        eggs = self.add("eggs", 12, "pcs")
        self.ledger.update_quantity(eggs.id, 2)

        report = self.ledger.restock([PantryItemInput(name="Eggs", quantity=12, unit="PCS")])

        self.assertEqual(len(report.merged), 1)
        stored = self.ledger.get_item(eggs.id)
        self.assertEqual(stored.quantity_remaining, 14)
        self.assertEqual(stored.quantity_initial, 14)

    def test_stock_level_item_goes_back_to_plenty(self):
        milk = self.add("milk", 1, "l", tracking_mode=TrackingMode.STOCK_LEVEL, stock_level=StockLevel.LOW)

        self.ledger.restock([PantryItemInput(name="milk", quantity=2, unit="l")])

        self.assertEqual(self.ledger.get_item(milk.id).stock_level, StockLevel.PLENTY)
        self.assertEqual(len(self.ledger.items()), 1)

    def test_different_unit_is_a_new_item(self):
        self.add("rice", 1, "kg")

        report = self.ledger.restock([PantryItemInput(name="rice", quantity=2, unit="cup")])

        self.assertEqual(len(report.added), 1)
        self.assertEqual(len(self.ledger.items()), 2)

    def test_new_items_are_classified_locally(self):
        report = self.ledger.restock([
            PantryItemInput(name="black pepper", unit="jar", category="SPICES"),
            PantryItemInput(name="bell pepper", quantity=3, category="PRODUCE"),
            PantryItemInput(name="spinach", quantity=1, unit="bag", category="PRODUCE"),
        ])

        pepper, bell, spinach = report.added
        self.assertEqual(pepper.tracking_mode, TrackingMode.STOCK_LEVEL)
        self.assertEqual(pepper.stock_level, StockLevel.PLENTY)
        self.assertEqual(bell.tracking_mode, TrackingMode.UNITS)
        self.assertEqual(spinach.expiry, NOW + 5 * MS_PER_DAY)
        self.assertIsNone(pepper.expiry)

    def test_explicit_expiry_and_service_hint(self):
        report = self.ledger.restock([
            PantryItemInput(name="mystery sauce", category="OTHER", tracking_hint=TrackingMode.STOCK_LEVEL,
                            stock_level=StockLevel.SOME, expiry_days=10),
        ])

        item = report.added[0]
        self.assertEqual(item.tracking_mode, TrackingMode.STOCK_LEVEL)
        self.assertEqual(item.stock_level, StockLevel.SOME)
        self.assertEqual(item.expiry, NOW + 10 * MS_PER_DAY)


class TestConsumeRecipe(LedgerTestCase):

    def test_consumption_deducts_steps_down_and_warns(self):
        eggs = self.add("eggs", 6, "pcs")
        milk = self.add("milk", 1, "l", tracking_mode=TrackingMode.STOCK_LEVEL)

        warnings = self.ledger.consume_recipe([
            RecipeIngredient("eggs", 2, "pcs"),
            RecipeIngredient("whole milk", 1, "cup"),
            RecipeIngredient("saffron", 1, "pinch"),
        ])

        self.assertEqual([(w.name, w.kind) for w in warnings], [("saffron", "missing")])
        self.assertEqual(self.ledger.get_item(eggs.id).quantity_remaining, 4)
        self.assertEqual(self.ledger.get_item(milk.id).stock_level, StockLevel.SOME)

    def test_short_supply_is_reported_and_floored(self):
        eggs = self.add("eggs", 3, "pcs")

        warnings = self.ledger.consume_recipe([RecipeIngredient("eggs", 5, "pcs")])

        self.assertEqual(warnings[0].kind, "insufficient")
        self.assertEqual(warnings[0].available, 3)
        self.assertEqual(str(warnings[0]), "eggs: needed 5, only 3 left")
        self.assertEqual(self.ledger.get_item(eggs.id).quantity_remaining, 0)


class TestSnapshot(LedgerTestCase):

    def test_snapshot_lists_and_publishes_expiring_items(self):
        self.add("spinach", 1, "bag", category="PRODUCE", expiry_days=1)
        self.add("rice", 1, "kg", tracking_mode=TrackingMode.STOCK_LEVEL, stock_level=StockLevel.OUT)

        expiring, low = self.ledger.snapshot(window=2)

        self.assertEqual([e["name"] for e in expiring], ["spinach"])
        self.assertEqual(expiring[0]["days_left"], 1)
        self.assertEqual([e["name"] for e in low], ["rice"])
        self.assertEqual(self.event_names(), [PANTRY_NEAR_EXPIRY, PANTRY_EXPIRING_SNAPSHOT])


class TestClassifier(unittest.TestCase):

    def test_tracking_mode_longest_keyword_wins(self):
        self.assertEqual(classify_tracking_mode("bell pepper"), TrackingMode.UNITS)
        self.assertEqual(classify_tracking_mode("black pepper"), TrackingMode.STOCK_LEVEL)
        self.assertEqual(classify_tracking_mode("Whole Milk"), TrackingMode.STOCK_LEVEL)
        self.assertEqual(classify_tracking_mode("eggs"), TrackingMode.UNITS)

    def test_tracking_mode_falls_back_to_category_then_hint(self):
        self.assertEqual(classify_tracking_mode("za'atar", PantryCategory.SPICE), TrackingMode.STOCK_LEVEL)
        self.assertEqual(classify_tracking_mode("gizmo", PantryCategory.OTHER, TrackingMode.STOCK_LEVEL),
                         TrackingMode.STOCK_LEVEL)
        self.assertEqual(classify_tracking_mode("gizmo"), TrackingMode.UNITS)

    def test_guess_category(self):
        self.assertEqual(guess_category("chicken thighs"), PantryCategory.PROTEIN)
        self.assertEqual(guess_category("frozen peas"), PantryCategory.FROZEN)
        self.assertEqual(guess_category("olive oil"), PantryCategory.OILS)
        self.assertEqual(guess_category("bell pepper"), PantryCategory.PRODUCE)
        self.assertEqual(guess_category("paper towels"), PantryCategory.OTHER)

    def test_shelf_life(self):
        self.assertEqual(estimate_shelf_life_days("bacon", PantryCategory.PROTEIN), 14)
        self.assertEqual(estimate_shelf_life_days("chicken breast", PantryCategory.PROTEIN), 3)
        self.assertIsNone(estimate_shelf_life_days("rice", PantryCategory.DRY_GOODS))

    def test_shopping_category_names(self):
        self.assertEqual(shopping_category_for(PantryCategory.DRY_GOODS), "Pantry")
        self.assertEqual(shopping_category_for(PantryCategory.SPICE), "Spices")


class TestAnalysis(unittest.TestCase):

    def test_low_stock_covers_both_tracking_modes(self):
        items = [
            PantryItem(id=1, name="eggs", quantity_initial=10, quantity_remaining=1),
            PantryItem(id=2, name="flour", tracking_mode=TrackingMode.STOCK_LEVEL, stock_level=StockLevel.LOW),
            PantryItem(id=3, name="sugar", tracking_mode=TrackingMode.STOCK_LEVEL, stock_level=StockLevel.SOME),
        ]

        self.assertEqual([e["name"] for e in compute_low_stock(items)], ["eggs", "flour"])

    def test_needs_attention_respects_recent_stock_check(self):
        old = NOW - 5 * MS_PER_DAY
        stale = PantryItem(id=1, name="chicken", quantity_initial=1, category=PantryCategory.PROTEIN,
                           date_added=old, last_updated=old)
        checked = PantryItem(id=2, name="beef", quantity_initial=1, category=PantryCategory.PROTEIN,
                             date_added=old, last_updated=old, last_stock_check=NOW - MS_PER_DAY)
        shelf = PantryItem(id=3, name="rice", quantity_initial=1, category=PantryCategory.DRY_GOODS,
                           date_added=old, last_updated=old)

        self.assertEqual(needing_attention([stale, checked, shelf], now=NOW), [stale])


if __name__ == "__main__":
    unittest.main()
