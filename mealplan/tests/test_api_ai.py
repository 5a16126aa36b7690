import json
import unittest
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

from mealplan.api.api_ai import (
    _decode_payload, _extract_json_by_balancing, build_customization_prompt, request_recipe_customization,
)
from mealplan.domain.Recipe import CookingStep, Recipe, RecipeIngredient
from mealplan.utilities.errors import EnrichmentError

ANSWER = {
    "updatedRecipeName": "Cauliflower Fried Rice",
    "ingredientsToAdd": [{"name": "lime", "quantity": 1, "unit": ""}, {"name": "sesame seeds"}, {"name": " "}],
    "ingredientsToRemove": ["rice", ""],
    "ingredientsToModify": [{"originalName": "soy sauce", "newQuantity": 1}],
    "updatedSteps": [{"title": "Fry", "substeps": ["Cook cauliflower"]}],
    "changesSummary": "Low carb",
    "notes": None,
}


def fried_rice():
    return Recipe("Fried Rice", ingredients=[RecipeIngredient("rice", 2, "cup"),
                                             RecipeIngredient("soy sauce", 2, "tbsp")],
                  steps=[CookingStep("Fry", ["Heat the wok", "Add rice"])])


def fake_client(*outputs):
    client = MagicMock()
    client.responses.create.side_effect = [
        o if isinstance(o, Exception) else SimpleNamespace(output_text=o) for o in outputs
    ]
    return client


class TestPrompt(unittest.TestCase):

    def test_prompt_lists_recipe_and_previous_requests(self):
        prompt = build_customization_prompt(fried_rice(), " make it low carb ", ["no onions"])

        self.assertIn("Recipe name: Fried Rice", prompt)
        self.assertIn("- 2 cup rice", prompt)
        self.assertIn("1. Fry: Heat the wok Add rice", prompt)
        self.assertIn("Requested change: make it low carb\n", prompt)
        self.assertIn("Already applied, keep these changes:\n    - no onions", prompt)
        self.assertIn('"ingredientsToModify"', prompt)

    def test_prompt_without_previous_requests(self):
        self.assertNotIn("Already applied", build_customization_prompt(fried_rice(), "spicier"))


class TestRequestCustomization(unittest.TestCase):

    def test_plain_json_answer(self):
        client = fake_client(json.dumps(ANSWER))

        result = request_recipe_customization(fried_rice(), "low carb", client=client)

        self.assertEqual(result.updated_recipe_name, "Cauliflower Fried Rice")
        self.assertEqual(result.ingredients_to_add, [RecipeIngredient("lime", 1, ""),
                                                     RecipeIngredient("sesame seeds", 0, "")])
        self.assertEqual(result.ingredients_to_remove, ["rice"])
        self.assertEqual(result.ingredients_to_modify[0].original_name, "soy sauce")
        self.assertEqual(result.ingredients_to_modify[0].new_quantity, 1)
        self.assertIsNone(result.ingredients_to_modify[0].new_name)
        self.assertEqual(result.updated_steps, [CookingStep("Fry", ["Cook cauliflower"])])
        self.assertEqual(result.changes_summary, "Low carb")
        self.assertEqual(client.responses.create.call_count, 1)

    def test_fenced_answer_with_trailing_commas(self):
        text = "Here you go:\n```json\n" + '{"ingredientsToRemove": ["rice",], "changesSummary": "less rice",}' \
               + "\n```\nEnjoy!"

        result = request_recipe_customization(fried_rice(), "less rice", client=fake_client(text))

        self.assertEqual(result.updated_recipe_name, "Fried Rice")
        self.assertEqual(result.ingredients_to_remove, ["rice"])

    def test_unparseable_answer_is_sent_back_for_fixing(self):
        client = fake_client("remove the rice and add lime", json.dumps({"ingredientsToRemove": ["rice"]}))

        result = request_recipe_customization(fried_rice(), "less rice", client=client)

        self.assertEqual(result.ingredients_to_remove, ["rice"])
        fix_prompt = client.responses.create.call_args_list[1].kwargs["input"]
        self.assertIn("remove the rice and add lime", fix_prompt)

    def test_still_unparseable_raises(self):
        client = fake_client("no json here", "still none")

        with self.assertLogs("mealplan.api.api_ai", level="ERROR"):
            with self.assertRaises(EnrichmentError) as ctx:
                request_recipe_customization(fried_rice(), "less rice", client=client)
        self.assertEqual(ctx.exception.operation, "customize_recipe")

    def test_wrong_shape_raises(self):
        client = fake_client(json.dumps({"ingredientsToRemove": "rice"}))

        with self.assertRaises(EnrichmentError):
            request_recipe_customization(fried_rice(), "less rice", client=client)

    def test_empty_answer_raises(self):
        with self.assertRaises(EnrichmentError):
            request_recipe_customization(fried_rice(), "less rice", client=fake_client("   "))

    def test_transport_failure_raises(self):
        client = fake_client(ConnectionError("offline"))

        with self.assertRaises(EnrichmentError) as ctx:
            request_recipe_customization(fried_rice(), "less rice", client=client)
        self.assertIsInstance(ctx.exception.__cause__, ConnectionError)

    def test_missing_api_key(self):
        with patch.dict("os.environ", {}, clear=True):
            with self.assertRaises(EnrichmentError):
                request_recipe_customization(fried_rice(), "less rice")


class TestJsonHelpers(unittest.TestCase):

    def test_balancing_ignores_braces_in_strings(self):
        text = 'prefix {"a": "x}y", "b": [1, {"c": 2}]} suffix'
        self.assertEqual(_extract_json_by_balancing(text), '{"a": "x}y", "b": [1, {"c": 2}]}')

    def test_decode_rejects_non_objects(self):
        self.assertIsNone(_decode_payload("[1, 2]"))
        self.assertEqual(_decode_payload('{"a": 1}'), {"a": 1})


if __name__ == "__main__":
    unittest.main()
