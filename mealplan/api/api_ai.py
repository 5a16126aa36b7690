import os
import re
import json
import logging
from json import JSONDecodeError
from typing import List, Optional

from openai import OpenAI
from pydantic import ValidationError

from mealplan.api.schemas import CustomizationPayload
from mealplan.domain.Customization import CustomizationResult, ModifiedIngredient
from mealplan.domain.Recipe import CookingStep, Recipe, RecipeIngredient
from mealplan.utilities.config import OPENAI_MODEL
from mealplan.utilities.constants import CUSTOMIZATION_JSON_FORMAT, CUSTOMIZATION_PROMPT_TEMPLATE
from mealplan.utilities.errors import EnrichmentError

logger = logging.getLogger(__name__)


# === Helper: Get OpenAI Client ===
def _get_openai_client():
    """Return an OpenAI client if OPENAI_API_KEY is set, otherwise None."""
    api_key = os.environ.get("OPENAI_API_KEY")
    if not api_key:
        return None
    return OpenAI(api_key=api_key)


# === Prompt ===
def build_customization_prompt(recipe: Recipe, request: str,
                               previous_requests: Optional[List[str]] = None) -> str:
    ingredients = "\n".join(f"    - {ing}" for ing in recipe.ingredients)
    steps = "\n".join(
        f"    {n}. {step.title}: " + " ".join(step.substeps)
        for n, step in enumerate(recipe.steps, start=1)
    )
    previous = ""
    if previous_requests:
        previous = "    Already applied, keep these changes:\n" + "\n".join(
            f"    - {p}" for p in previous_requests
        )
    return CUSTOMIZATION_PROMPT_TEMPLATE.format(
        recipe_name=recipe.name,
        ingredients=ingredients,
        steps=steps,
        request=request.strip(),
        previous=previous,
    ) + CUSTOMIZATION_JSON_FORMAT


# === Recipe Customization ===
def request_recipe_customization(recipe: Recipe, request: str,
                                 previous_requests: Optional[List[str]] = None,
                                 client: Optional[OpenAI] = None) -> CustomizationResult:
    """Ask the model how to change ``recipe`` and return the structured answer.

    ``previous_requests`` lists earlier refinements of the same recipe so the
    model keeps them. Raises EnrichmentError when no client is configured or
    the answer cannot be turned into a CustomizationResult.
    """
    client = client or _get_openai_client()
    if client is None:
        raise EnrichmentError("OPENAI_API_KEY not set", "customize_recipe")

    logger.info(f"Requesting customization for '{recipe.name}': {request}")
    try:
        response = client.responses.create(
            model=OPENAI_MODEL,
            input=build_customization_prompt(recipe, request, previous_requests),
        )
    except Exception as e:
        raise EnrichmentError(f"AI request failed: {e}", "customize_recipe") from e

    raw = (response.output_text or "").strip()
    if not raw:
        raise EnrichmentError("AI returned an empty answer", "customize_recipe")

    payload = _decode_payload(raw)
    if payload is None:
        fixed = _request_json_fix(client, raw)
        if fixed:
            payload = _decode_payload(fixed)
    if payload is None:
        logger.error(f"AI output for '{recipe.name}' is not valid JSON: {raw[:200]}")
        raise EnrichmentError("AI output is not valid JSON", "customize_recipe")

    try:
        parsed = CustomizationPayload.model_validate(payload)
    except ValidationError as e:
        raise EnrichmentError(f"AI output has the wrong shape: {e.error_count()} error(s)",
                              "customize_recipe") from e

    result = to_customization_result(parsed, recipe)
    logger.info(f"Customization result: {result.changes_summary or result}")
    return result


def to_customization_result(payload: CustomizationPayload, recipe: Recipe) -> CustomizationResult:
    return CustomizationResult(
        updated_recipe_name=payload.updated_recipe_name.strip() or recipe.name,
        ingredients_to_add=[
            # "to taste" additions come without quantity or unit
            RecipeIngredient(name=a.name, quantity=a.quantity or 0.0, unit=a.unit or "",
                             preparation=a.preparation)
            for a in payload.ingredients_to_add if a.name.strip()
        ],
        ingredients_to_remove=[r for r in payload.ingredients_to_remove if r.strip()],
        ingredients_to_modify=[
            ModifiedIngredient(m.original_name, m.new_name, m.new_quantity, m.new_unit, m.new_preparation)
            for m in payload.ingredients_to_modify
        ],
        updated_steps=[CookingStep(s.title, s.substeps) for s in payload.updated_steps],
        changes_summary=payload.changes_summary,
        notes=payload.notes,
    )


# === JSON Parsing ===
def _decode_payload(text: str) -> Optional[dict]:
    """Best-effort decode of model output into a JSON object."""
    try:
        parsed = json.loads(text)
        return parsed if isinstance(parsed, dict) else None
    except JSONDecodeError:
        pass
    cleaned = _remove_trailing_commas(_strip_code_fences(text))
    candidate = _extract_json_by_balancing(cleaned)
    if candidate:
        try:
            parsed = json.loads(_remove_trailing_commas(candidate))
            return parsed if isinstance(parsed, dict) else None
        except JSONDecodeError:
            logger.debug("Failed to decode extracted JSON from AI output")
    return None


# === Text Cleaning Helpers ===
def _strip_code_fences(text: str) -> str:
    """Remove common markdown code fences and leading/trailing whitespace."""
    text = re.sub(r"```(?:json)?\n(.*?)```", r"\1", text, flags=re.S)
    text = re.sub(r"^```|```$", "", text)
    return text.strip()


def _remove_trailing_commas(text: str) -> str:
    """Remove common trailing commas in JSON-like text to help json.loads succeed."""
    return re.sub(r",\s*(\}|\])", r"\1", text)


def _extract_json_by_balancing(text: str) -> Optional[str]:
    """Extract the first JSON object/array by balancing braces/brackets."""
    start = None
    stack = []
    in_string = False
    escape = False

    for i, ch in enumerate(text):
        if ch == '"' and not escape:
            in_string = not in_string
        if in_string and ch == "\\" and not escape:
            escape = True
            continue
        else:
            escape = False

        if not in_string:
            if ch in "{[":
                if start is None:
                    start = i
                stack.append(ch)
            elif ch in "}]":
                if not stack:
                    continue
                opening = stack.pop()
                if (opening == "{" and ch != "}") or (opening == "[" and ch != "]"):
                    return None
                if not stack and start is not None:
                    return text[start:i + 1]
    return None


def _request_json_fix(client: OpenAI, previous_output: str) -> Optional[str]:
    """Ask the model to reformat previous_output as a strict JSON object."""
    try:
        prompt = (
            "The previous response described recipe changes but was not valid JSON. "
            "Please reformat ONLY the changes as valid JSON (no surrounding text) using the same keys. "
            "Here is the original output:\n\n" + previous_output
        )
        resp = client.responses.create(model=OPENAI_MODEL, input=prompt)
        return (resp.output_text or "").strip()
    except Exception:
        logger.exception("Error while requesting AI to fix JSON formatting")
        return None
