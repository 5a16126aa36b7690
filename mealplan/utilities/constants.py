from typing import Final

UNCATEGORIZED: Final[str] = "Uncategorized"
LOW_STOCK_RATIO: Final[float] = 0.2
STOCK_CHECK_GRACE_DAYS: Final[int] = 3
MS_PER_DAY: Final[int] = 24 * 60 * 60 * 1000

SHOPPING_CATEGORIES: Final[tuple[str, ...]] = (
    "Produce", "Protein", "Dairy", "Bakery", "Frozen",
    "Pantry", "Condiments", "Spices", "Other",
)

CUSTOMIZATION_PROMPT_TEMPLATE: Final[str] = (
    """
    You are adjusting an existing recipe for a home cook.
    Recipe name: {recipe_name}
    Ingredients:
{ingredients}
    Steps:
{steps}
    Requested change: {request}
{previous}
    Answer ONLY with JSON in the following format:
    """
)
CUSTOMIZATION_JSON_FORMAT: Final[str] = (
    """
{
    "updatedRecipeName": str,
    "ingredientsToAdd": [
      {"name": str, "quantity": float, "unit": str, "preparation": str | null}
    ],
    "ingredientsToRemove": [str],
    "ingredientsToModify": [
      {
        "originalName": str,
        "newName": str | null,
        "newQuantity": float | null,
        "newUnit": str | null,
        "newPreparation": str | null
      }
    ],
    "updatedSteps": [
      {"title": str, "substeps": [str]}
    ],
    "changesSummary": str,
    "notes": str | null
  }
    """
)
