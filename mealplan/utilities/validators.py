"""
Input validation schemas using Pydantic for better data integrity.

RecipeDocument is also the storage format of planned recipes: documents are
validated on every read so a corrupt row fails loudly instead of reading as
an empty recipe.
"""
import json
from typing import List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from mealplan.domain.Pantry import PantryCategory, StockLevel, TrackingMode
from mealplan.domain.Recipe import CookingStep, Recipe, RecipeIngredient
from mealplan.utilities.errors import RecipeParseError

RECIPE_SCHEMA_VERSION = 1


class IngredientDocument(BaseModel):
    """Schema for one ingredient line of a recipe."""
    name: str = Field(..., min_length=1, max_length=200)
    quantity: float = Field(0.0, ge=0)
    unit: str = Field("", max_length=40)
    preparation: Optional[str] = None

    @field_validator('name', 'unit')
    @classmethod
    def strip_whitespace(cls, v):
        """Remove leading/trailing whitespace."""
        if isinstance(v, str):
            return v.strip()
        return v


class StepDocument(BaseModel):
    title: str = ""
    substeps: List[str] = Field(default_factory=list)

    @field_validator('substeps')
    @classmethod
    def validate_substeps(cls, v):
        """Filter out empty substeps."""
        return [step.strip() for step in v if step and step.strip()]


class RecipeDocument(BaseModel):
    """Versioned structured recipe as stored in planned_recipes.document."""
    schema_version: int = Field(RECIPE_SCHEMA_VERSION, ge=1)
    name: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    servings: int = Field(0, ge=0, le=50)
    ingredients: List[IngredientDocument] = Field(default_factory=list)
    steps: List[StepDocument] = Field(default_factory=list)

    @field_validator('schema_version')
    @classmethod
    def validate_version(cls, v):
        if v > RECIPE_SCHEMA_VERSION:
            raise ValueError(f'Unsupported recipe schema version {v}')
        return v

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        """Validate recipe name."""
        if not v.strip():
            raise ValueError('Recipe name cannot be empty')
        return v.strip()

    @staticmethod
    def from_recipe(recipe: Recipe) -> "RecipeDocument":
        return RecipeDocument(
            name=recipe.name,
            description=recipe.description,
            servings=recipe.servings,
            ingredients=[IngredientDocument(**ing.to_dict()) for ing in recipe.ingredients],
            steps=[StepDocument(**step.to_dict()) for step in recipe.steps],
        )

    def to_recipe(self) -> Recipe:
        return Recipe(
            name=self.name,
            description=self.description,
            servings=self.servings,
            ingredients=[RecipeIngredient(**ing.model_dump()) for ing in self.ingredients],
            steps=[CookingStep(title=s.title, substeps=s.substeps) for s in self.steps],
        )


def parse_recipe_document(raw: str, recipe_id: Optional[str] = None) -> Recipe:
    """Decode a stored recipe document; raises RecipeParseError on any mismatch."""
    try:
        return RecipeDocument.model_validate(json.loads(raw)).to_recipe()
    except (json.JSONDecodeError, TypeError) as e:
        raise RecipeParseError("Recipe document is not valid JSON", "parse_recipe",
                               {"recipe_id": recipe_id}) from e
    except ValidationError as e:
        raise RecipeParseError(f"Recipe document failed validation: {e.error_count()} error(s)",
                               "parse_recipe", {"recipe_id": recipe_id}) from e


def dump_recipe_document(recipe: Recipe) -> str:
    try:
        return RecipeDocument.from_recipe(recipe).model_dump_json()
    except ValidationError as e:
        raise RecipeParseError("Recipe cannot be stored", "dump_recipe",
                               {"name": recipe.name}) from e


class ShoppingItemInput(BaseModel):
    """Schema for a manually added shopping list item."""
    name: str = Field(..., min_length=1, max_length=100)
    quantity: float = Field(0.0, ge=0)
    unit: str = Field("", max_length=20)
    category: Optional[str] = None

    @field_validator('name', 'unit')
    @classmethod
    def strip_whitespace(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v


class PantryItemInput(BaseModel):
    """Schema for a manually entered or restocked pantry item."""
    name: str = Field(..., min_length=1, max_length=100)
    quantity: float = Field(1.0, ge=0, le=100000)
    unit: str = Field("", max_length=20)
    category: PantryCategory = PantryCategory.OTHER
    tracking_mode: Optional[TrackingMode] = None
    tracking_hint: Optional[TrackingMode] = None
    stock_level: Optional[StockLevel] = None
    expiry_days: Optional[int] = Field(None, ge=0, le=3650)
    perishable: Optional[bool] = None

    @field_validator('name', 'unit')
    @classmethod
    def strip_whitespace(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator('category', mode='before')
    @classmethod
    def coerce_category(cls, v):
        if isinstance(v, str):
            return PantryCategory.from_string(v)
        return v


class CustomizationInput(BaseModel):
    """Schema for a shopping-line edit that may substitute the ingredient."""
    item_id: int = Field(..., ge=1)
    new_name: str = Field(..., min_length=1, max_length=100)
    new_display_quantity: Optional[str] = Field(None, max_length=60)

    @field_validator('new_name')
    @classmethod
    def validate_name(cls, v):
        if not v.strip():
            raise ValueError('Ingredient name cannot be empty')
        return v.strip()

    @field_validator('new_display_quantity')
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str):
            return v.strip() or None
        return v
