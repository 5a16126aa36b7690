"""Wire models for the enrichment service. JSON field names are camelCase."""
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class StartJobResponse(WireModel):
    job_id: str


JobStatusValue = Literal["pending", "running", "completed", "failed"]


class JobStatusResponse(WireModel):
    id: str
    status: JobStatusValue
    progress: Optional[dict] = None
    result: Optional[Any] = None
    error: Optional[str] = None


# --- list polish -------------------------------------------------------------
class GroceryIngredient(WireModel):
    id: int
    name: str
    quantity: float
    unit: str


class PantrySnapshotItem(WireModel):
    name: str
    quantity: float
    unit: str
    availability: str


class GroceryPolishRequest(WireModel):
    ingredients: List[GroceryIngredient]
    pantry_items: List[PantrySnapshotItem] = Field(default_factory=list)
    unit_system: str = "metric"


class PolishedGroceryItem(WireModel):
    name: str
    display_quantity: str
    category: str


class GroceryPolishResponse(WireModel):
    items: List[PolishedGroceryItem]


# --- pantry categorization ---------------------------------------------------
class ShoppingItemForPantry(WireModel):
    id: int
    name: str
    polished_display_quantity: str
    shopping_category: str


class PantryCategorizeRequest(WireModel):
    items: List[ShoppingItemForPantry]


class CategorizedPantryItem(WireModel):
    id: int
    name: str
    quantity: float
    unit: str
    category: str
    tracking_style: str
    stock_level: Optional[str] = None
    expiry_days: Optional[int] = None
    perishable: bool = False


class PantryCategorizeResponse(WireModel):
    items: List[CategorizedPantryItem]


# --- ingredient substitution -------------------------------------------------
class SubstitutionIngredient(WireModel):
    name: str
    quantity: float
    unit: str
    preparation: Optional[str] = None


class SubstitutionStep(WireModel):
    title: str
    substeps: List[str] = Field(default_factory=list)


class SubstitutionRequest(WireModel):
    recipe_name: str
    original_ingredient: SubstitutionIngredient
    new_ingredient_name: str
    steps: List[SubstitutionStep] = Field(default_factory=list)


class SubstitutionResponse(WireModel):
    updated_recipe_name: str
    updated_ingredient: SubstitutionIngredient
    updated_steps: List[SubstitutionStep] = Field(default_factory=list)
    notes: Optional[str] = None


# --- recipe customization (AI model answer) ---------------------------------
class CustomizationIngredient(WireModel):
    name: str
    quantity: Optional[float] = None
    unit: Optional[str] = None
    preparation: Optional[str] = None


class CustomizationModification(WireModel):
    original_name: str
    new_name: Optional[str] = None
    new_quantity: Optional[float] = None
    new_unit: Optional[str] = None
    new_preparation: Optional[str] = None


class CustomizationPayload(WireModel):
    updated_recipe_name: str = ""
    ingredients_to_add: List[CustomizationIngredient] = Field(default_factory=list)
    ingredients_to_remove: List[str] = Field(default_factory=list)
    ingredients_to_modify: List[CustomizationModification] = Field(default_factory=list)
    updated_steps: List[SubstitutionStep] = Field(default_factory=list)
    changes_summary: str = ""
    notes: Optional[str] = None
