"""Deterministic local classification of pantry items.

All decisions come from the keyword tables below. Matching is on the
normalized name and the longest matching keyword wins, so "bell pepper"
(a discrete item) beats "pepper" (a spice tracked by level).
"""
from __future__ import annotations

from typing import Dict, Optional, Tuple

from mealplan.domain.Pantry import PantryCategory, TrackingMode
from mealplan.logic.matching.normalizer import normalize_name

__all__ = [
    "TRACKING_KEYWORDS", "CATEGORY_TRACKING", "CATEGORY_KEYWORDS", "SHELF_LIFE_DAYS",
    "SHOPPING_CATEGORY_NAMES", "classify_tracking_mode", "guess_category",
    "estimate_shelf_life_days", "shopping_category_for",
]

# Bulk, liquid and dairy goods are tracked by level; discrete, produce,
# portioned protein and packaged goods are counted.
TRACKING_KEYWORDS: Dict[TrackingMode, Tuple[str, ...]] = {
    TrackingMode.STOCK_LEVEL: (
        "flour", "rice", "sugar", "pasta", "oats", "cereal", "quinoa", "couscous",
        "oil", "olive oil", "vinegar", "soy sauce", "honey", "syrup", "broth", "stock",
        "salt", "pepper", "black pepper", "spice", "paprika", "cumin", "cinnamon", "oregano",
        "milk", "cream", "butter", "yogurt", "cheese",
        "ketchup", "mustard", "mayonnaise", "baking powder", "baking soda",
    ),
    TrackingMode.UNITS: (
        "egg", "eggs", "onion", "garlic", "bell pepper", "tomato", "potato", "carrot",
        "lemon", "lime", "apple", "banana", "avocado", "cucumber", "zucchini",
        "chicken breast", "chicken thigh", "steak", "fillet", "salmon", "sausage", "bacon",
        "can", "canned", "tin", "jar", "bottle", "box", "packet", "package", "bag", "carton",
        "loaf", "tortilla", "bun",
    ),
}

CATEGORY_TRACKING: Dict[PantryCategory, TrackingMode] = {
    PantryCategory.SPICE: TrackingMode.STOCK_LEVEL,
    PantryCategory.OILS: TrackingMode.STOCK_LEVEL,
    PantryCategory.CONDIMENT: TrackingMode.STOCK_LEVEL,
    PantryCategory.DRY_GOODS: TrackingMode.STOCK_LEVEL,
    PantryCategory.DAIRY: TrackingMode.STOCK_LEVEL,
    PantryCategory.PRODUCE: TrackingMode.UNITS,
    PantryCategory.PROTEIN: TrackingMode.UNITS,
    PantryCategory.FROZEN: TrackingMode.UNITS,
}

CATEGORY_KEYWORDS: Dict[PantryCategory, Tuple[str, ...]] = {
    PantryCategory.PROTEIN: (
        "chicken", "beef", "pork", "lamb", "fish", "salmon", "tuna", "shrimp", "prawn",
        "turkey", "duck", "bacon", "sausage", "ham", "steak", "meatball", "tofu", "tempeh",
    ),
    PantryCategory.DAIRY: (
        "milk", "cream", "cheese", "butter", "yogurt", "sour cream", "egg", "eggs", "buttermilk",
    ),
    PantryCategory.PRODUCE: (
        "onion", "garlic", "tomato", "potato", "carrot", "celery", "bell pepper", "broccoli",
        "spinach", "lettuce", "cabbage", "zucchini", "squash", "cucumber", "mushroom",
        "asparagus", "corn", "peas", "eggplant", "cauliflower", "kale", "apple", "banana",
        "orange", "lemon", "lime", "berry", "grape", "mango", "avocado", "ginger", "scallion",
        "green onion", "parsley", "cilantro", "basil", "thyme", "rosemary", "dill", "mint",
    ),
    PantryCategory.DRY_GOODS: (
        "flour", "rice", "pasta", "noodle", "bread", "oats", "cereal", "quinoa", "couscous",
        "spaghetti", "sugar", "baking powder", "baking soda", "yeast", "cocoa", "lentil", "beans",
    ),
    PantryCategory.SPICE: (
        "salt", "pepper", "black pepper", "cumin", "paprika", "cinnamon", "cayenne",
        "chili powder", "curry", "turmeric", "nutmeg", "cardamom", "coriander", "oregano",
    ),
    PantryCategory.OILS: ("oil", "olive oil", "vegetable oil", "sesame oil", "cooking spray"),
    PantryCategory.CONDIMENT: (
        "ketchup", "mustard", "mayonnaise", "soy sauce", "vinegar", "hot sauce", "honey",
        "syrup", "salsa", "broth", "stock", "tomato paste", "tomato sauce",
    ),
    PantryCategory.FROZEN: ("frozen", "ice cream"),
}

# (category, keyword or None, days); keyword rows are checked before the category default
SHELF_LIFE_DAYS: Tuple[Tuple[PantryCategory, Optional[str], int], ...] = (
    (PantryCategory.PROTEIN, "bacon", 14),
    (PantryCategory.PROTEIN, "sausage", 14),
    (PantryCategory.PROTEIN, None, 3),
    (PantryCategory.DAIRY, "butter", 30),
    (PantryCategory.DAIRY, "cheese", 21),
    (PantryCategory.DAIRY, "egg", 21),
    (PantryCategory.DAIRY, None, 7),
    (PantryCategory.PRODUCE, "potato", 30),
    (PantryCategory.PRODUCE, "onion", 30),
    (PantryCategory.PRODUCE, "garlic", 30),
    (PantryCategory.PRODUCE, "apple", 14),
    (PantryCategory.PRODUCE, "orange", 14),
    (PantryCategory.PRODUCE, "lemon", 14),
    (PantryCategory.PRODUCE, "lime", 14),
    (PantryCategory.PRODUCE, "lettuce", 5),
    (PantryCategory.PRODUCE, "spinach", 5),
    (PantryCategory.PRODUCE, None, 7),
)

SHOPPING_CATEGORY_NAMES: Dict[PantryCategory, str] = {
    PantryCategory.PRODUCE: "Produce",
    PantryCategory.PROTEIN: "Protein",
    PantryCategory.DAIRY: "Dairy",
    PantryCategory.DRY_GOODS: "Pantry",
    PantryCategory.SPICE: "Spices",
    PantryCategory.OILS: "Pantry",
    PantryCategory.CONDIMENT: "Condiments",
    PantryCategory.FROZEN: "Frozen",
    PantryCategory.OTHER: "Other",
}


def _contains_word(text: str, keyword: str) -> bool:
    padded = f" {text} "
    return any(f" {form} " in padded for form in (keyword, keyword + "s", keyword + "es"))


def _longest_match(text: str, tables: Dict) -> Optional[object]:
    best_key, best_len = None, 0
    for key, keywords in tables.items():
        for kw in keywords:
            if len(kw) > best_len and _contains_word(text, kw):
                best_key, best_len = key, len(kw)
    return best_key


def classify_tracking_mode(name: str, category: PantryCategory = PantryCategory.OTHER,
                           hint: Optional[TrackingMode] = None) -> TrackingMode:
    """Pick how a pantry item is tracked.

    Keyword tables first, then the category table, then the service hint,
    then UNITS.
    """
    key = normalize_name(name)
    mode = _longest_match(key, TRACKING_KEYWORDS)
    if mode is not None:
        return mode
    if category in CATEGORY_TRACKING:
        return CATEGORY_TRACKING[category]
    return hint or TrackingMode.UNITS


def guess_category(name: str) -> PantryCategory:
    key = normalize_name(name)
    if any(_contains_word(name.lower(), kw) for kw in CATEGORY_KEYWORDS[PantryCategory.FROZEN]):
        return PantryCategory.FROZEN
    return _longest_match(key, CATEGORY_KEYWORDS) or PantryCategory.OTHER


def estimate_shelf_life_days(name: str, category: Optional[PantryCategory] = None) -> Optional[int]:
    """Days until a freshly bought item is likely to expire; None for shelf-stable goods."""
    category = category or guess_category(name)
    key = normalize_name(name)
    for cat, keyword, days in SHELF_LIFE_DAYS:
        if cat != category:
            continue
        if keyword is None or _contains_word(key, keyword):
            return days
    return None


def shopping_category_for(category: PantryCategory) -> str:
    return SHOPPING_CATEGORY_NAMES.get(category, "Other")