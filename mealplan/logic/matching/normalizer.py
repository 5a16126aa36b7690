"""Ingredient name normalization and fuzzy matching.

"garlic cloves", "Fresh Garlic" and "2 cloves garlic (minced)" all reduce to
the key "garlic". Two names match when one key contains the other.

Containment is deliberately loose: "pepper" matches "black pepper" and also
"bell pepper". A stricter token-set comparison would separate those.
"""
from __future__ import annotations

import re
from typing import Iterable, Tuple

__all__ = ["NameNormalizer", "DEFAULT_QUALIFIERS", "DEFAULT_NORMALIZER", "normalize_name", "names_match"]

# Stripped as whole words, in this order
DEFAULT_QUALIFIERS: Tuple[str, ...] = (
    # size
    "large", "medium", "small",
    # freshness / preservation
    "fresh", "dried", "frozen", "canned",
    # preparation
    "chopped", "minced", "diced", "sliced", "whole", "ground", "crushed", "grated", "shredded",
    # form suffixes
    "leaves", "leaf", "cloves", "clove",
)

_LEADING_QUANTITY = re.compile(
    r"^\d+(?:[.,/]\d+)?\s*(?:pieces|piece|g|kg|ml|l|oz|lb|lbs|cups|cup|tbsp|tsp)?\b\s*"
)
_PARENTHETICAL = re.compile(r"\([^)]*\)")
_WHITESPACE = re.compile(r"\s+")


class NameNormalizer:
    def __init__(self, qualifiers: Iterable[str] = DEFAULT_QUALIFIERS):
        self.qualifiers = tuple(q.lower() for q in qualifiers)
        self._patterns = [re.compile(rf"\b{re.escape(q)}\b") for q in self.qualifiers]

    def extend(self, *qualifiers: str) -> "NameNormalizer":
        '''Returns a new normalizer with extra qualifiers appended.'''
        return NameNormalizer(self.qualifiers + tuple(qualifiers))

    def normalize(self, raw: str) -> str:
        fallback = _WHITESPACE.sub(" ", (raw or "").lower()).strip()
        key = _PARENTHETICAL.sub(" ", fallback)
        key = _LEADING_QUANTITY.sub("", key.strip())
        for pattern in self._patterns:
            key = pattern.sub(" ", key)
        key = _WHITESPACE.sub(" ", key.replace(",", " ")).strip()
        return key or fallback

    def matches(self, a: str, b: str) -> bool:
        ka, kb = self.normalize(a), self.normalize(b)
        if not ka or not kb:
            return False
        return ka in kb or kb in ka


DEFAULT_NORMALIZER = NameNormalizer()


def normalize_name(raw: str) -> str:
    return DEFAULT_NORMALIZER.normalize(raw)


def names_match(a: str, b: str) -> bool:
    return DEFAULT_NORMALIZER.matches(a, b)
