"""Core business logic layer.

Subpackages:
- matching: ingredient name normalization and fuzzy matching
- shopping: aggregating recipes into a shopping list, polish and trip completion
- pantry: ledger, classification, cooking and pantry analysis
- enrichment: background jobs against the enrichment service
- substitution: carrying shopping list edits back into recipes
"""
__all__ = ["matching", "shopping", "pantry", "enrichment", "substitution"]
