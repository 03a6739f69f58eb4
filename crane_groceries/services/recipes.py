from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence


@dataclass
class RecipePartition:
    """Dishes split by whether the recipe table knows them, in menu order."""

    resolved: Dict[str, str] = field(default_factory=dict)
    unresolved: List[str] = field(default_factory=list)


def build_recipe_table(rows: Iterable[Sequence[str]]) -> Dict[str, str]:
    """Map lower-cased dish name to its raw comma-separated ingredient text.

    A dish listed twice keeps its first row. A named row with a blank
    ingredient cell still counts as a known recipe.
    """
    table: Dict[str, str] = {}
    for row in rows:
        name = row[0].strip().lower() if len(row) > 0 and row[0] else ""
        if not name:
            continue
        table.setdefault(name, row[1] if len(row) > 1 and row[1] else "")
    return table


def resolve_recipes(dishes: Sequence[str], recipe_table: Dict[str, str]) -> RecipePartition:
    partition = RecipePartition()
    for dish in dishes:
        key = dish.strip().lower()
        if key in recipe_table:
            partition.resolved[dish] = recipe_table[key]
        else:
            partition.unresolved.append(dish)
    return partition


def split_ingredients(raw: str) -> List[str]:
    """Split a recipe cell on commas, dropping blanks and surrounding spaces."""
    return [piece.strip() for piece in raw.split(",") if piece.strip()]
