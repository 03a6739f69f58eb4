"""Expand the weekly menu into an ingredient list reconciled with the shopping list.

The pipeline is resolve -> fallback-if-needed -> merge -> reconcile:

1. menu rows are flattened into dishes (one per non-empty main/side slot);
2. dishes with a recipe row take their ingredients from it;
3. the remaining dishes go to the generative fallback in one batch;
4. ingredients are merged by their trimmed, case-sensitive text, keeping
   every dish that produced them;
5. each merged ingredient is matched against the shopping list status.

Nothing here writes to the row store.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Literal, Sequence, Tuple

from ..config import Settings
from ..errors import UpstreamError
from ..schemas import MenuDay, MenuIngredientsResponse, ReconciledIngredient
from .fallback import IngredientFallbackClient
from .normalizer import build_status_table, normalize
from .recipes import build_recipe_table, resolve_recipes, split_ingredients
from .sheets import Row, RowStore

logger = logging.getLogger(__name__)

MENU_SLOTS: Tuple[Tuple[int, Literal["main", "side"]], ...] = ((1, "main"), (2, "side"))


@dataclass(frozen=True)
class Dish:
    day: str
    slot: Literal["main", "side"]
    name: str


@dataclass
class IngredientRecord:
    name: str
    sources: List[str] = field(default_factory=list)

    def add_source(self, dish: str) -> None:
        if dish not in self.sources:
            self.sources.append(dish)


@dataclass
class RowSnapshot:
    menu_rows: List[Row]
    recipe_rows: List[Row]
    shopping_list_rows: List[Row]


class IngredientMerge:
    """Insertion-ordered map of ingredient text to the dishes that use it."""

    def __init__(self) -> None:
        self._records: Dict[str, IngredientRecord] = {}

    def add(self, ingredient: str, dish: str) -> None:
        name = ingredient.strip()
        if not name:
            return
        record = self._records.get(name)
        if record is None:
            record = self._records[name] = IngredientRecord(name=name)
        record.add_source(dish)

    def records(self) -> List[IngredientRecord]:
        return list(self._records.values())

    def __len__(self) -> int:
        return len(self._records)


def _cell(row: Sequence[str], index: int) -> str:
    return row[index].strip() if len(row) > index and row[index] else ""


def flatten_menu(menu_rows: Sequence[Row]) -> Tuple[List[MenuDay], List[Dish]]:
    days: List[MenuDay] = []
    dishes: List[Dish] = []
    for row in menu_rows:
        day = MenuDay(day=_cell(row, 0), main=_cell(row, 1), side=_cell(row, 2))
        if not (day.day or day.main or day.side):
            continue
        days.append(day)
        for index, slot in MENU_SLOTS:
            name = _cell(row, index)
            if name:
                dishes.append(Dish(day=day.day, slot=slot, name=name))
    return days, dishes


def distinct_dish_names(dishes: Sequence[Dish]) -> List[str]:
    seen: Dict[str, None] = {}
    for dish in dishes:
        seen.setdefault(dish.name, None)
    return list(seen)


async def aggregate(
    menu_rows: Sequence[Row],
    recipe_rows: Sequence[Row],
    shopping_list_rows: Sequence[Row],
    *,
    fallback: IngredientFallbackClient,
) -> MenuIngredientsResponse:
    days, dishes = flatten_menu(menu_rows)
    if not dishes:
        return MenuIngredientsResponse(menu=[], ingredients=[])

    partition = resolve_recipes(distinct_dish_names(dishes), build_recipe_table(recipe_rows))
    merge = IngredientMerge()
    for dish, raw_ingredients in partition.resolved.items():
        for ingredient in split_ingredients(raw_ingredients):
            merge.add(ingredient, dish)

    if partition.unresolved:
        result = await fallback.resolve(partition.unresolved)
        if result.degraded:
            logger.warning(
                "Continuing without fallback ingredients dishes=%s error=%s",
                partition.unresolved,
                result.error,
            )
        for dish in partition.unresolved:
            for ingredient in result.ingredients.get(dish, []):
                merge.add(ingredient, dish)

    status_table = build_status_table(shopping_list_rows)
    ingredients = [
        ReconciledIngredient(
            name=record.name,
            status=normalize(record.name, status_table),
            sources=list(record.sources),
        )
        for record in merge.records()
    ]
    logger.info(
        "Menu aggregated dishes=%d resolved=%d unresolved=%d ingredients=%d",
        len(dishes),
        len(partition.resolved),
        len(partition.unresolved),
        len(ingredients),
    )
    return MenuIngredientsResponse(menu=days, ingredients=ingredients)


async def read_row_snapshot(store: RowStore, settings: Settings) -> RowSnapshot:
    """Fetch menu, recipe and shopping-list rows concurrently.

    All three reads run to completion; if any failed, the first failure is
    raised once the others have settled.
    """
    ranges = (settings.menu_range, settings.recipes_range, settings.groceries_range)
    outcomes = await asyncio.gather(*(store.get(range_) for range_ in ranges), return_exceptions=True)
    failures = [(range_, outcome) for range_, outcome in zip(ranges, outcomes) if isinstance(outcome, BaseException)]
    for range_, exc in failures:
        logger.error("Row store read failed range=%s error=%s", range_, exc)
    if failures:
        exc = failures[0][1]
        if isinstance(exc, UpstreamError) or not isinstance(exc, Exception):
            raise exc
        raise UpstreamError(f"Row store read failed: {exc}") from exc
    menu_rows, recipe_rows, shopping_list_rows = outcomes
    return RowSnapshot(
        menu_rows=menu_rows,
        recipe_rows=recipe_rows,
        shopping_list_rows=shopping_list_rows,
    )


async def build_menu_ingredients(
    *,
    store: RowStore,
    fallback: IngredientFallbackClient,
    settings: Settings,
) -> MenuIngredientsResponse:
    snapshot = await read_row_snapshot(store, settings)
    return await aggregate(
        snapshot.menu_rows,
        snapshot.recipe_rows,
        snapshot.shopping_list_rows,
        fallback=fallback,
    )
