from __future__ import annotations

import json
import unittest
from unittest import IsolatedAsyncioTestCase, mock

import httpx

from fakes import FakeRowStore

from crane_groceries.config import Settings
from crane_groceries.errors import GenerativeServiceError, RowStoreError
from crane_groceries.services.fallback import IngredientFallbackClient
from crane_groceries.services.menu_ingredients import (
    aggregate,
    build_menu_ingredients,
    flatten_menu,
    read_row_snapshot,
)


def _ingredients(result) -> list[dict]:
    return [item.model_dump() for item in result.ingredients]


class AggregateTestCase(IsolatedAsyncioTestCase):
    async def test_weekly_menu_scenario_with_failed_fallback(self):
        generate = mock.Mock(side_effect=GenerativeServiceError("Model call returned 503"))
        result = await aggregate(
            [["Mon", "Tacos", "Rice"]],
            [["tacos", "beef, tortilla, onion"]],
            [["onion", "Got"]],
            fallback=IngredientFallbackClient(generate),
        )

        generate.assert_called_once()
        self.assertIn("- Rice", generate.call_args.args[1])
        self.assertEqual([day.model_dump() for day in result.menu], [{"day": "Mon", "main": "Tacos", "side": "Rice"}])
        self.assertEqual(
            _ingredients(result),
            [
                {"name": "beef", "status": "Unknown", "sources": ["Tacos"]},
                {"name": "tortilla", "status": "Unknown", "sources": ["Tacos"]},
                {"name": "onion", "status": "Got", "sources": ["Tacos"]},
            ],
        )

    async def test_fallback_skipped_when_every_dish_has_a_recipe(self):
        generate = mock.Mock()
        result = await aggregate(
            [["Mon", "Tacos", ""], ["Tue", "Stir Fry", "Tacos"]],
            [["Tacos", "beef, onion"], ["stir fry", "onion, peppers"]],
            [],
            fallback=IngredientFallbackClient(generate),
        )

        generate.assert_not_called()
        names = [item.name for item in result.ingredients]
        self.assertEqual(names, ["beef", "onion", "peppers"])

    async def test_shared_ingredient_keeps_every_source_once(self):
        result = await aggregate(
            [["Mon", "Tacos", ""], ["Tue", "Stir Fry", ""], ["Wed", "", "Tacos"]],
            [["tacos", "onion, beef"], ["stir fry", "onion"]],
            [],
            fallback=IngredientFallbackClient(mock.Mock()),
        )

        onion = next(item for item in result.ingredients if item.name == "onion")
        self.assertEqual(onion.sources, ["Tacos", "Stir Fry"])

    async def test_fallback_ingredients_merge_with_recipe_ingredients(self):
        generate = mock.Mock(return_value=json.dumps({"Rice": ["rice", " onion "]}))
        result = await aggregate(
            [["Mon", "Tacos", "Rice"]],
            [["tacos", "onion"]],
            [["rice", "Need"], ["onions", "Got"]],
            fallback=IngredientFallbackClient(generate),
        )

        self.assertEqual(
            _ingredients(result),
            [
                {"name": "onion", "status": "Got", "sources": ["Tacos", "Rice"]},
                {"name": "rice", "status": "Need", "sources": ["Rice"]},
            ],
        )

    async def test_ingredient_keys_are_case_sensitive(self):
        result = await aggregate(
            [["Mon", "Tacos", "Soup"]],
            [["tacos", "Onion"], ["soup", "onion"]],
            [["onion", "Got"]],
            fallback=IngredientFallbackClient(mock.Mock()),
        )

        self.assertEqual(
            _ingredients(result),
            [
                {"name": "Onion", "status": "Got", "sources": ["Tacos"]},
                {"name": "onion", "status": "Got", "sources": ["Soup"]},
            ],
        )

    async def test_empty_menu_short_circuits_without_fallback(self):
        generate = mock.Mock()
        result = await aggregate([], [["tacos", "beef"]], [["beef", "Got"]], fallback=IngredientFallbackClient(generate))

        generate.assert_not_called()
        self.assertEqual(result.model_dump(), {"menu": [], "ingredients": []})

    async def test_menu_without_dishes_counts_as_empty(self):
        generate = mock.Mock()
        result = await aggregate([["Mon", "", ""], []], [], [], fallback=IngredientFallbackClient(generate))

        generate.assert_not_called()
        self.assertEqual(result.model_dump(), {"menu": [], "ingredients": []})

    async def test_repeated_runs_produce_identical_output(self):
        menu_rows = [["Mon", "Tacos", "Rice"], ["Tue", "Soup", "Bread"]]
        recipe_rows = [["tacos", "beef, onion"], ["soup", "leek, onion, stock"]]
        shopping_rows = [["onion", "Got"], ["leeks", "Need"]]
        generate = mock.Mock(return_value='{"Rice": ["rice"], "Bread": ["flour", "yeast"]}')
        fallback = IngredientFallbackClient(generate)

        first = await aggregate(menu_rows, recipe_rows, shopping_rows, fallback=fallback)
        second = await aggregate(menu_rows, recipe_rows, shopping_rows, fallback=fallback)

        self.assertEqual(first.model_dump_json(), second.model_dump_json())

    async def test_unreadable_rest_reply_degrades_to_recipe_ingredients(self):
        gateway_page = httpx.Response(200, text="<html>gateway</html>")
        fallback = IngredientFallbackClient.from_settings(Settings(openai_api_key="sk-test"))
        with mock.patch("crane_groceries.services.openai_responses.OpenAI") as openai_cls, mock.patch(
            "crane_groceries.services.openai_responses.httpx.post", return_value=gateway_page
        ):
            openai_cls.return_value.responses = None
            result = await aggregate([["Mon", "Tacos", "Rice"]], [["tacos", "beef"]], [], fallback=fallback)

        self.assertEqual([item.name for item in result.ingredients], ["beef"])
        self.assertEqual(result.ingredients[0].sources, ["Tacos"])


class ReadSnapshotTestCase(IsolatedAsyncioTestCase):
    def setUp(self):
        self.settings = Settings()

    async def test_reads_all_three_ranges(self):
        store = FakeRowStore(
            {
                self.settings.menu_range: [["Mon", "Tacos"]],
                self.settings.recipes_range: [["tacos", "beef"]],
                self.settings.groceries_range: [["beef", "Got"]],
            }
        )
        snapshot = await read_row_snapshot(store, self.settings)

        self.assertEqual(snapshot.menu_rows, [["Mon", "Tacos"]])
        self.assertEqual(snapshot.recipe_rows, [["tacos", "beef"]])
        self.assertEqual(snapshot.shopping_list_rows, [["beef", "Got"]])
        self.assertEqual(
            sorted(call[1] for call in store.calls),
            sorted([self.settings.menu_range, self.settings.recipes_range, self.settings.groceries_range]),
        )

    async def test_any_failed_read_aborts_after_all_reads_settle(self):
        store = FakeRowStore(failing=[self.settings.recipes_range])
        generate = mock.Mock()

        with self.assertRaises(RowStoreError):
            await build_menu_ingredients(
                store=store,
                fallback=IngredientFallbackClient(generate),
                settings=self.settings,
            )
        self.assertEqual(len(store.calls), 3)
        generate.assert_not_called()

    async def test_build_menu_ingredients_never_writes(self):
        store = FakeRowStore(
            {
                self.settings.menu_range: [["Mon", "Tacos", ""]],
                self.settings.recipes_range: [["tacos", "beef"]],
            }
        )
        result = await build_menu_ingredients(
            store=store,
            fallback=IngredientFallbackClient(mock.Mock()),
            settings=self.settings,
        )

        self.assertEqual(store.writes(), [])
        self.assertEqual(result.ingredients[0].status, "Unknown")


def test_flatten_menu_drops_empty_slots_and_blank_rows():
    days, dishes = flatten_menu([["Mon", "Tacos", ""], [], ["Tue", " ", "Salad"], ["Wed"]])

    assert [day.day for day in days] == ["Mon", "Tue", "Wed"]
    assert [(dish.day, dish.slot, dish.name) for dish in dishes] == [
        ("Mon", "main", "Tacos"),
        ("Tue", "side", "Salad"),
    ]


if __name__ == "__main__":
    unittest.main()
