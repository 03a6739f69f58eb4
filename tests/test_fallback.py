from __future__ import annotations

import json
import unittest
from unittest import IsolatedAsyncioTestCase, mock

from crane_groceries.config import Settings
from crane_groceries.errors import GenerativeServiceError
from crane_groceries.services.fallback import (
    IngredientFallbackClient,
    MalformedModelOutput,
    build_system_prompt,
    build_user_prompt,
    parse_dish_ingredients,
    sanitize_model_output,
)


class ParseModelOutputTestCase(unittest.TestCase):
    def test_sanitize_strips_json_code_fence(self):
        text = 'Here you go:\n```json\n{"Rice": ["rice"]}\n```\n'
        self.assertEqual(sanitize_model_output(text), '{"Rice": ["rice"]}')

    def test_sanitize_leaves_bare_json_alone(self):
        self.assertEqual(sanitize_model_output('  {"a": []} '), '{"a": []}')

    def test_parse_maps_keys_back_to_requested_dishes(self):
        text = json.dumps(
            {
                "rice": [" rice ", "butter", 3, ""],
                "Pudding": ["sugar"],
                "Curry": "not a list",
            }
        )
        parsed = parse_dish_ingredients(text, ["Rice", "Curry"])
        self.assertEqual(parsed, {"Rice": ["rice", "butter"]})

    def test_parse_rejects_invalid_json(self):
        with self.assertRaises(MalformedModelOutput):
            parse_dish_ingredients("rice, beans", ["Rice"])

    def test_parse_rejects_non_object_json(self):
        with self.assertRaises(MalformedModelOutput):
            parse_dish_ingredients('["rice"]', ["Rice"])

    def test_prompts_request_json_object_without_staples(self):
        system_prompt = build_system_prompt()
        self.assertIn("only a JSON object", system_prompt)
        for staple in ("salt", "pepper", "water", "cooking oil"):
            self.assertIn(staple, system_prompt)
        self.assertEqual(build_user_prompt(["Rice", "Soup"]), "Dishes:\n- Rice\n- Soup")


class IngredientFallbackClientTestCase(IsolatedAsyncioTestCase):
    async def test_empty_batch_never_calls_service(self):
        generate = mock.Mock()
        result = await IngredientFallbackClient(generate).resolve([])
        generate.assert_not_called()
        self.assertEqual(result.ingredients, {})
        self.assertFalse(result.degraded)

    async def test_single_batched_call_for_all_dishes(self):
        generate = mock.Mock(return_value='```json\n{"Rice": ["rice"], "Soup": ["carrot", "celery"]}\n```')
        result = await IngredientFallbackClient(generate).resolve(["Rice", "Soup"])

        generate.assert_called_once()
        _, user_prompt = generate.call_args.args
        self.assertIn("- Rice", user_prompt)
        self.assertIn("- Soup", user_prompt)
        self.assertEqual(result.ingredients, {"Rice": ["rice"], "Soup": ["carrot", "celery"]})
        self.assertIsNone(result.error)

    async def test_service_failure_is_absorbed(self):
        generate = mock.Mock(side_effect=GenerativeServiceError("Model call returned 500"))
        result = await IngredientFallbackClient(generate).resolve(["Rice"])

        self.assertTrue(result.degraded)
        self.assertEqual(result.ingredients, {})
        self.assertIn("500", result.error)

    async def test_unparsable_output_is_absorbed(self):
        generate = mock.Mock(return_value="rice, beans, onion")
        result = await IngredientFallbackClient(generate).resolve(["Rice"])

        self.assertTrue(result.degraded)
        self.assertEqual(result.ingredients, {})

    async def test_unconfigured_openai_degrades_instead_of_raising(self):
        client = IngredientFallbackClient.from_settings(Settings(openai_api_key=None))
        result = await client.resolve(["Rice"])

        self.assertTrue(result.degraded)
        self.assertEqual(result.error, "OpenAI not configured")


if __name__ == "__main__":
    unittest.main()
