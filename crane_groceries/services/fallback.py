"""Ask the text-generation service for ingredients of dishes with no recipe.

Everything here is best-effort: any failure leaves the affected dishes with
no ingredients and is reported through ``FallbackResult.error`` instead of
raising, so the menu request still succeeds with what the recipes supplied.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..config import Settings
from ..errors import GenerativeServiceError
from .openai_responses import call_openai_responses

logger = logging.getLogger(__name__)

CODE_FENCE_PATTERN = re.compile(r"```(?:json)?(.*?)```", re.IGNORECASE | re.DOTALL)
PANTRY_STAPLES = ("salt", "pepper", "water", "cooking oil")

# (system_prompt, user_prompt) -> raw model text
GenerateFn = Callable[[str, str], str]


class MalformedModelOutput(ValueError):
    """Model text could not be read as a dish -> ingredient list object."""


@dataclass
class FallbackResult:
    ingredients: Dict[str, List[str]] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def degraded(self) -> bool:
        return self.error is not None


def build_system_prompt() -> str:
    return (
        "You list the grocery ingredients needed to cook home dishes. "
        "Respond with only a JSON object and no other text: each key is a dish name exactly as given, "
        "each value is an array of short ingredient names. "
        f"Omit common pantry staples ({', '.join(PANTRY_STAPLES)})."
    )


def build_user_prompt(dishes: Sequence[str]) -> str:
    return "Dishes:\n" + "\n".join(f"- {dish}" for dish in dishes)


def sanitize_model_output(text: str) -> str:
    """Strip surrounding code-fence markup the model may add around its JSON."""
    stripped = text.strip()
    match = CODE_FENCE_PATTERN.search(stripped)
    if match:
        stripped = match.group(1).strip()
    return stripped


def parse_dish_ingredients(text: str, dishes: Sequence[str]) -> Dict[str, List[str]]:
    """Parse sanitized model text into ``{requested dish: [ingredient, ...]}``.

    Keys are matched back to the requested dish names case-insensitively;
    keys that match no requested dish are ignored, as are non-string items.
    """
    try:
        payload = json.loads(sanitize_model_output(text))
    except json.JSONDecodeError as exc:
        raise MalformedModelOutput(f"invalid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise MalformedModelOutput(f"expected a JSON object, got {type(payload).__name__}")

    requested = {dish.strip().lower(): dish for dish in dishes}
    result: Dict[str, List[str]] = {}
    for key, value in payload.items():
        dish = requested.get(str(key).strip().lower())
        if dish is None:
            logger.debug("Ignoring ingredients for unrequested dish %r", key)
            continue
        if not isinstance(value, list):
            logger.warning("Model returned non-list ingredients for dish=%s", dish)
            continue
        names = [item.strip() for item in value if isinstance(item, str) and item.strip()]
        result.setdefault(dish, []).extend(names)
    return result


class IngredientFallbackClient:
    """Resolve a batch of unknown dishes with a single generative call."""

    def __init__(self, generate: GenerateFn) -> None:
        self._generate = generate

    @classmethod
    def from_settings(cls, settings: Settings) -> "IngredientFallbackClient":
        def _generate(system_prompt: str, user_prompt: str) -> str:
            return call_openai_responses(
                settings=settings,
                model=settings.openai_fallback_model,
                system_prompt=system_prompt,
                user_prompt=user_prompt,
                max_output_tokens=settings.openai_fallback_max_output_tokens,
                reasoning_effort=settings.openai_fallback_reasoning_effort,
            )

        return cls(_generate)

    async def resolve(self, dishes: Sequence[str]) -> FallbackResult:
        if not dishes:
            return FallbackResult()
        try:
            text = await asyncio.to_thread(
                self._generate, build_system_prompt(), build_user_prompt(dishes)
            )
        except GenerativeServiceError as exc:
            logger.warning("Ingredient fallback failed dishes=%s error=%s", list(dishes), exc)
            return FallbackResult(error=str(exc))
        try:
            ingredients = parse_dish_ingredients(text, dishes)
        except MalformedModelOutput as exc:
            logger.warning("Ingredient fallback output unusable dishes=%s error=%s", list(dishes), exc)
            return FallbackResult(error=str(exc))
        missing = [dish for dish in dishes if dish not in ingredients]
        if missing:
            logger.info("Ingredient fallback returned nothing for dishes=%s", missing)
        return FallbackResult(ingredients=ingredients)
