"""Command-line access to the menu aggregation and shopping-list updates."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Iterable, Optional

from .config import Settings, get_settings
from .errors import GroceriesError
from .observability import configure_logging
from .schemas import AddItemRequest
from .services.fallback import IngredientFallbackClient
from .services.menu_ingredients import build_menu_ingredients
from .services.sheets import build_sheets_client
from .services.shopping_list import ShoppingListService, build_direct_message, extract_item_name

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Household shopping list tooling")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    ingredients = subparsers.add_parser(
        "ingredients", help="Print this week's menu ingredients with shopping-list status"
    )
    ingredients.add_argument("--indent", type=int, default=2, help="JSON indent (0 for compact)")
    ingredients.set_defaults(func=run_ingredients)

    add = subparsers.add_parser("add", help="Add an item to the shopping list or mark it needed")
    add.add_argument("item", help="Item name")
    add.set_defaults(func=run_add)

    set_status = subparsers.add_parser("set-status", help="Set the status of a shopping-list item")
    set_status.add_argument("item", help="Item name")
    set_status.add_argument("status", help="New status, e.g. Got or Need")
    set_status.set_defaults(func=run_set_status)
    return parser


async def run_ingredients(args: argparse.Namespace, settings: Settings) -> None:
    store = build_sheets_client(settings)
    try:
        payload = await build_menu_ingredients(
            store=store,
            fallback=IngredientFallbackClient.from_settings(settings),
            settings=settings,
        )
    finally:
        await store.aclose()
    print(json.dumps(payload.model_dump(mode="json"), indent=args.indent or None))


async def run_add(args: argparse.Namespace, settings: Settings) -> None:
    name = extract_item_name(AddItemRequest(itemName=args.item))
    store = build_sheets_client(settings)
    try:
        outcome = await ShoppingListService(store, settings).add_item(name)
    finally:
        await store.aclose()
    print(build_direct_message(outcome.name))


async def run_set_status(args: argparse.Namespace, settings: Settings) -> None:
    store = build_sheets_client(settings)
    try:
        entry = await ShoppingListService(store, settings).set_status(args.item, args.status)
    finally:
        await store.aclose()
    print(f'"{entry.name}" is now {entry.status}.')


def main(argv: Optional[Iterable[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    settings = get_settings()
    configure_logging(json_logs=False, level=args.log_level)
    try:
        asyncio.run(args.func(args, settings))
    except GroceriesError as exc:
        logger.debug("Command failed", exc_info=True)
        print(f"error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover - manual entry point
    sys.exit(main())
