"""Request-scoped access to the collaborators built once in ``create_app``."""

from __future__ import annotations

from fastapi import Depends, Request

from .config import Settings, get_settings
from .services.fallback import IngredientFallbackClient
from .services.sheets import RowStore
from .services.shopping_list import ShoppingListService


def get_row_store(request: Request) -> RowStore:
    return request.app.state.row_store


def get_fallback_client(request: Request) -> IngredientFallbackClient:
    return request.app.state.fallback_client


def get_shopping_list_service(
    store: RowStore = Depends(get_row_store),
    settings: Settings = Depends(get_settings),
) -> ShoppingListService:
    return ShoppingListService(store, settings)
