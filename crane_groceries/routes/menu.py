from __future__ import annotations

from fastapi import APIRouter, Depends

from ..auth import require_api_key
from ..config import Settings, get_settings
from ..dependencies import get_fallback_client, get_row_store
from ..schemas import ErrorResponse, MenuIngredientsResponse
from ..services.fallback import IngredientFallbackClient
from ..services.menu_ingredients import build_menu_ingredients
from ..services.sheets import RowStore


router = APIRouter(
    prefix="/menu",
    tags=["menu"],
    dependencies=[Depends(require_api_key)],
    responses={401: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)


@router.get("/ingredients", response_model=MenuIngredientsResponse)
async def menu_ingredients(
    store: RowStore = Depends(get_row_store),
    fallback: IngredientFallbackClient = Depends(get_fallback_client),
    settings: Settings = Depends(get_settings),
) -> MenuIngredientsResponse:
    return await build_menu_ingredients(store=store, fallback=fallback, settings=settings)
