from typing import Union

from fastapi import APIRouter, Depends, Request

from ..auth import require_api_key
from ..dependencies import get_shopping_list_service
from ..ratelimit import limiter
from ..schemas import (
    ActionWebhookResponse,
    AddItemRequest,
    AddItemResponse,
    ErrorResponse,
    ShoppingListResponse,
    StatusUpdateRequest,
    StatusUpdateResponse,
)
from ..services.shopping_list import (
    ShoppingListService,
    build_action_response,
    build_direct_message,
    extract_item_name,
)


router = APIRouter(
    prefix="/shopping-list",
    tags=["shopping-list"],
    dependencies=[Depends(require_api_key)],
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)


@router.get("", response_model=ShoppingListResponse)
async def list_items(
    service: ShoppingListService = Depends(get_shopping_list_service),
) -> ShoppingListResponse:
    return ShoppingListResponse(items=await service.list_entries())


@router.post("/items", response_model=Union[ActionWebhookResponse, AddItemResponse])
@limiter.limit("30/minute")
async def add_item(
    request: Request,
    payload: AddItemRequest,
    service: ShoppingListService = Depends(get_shopping_list_service),
):
    name = extract_item_name(payload)
    outcome = await service.add_item(name)
    if payload.session is not None:
        return build_action_response(payload, outcome.name)
    return AddItemResponse(success=True, message=build_direct_message(outcome.name))


@router.patch(
    "/items/{item_name}",
    response_model=StatusUpdateResponse,
    responses={404: {"model": ErrorResponse}},
)
async def update_item_status(
    item_name: str,
    payload: StatusUpdateRequest,
    service: ShoppingListService = Depends(get_shopping_list_service),
) -> StatusUpdateResponse:
    entry = await service.set_status(item_name, payload.status)
    return StatusUpdateResponse(success=True, item=entry)
