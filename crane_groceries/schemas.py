from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ErrorResponse(BaseModel):
    error: str


class MenuDay(BaseModel):
    day: str
    main: str = ""
    side: str = ""


class ReconciledIngredient(BaseModel):
    name: str
    status: str
    sources: List[str] = Field(min_length=1)


class MenuIngredientsResponse(BaseModel):
    menu: List[MenuDay] = []
    ingredients: List[ReconciledIngredient] = []


class ShoppingListEntry(BaseModel):
    name: str
    status: str = ""
    lastModified: str = ""
    addCount: int = Field(default=1, ge=1)
    preferredStore: str = ""


class ShoppingListResponse(BaseModel):
    items: List[ShoppingListEntry] = []


class ActionSessionParams(BaseModel):
    itemName: Optional[str] = None

    model_config = ConfigDict(extra="allow")


class ActionSession(BaseModel):
    id: Optional[str] = None
    params: Optional[ActionSessionParams] = None

    model_config = ConfigDict(extra="allow")


class AddItemRequest(BaseModel):
    """Direct ``{itemName}`` call or a Google Actions webhook body."""

    itemName: Optional[str] = None
    session: Optional[ActionSession] = None

    model_config = ConfigDict(extra="allow")


class AddItemResponse(BaseModel):
    success: bool = True
    message: str


class ActionSimplePrompt(BaseModel):
    speech: str
    text: str


class ActionPrompt(BaseModel):
    override: bool = False
    firstSimple: ActionSimplePrompt


class ActionWebhookResponse(BaseModel):
    session: Dict[str, Any]
    prompt: ActionPrompt


class StatusUpdateRequest(BaseModel):
    status: str = Field(max_length=64)


class StatusUpdateResponse(BaseModel):
    success: bool = True
    item: ShoppingListEntry
