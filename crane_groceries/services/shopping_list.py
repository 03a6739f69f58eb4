from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from ..config import Settings
from ..errors import NotFoundError, ValidationError
from ..schemas import (
    ActionPrompt,
    ActionSimplePrompt,
    ActionWebhookResponse,
    AddItemRequest,
    ShoppingListEntry,
)
from .sheets import Row, RowStore

logger = logging.getLogger(__name__)

NEED_STATUS = "Need"
# Column indexes for sortRange: B (status) descending, then A (item name).
SORT_SPECS: List[Dict[str, Any]] = [
    {"dimensionIndex": 1, "sortOrder": "DESCENDING"},
    {"dimensionIndex": 0, "sortOrder": "ASCENDING"},
]


@dataclass
class AddItemOutcome:
    name: str
    created: bool
    add_count: int


def utc_timestamp(now: Optional[datetime] = None) -> str:
    moment = now or datetime.now(timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _cell(row: Sequence[str], index: int) -> str:
    return row[index].strip() if len(row) > index and row[index] else ""


def _parse_count(value: str) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_shopping_list_rows(rows: Sequence[Row]) -> List[ShoppingListEntry]:
    entries: List[ShoppingListEntry] = []
    for row in rows:
        name = _cell(row, 0)
        if not name:
            continue
        count = _parse_count(_cell(row, 3))
        entries.append(
            ShoppingListEntry(
                name=name,
                status=_cell(row, 1),
                lastModified=_cell(row, 2),
                addCount=count if count and count >= 1 else 1,
                preferredStore=_cell(row, 4),
            )
        )
    return entries


def find_item_index(rows: Sequence[Row], name: str) -> int:
    """Index of the first row whose name matches case-insensitively, or -1."""
    target = name.lower()
    for index, row in enumerate(rows):
        if _cell(row, 0).lower() == target:
            return index
    return -1


def extract_item_name(request: AddItemRequest) -> str:
    raw: Any = None
    if request.session and request.session.params and request.session.params.itemName:
        logger.info("Received request from Google Action")
        raw = request.session.params.itemName
    elif request.itemName:
        logger.info("Received direct API request")
        raw = request.itemName
    if raw is None:
        raise ValidationError('Could not find "itemName" in request.')
    name = str(raw).strip()
    if not name:
        raise ValidationError("Item name cannot be empty.")
    return name


class ShoppingListService:
    """Read and mutate the groceries table through a row store."""

    def __init__(self, store: RowStore, settings: Settings) -> None:
        self.store = store
        self.settings = settings
        self._sheet_name = settings.groceries_range.split("!", 1)[0]

    def _row_number(self, index: int) -> int:
        # Sheet rows are 1-indexed and the table starts below the header rows.
        return index + self.settings.groceries_header_rows + 1

    async def list_entries(self) -> List[ShoppingListEntry]:
        rows = await self.store.get(self.settings.groceries_range)
        return parse_shopping_list_rows(rows)

    async def sort(self) -> None:
        await self.store.sort_range(
            sheet_id=self.settings.groceries_sheet_id,
            start_row_index=self.settings.groceries_header_rows,
            sort_specs=SORT_SPECS,
        )

    async def add_item(self, name: str, *, now: Optional[datetime] = None) -> AddItemOutcome:
        """Mark ``name`` as needed, appending it when the list lacks it."""
        rows = await self.store.get(self.settings.groceries_range)
        index = find_item_index(rows, name)
        timestamp = utc_timestamp(now)

        if index != -1:
            row_number = self._row_number(index)
            add_count = (_parse_count(_cell(rows[index], 3)) or 0) + 1
            await self.store.update(
                f"{self._sheet_name}!B{row_number}:D{row_number}",
                [[NEED_STATUS, timestamp, add_count]],
            )
            outcome = AddItemOutcome(name=name, created=False, add_count=add_count)
        else:
            await self.store.append(
                self.settings.groceries_append_range,
                [[name, NEED_STATUS, timestamp, 1]],
            )
            outcome = AddItemOutcome(name=name, created=True, add_count=1)

        await self.sort()
        logger.info(
            "Shopping list item saved name=%s created=%s add_count=%s",
            outcome.name,
            outcome.created,
            outcome.add_count,
        )
        return outcome

    async def set_status(
        self, name: str, status: str, *, now: Optional[datetime] = None
    ) -> ShoppingListEntry:
        name = name.strip()
        status = status.strip()
        if not name:
            raise ValidationError("Item name cannot be empty.")
        if not status:
            raise ValidationError("Status cannot be empty.")
        rows = await self.store.get(self.settings.groceries_range)
        index = find_item_index(rows, name)
        if index == -1:
            raise NotFoundError(f'"{name}" is not on the shopping list.')

        row_number = self._row_number(index)
        timestamp = utc_timestamp(now)
        await self.store.update(
            f"{self._sheet_name}!B{row_number}:C{row_number}",
            [[status, timestamp]],
        )
        await self.sort()

        row = list(rows[index]) + [""] * 5
        row[1] = status
        row[2] = timestamp
        logger.info("Shopping list status updated name=%s status=%s", name, status)
        return parse_shopping_list_rows([row])[0]


def build_action_response(request: AddItemRequest, name: str) -> ActionWebhookResponse:
    session = request.session
    params = session.params.model_dump(exclude_none=True) if session and session.params else {}
    return ActionWebhookResponse(
        session={"id": session.id if session else None, "params": params},
        prompt=ActionPrompt(
            override=False,
            firstSimple=ActionSimplePrompt(
                speech=f"Okay, I've added {name} to the list.",
                text=f"Added {name}.",
            ),
        ),
    )


def build_direct_message(name: str) -> str:
    return f'"{name}" added/updated.'
