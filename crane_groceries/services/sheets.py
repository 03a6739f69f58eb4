"""Google Sheets v4 row store used for the menu, recipe and groceries tables.

Reads return rows exactly as the API formats them: a list of string lists,
with trailing blank cells omitted by the API and an empty list for ranges
that hold no data.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence
from urllib.parse import quote

import httpx
from jose import jwt

from ..config import Settings
from ..errors import RowStoreError

logger = logging.getLogger(__name__)

SHEETS_API_ROOT = "https://sheets.googleapis.com/v4/spreadsheets"
SHEETS_SCOPE = "https://www.googleapis.com/auth/spreadsheets"
DEFAULT_TOKEN_URI = "https://oauth2.googleapis.com/token"
JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"
# Cached tokens are dropped this many seconds before Google's stated expiry.
TOKEN_REFRESH_MARGIN_SECONDS = 60

Row = List[str]


class RowStore(Protocol):
    async def get(self, range_: str) -> List[Row]: ...

    async def update(self, range_: str, values: Sequence[Sequence[Any]]) -> None: ...

    async def append(self, range_: str, values: Sequence[Sequence[Any]]) -> None: ...

    async def sort_range(
        self, *, sheet_id: int, start_row_index: int, sort_specs: Sequence[Dict[str, Any]]
    ) -> None: ...


@dataclass
class ServiceAccountKey:
    client_email: str
    private_key: str
    token_uri: str = DEFAULT_TOKEN_URI
    private_key_id: Optional[str] = None

    @classmethod
    def from_file(cls, path: str | Path) -> "ServiceAccountKey":
        try:
            payload = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise RowStoreError(f"Unable to read service account key {path}: {exc}") from exc
        try:
            return cls(
                client_email=payload["client_email"],
                private_key=payload["private_key"],
                token_uri=payload.get("token_uri") or DEFAULT_TOKEN_URI,
                private_key_id=payload.get("private_key_id"),
            )
        except KeyError as exc:
            raise RowStoreError(f"Service account key {path} is missing {exc}") from exc


class ServiceAccountTokenSource:
    """Mint and cache OAuth access tokens from a service-account key."""

    def __init__(self, key_loader, *, scope: str = SHEETS_SCOPE) -> None:
        self._key_loader = key_loader
        self._key: Optional[ServiceAccountKey] = None
        self._scope = scope
        self._token: Optional[str] = None
        self._exp_ts: float = 0.0
        self._lock = asyncio.Lock()

    def _assertion(self, key: ServiceAccountKey, now: int) -> str:
        claims = {
            "iss": key.client_email,
            "scope": self._scope,
            "aud": key.token_uri,
            "iat": now,
            "exp": now + 3600,
        }
        headers = {"kid": key.private_key_id} if key.private_key_id else None
        return jwt.encode(claims, key.private_key, algorithm="RS256", headers=headers)

    async def token(self, http: httpx.AsyncClient) -> str:
        async with self._lock:
            now = time.time()
            if self._token is not None and now < self._exp_ts:
                return self._token
            if self._key is None:
                self._key = self._key_loader()
            key = self._key
            try:
                resp = await http.post(
                    key.token_uri,
                    data={"grant_type": JWT_BEARER_GRANT, "assertion": self._assertion(key, int(now))},
                )
            except httpx.HTTPError as exc:
                raise RowStoreError(f"Token exchange failed: {exc}") from exc
            if resp.status_code >= 400:
                raise RowStoreError(f"Token exchange returned {resp.status_code}: {resp.text}")
            try:
                payload = resp.json()
                token = str(payload["access_token"])
                expires_in = int(payload.get("expires_in", 3600))
            except (ValueError, KeyError, TypeError, AttributeError) as exc:
                raise RowStoreError(f"Token exchange returned unreadable payload: {resp.text[:200]}") from exc
            self._token = token
            self._exp_ts = now + expires_in - TOKEN_REFRESH_MARGIN_SECONDS
            return self._token


class SheetsClient:
    """Async wrapper over the spreadsheet values and batchUpdate endpoints."""

    def __init__(
        self,
        *,
        spreadsheet_id: Optional[str],
        token_source: Optional[ServiceAccountTokenSource],
        http: Optional[httpx.AsyncClient] = None,
        timeout: float = 20.0,
    ) -> None:
        self.spreadsheet_id = spreadsheet_id
        self._token_source = token_source
        self._http = http or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _headers(self) -> Dict[str, str]:
        if self._token_source is None:
            return {}
        token = await self._token_source.token(self._http)
        return {"Authorization": f"Bearer {token}"}

    def _url(self, suffix: str) -> str:
        if not self.spreadsheet_id:
            raise RowStoreError("SPREADSHEET_ID is not configured")
        return f"{SHEETS_API_ROOT}/{self.spreadsheet_id}{suffix}"

    async def _request(
        self,
        method: str,
        suffix: str,
        *,
        params: Optional[Dict[str, str]] = None,
        body: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        url = self._url(suffix)
        headers = await self._headers()
        try:
            resp = await self._http.request(method, url, params=params, json=body, headers=headers)
        except httpx.HTTPError as exc:
            raise RowStoreError(f"{method} {suffix} failed: {exc}") from exc
        if resp.status_code >= 400:
            raise RowStoreError(f"{method} {suffix} returned {resp.status_code}: {resp.text}")
        if not resp.content:
            return {}
        return resp.json()

    async def get(self, range_: str) -> List[Row]:
        payload = await self._request("GET", f"/values/{quote(range_, safe='!:')}")
        rows = payload.get("values") or []
        return [[str(cell) for cell in row] for row in rows]

    async def update(self, range_: str, values: Sequence[Sequence[Any]]) -> None:
        await self._request(
            "PUT",
            f"/values/{quote(range_, safe='!:')}",
            params={"valueInputOption": "USER_ENTERED"},
            body={"range": range_, "values": [list(row) for row in values]},
        )

    async def append(self, range_: str, values: Sequence[Sequence[Any]]) -> None:
        await self._request(
            "POST",
            f"/values/{quote(range_, safe='!:')}:append",
            params={"valueInputOption": "USER_ENTERED"},
            body={"values": [list(row) for row in values]},
        )

    async def sort_range(
        self, *, sheet_id: int, start_row_index: int, sort_specs: Sequence[Dict[str, Any]]
    ) -> None:
        request = {
            "sortRange": {
                "range": {"sheetId": sheet_id, "startRowIndex": start_row_index},
                "sortSpecs": list(sort_specs),
            }
        }
        await self._request("POST", ":batchUpdate", body={"requests": [request]})


def build_sheets_client(settings: Settings) -> SheetsClient:
    """Construct the process-wide client; the key file is read on first use."""
    token_source = None
    key_path = settings.google_service_account_file
    if key_path:
        token_source = ServiceAccountTokenSource(lambda: ServiceAccountKey.from_file(key_path))
    else:
        logger.warning("GOOGLE_SERVICE_ACCOUNT_FILE not set; row store calls will be unauthenticated")
    return SheetsClient(
        spreadsheet_id=settings.spreadsheet_id,
        token_source=token_source,
        timeout=settings.sheets_request_timeout_seconds,
    )
