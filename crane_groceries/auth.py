from __future__ import annotations

import hmac
import logging
from typing import Optional

from fastapi import Depends, Header

from .config import Settings, get_settings
from .errors import UnauthorizedError

logger = logging.getLogger(__name__)


def require_api_key(
    x_api_key: Optional[str] = Header(default=None, alias="x-api-key"),
    settings: Settings = Depends(get_settings),
) -> None:
    """Reject callers whose ``x-api-key`` header does not match the shared secret."""
    expected = settings.secret_api_key
    if not expected:
        logger.error("SECRET_API_KEY not configured; rejecting request")
        raise UnauthorizedError()
    if not x_api_key or not hmac.compare_digest(x_api_key.encode(), expected.encode()):
        logger.info("Rejected request with invalid or missing API key.")
        raise UnauthorizedError()
