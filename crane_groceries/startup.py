from __future__ import annotations

import logging
from typing import Iterable, Tuple

from .config import Settings

logger = logging.getLogger(__name__)

_ROW_STORE_SETTINGS: Tuple[Tuple[str, str], ...] = (
    ("spreadsheet_id", "SPREADSHEET_ID"),
    ("google_service_account_file", "GOOGLE_SERVICE_ACCOUNT_FILE"),
    ("secret_api_key", "SECRET_API_KEY"),
)


def _collect_missing(settings: Settings, pairs: Iterable[Tuple[str, str]]) -> list[str]:
    missing: list[str] = []
    for attr, label in pairs:
        value = getattr(settings, attr, None)
        if value in (None, "", [], {}):
            missing.append(label)
    return missing


def validate_settings(settings: Settings) -> None:
    """Fail fast when the row store or API secret is unconfigured outside dev.

    A missing OpenAI key never blocks startup: menu dishes without a recipe
    simply contribute no ingredients until the key is provided.
    """
    environment = (settings.environment or "dev").lower()

    if not settings.openai_api_key:
        logger.warning("OPENAI_API_KEY not set; ingredient fallback for unknown dishes is disabled")

    missing = _collect_missing(settings, _ROW_STORE_SETTINGS)
    if environment == "dev":
        if missing:
            logger.warning(
                "Running in dev without recommended settings; some routes will fail: %s",
                ", ".join(missing),
            )
        return

    if missing:
        raise RuntimeError(
            f"Missing required configuration for environment '{environment}': {', '.join(sorted(missing))}"
        )
