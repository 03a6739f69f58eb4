from __future__ import annotations

from functools import lru_cache
from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from typing import List


class Settings(BaseSettings):
    # Core
    app_name: str = Field(default="crane-groceries")
    environment: str = Field(default="dev")  # dev|staging|prod
    log_json: bool = Field(default=True)
    log_level: str = Field(default="INFO")

    # Auth
    secret_api_key: str | None = Field(default=None)

    # API
    cors_allowed_origins: List[str] = Field(default_factory=lambda: ["*"])

    # Google Sheets row store
    spreadsheet_id: str | None = Field(default=None)
    google_service_account_file: str | None = Field(default=None)
    sheets_request_timeout_seconds: int = Field(default=20, ge=1, le=120)
    groceries_range: str = Field(default="Groceries!A3:E")
    groceries_append_range: str = Field(default="Groceries!A:D")
    groceries_sheet_id: int = Field(default=0)
    groceries_header_rows: int = Field(default=2, ge=0)
    menu_range: str = Field(default="Menu!A2:C")
    recipes_range: str = Field(default="Recipes!A2:B")

    # OpenAI
    openai_api_key: str | None = Field(default=None)
    openai_fallback_model: str = Field(default="gpt-5-mini")
    openai_fallback_reasoning_effort: str = Field(default="low")
    openai_fallback_max_output_tokens: int = Field(default=4000)
    openai_request_timeout_seconds: int = Field(default=90, ge=30, le=300)

    # Observability
    sentry_dsn: str | None = Field(default=None)
    sentry_traces_sample_rate: float = Field(default=0.0)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False

    @field_validator("cors_allowed_origins", mode="before")
    @classmethod
    def _csv_to_list(cls, v):
        if isinstance(v, str):
            return [s.strip() for s in v.split(",") if s.strip()]
        return v


@lru_cache
def get_settings() -> Settings:
    return Settings()
