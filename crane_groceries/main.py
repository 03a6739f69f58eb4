from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import List

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.gzip import GZipMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi.errors import RateLimitExceeded
from slowapi import _rate_limit_exceeded_handler

from .config import get_settings
from .errors import GroceriesError, UpstreamError
from .observability import configure_logging, init_sentry
from .ratelimit import limiter
from .routes import health, menu, shopping
from .services.fallback import IngredientFallbackClient
from .services.sheets import build_sheets_client
from .startup import validate_settings

logger = logging.getLogger(__name__)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        response.headers.setdefault("X-Frame-Options", "DENY")
        return response


async def _groceries_error_handler(request: Request, exc: GroceriesError) -> JSONResponse:
    if isinstance(exc, UpstreamError):
        logger.error("ERROR: %s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.public_message})


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = "Invalid request."
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"Invalid {field or 'request'}: {first.get('msg', 'invalid value')}"
    logger.info("Rejected %s %s: %s", request.method, request.url.path, message)
    return JSONResponse(status_code=400, content={"error": message})


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await app.state.row_store.aclose()


def create_app() -> FastAPI:
    s = get_settings()
    configure_logging(json_logs=s.log_json, level=s.log_level)
    init_sentry(s)
    validate_settings(s)
    app = FastAPI(title=s.app_name, lifespan=lifespan)

    # Collaborators shared by every request
    app.state.row_store = build_sheets_client(s)
    app.state.fallback_client = IngredientFallbackClient.from_settings(s)

    # CORS
    origins: List[str] = s.cors_allowed_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "PATCH"],
        allow_headers=["Content-Type", "x-api-key"],
    )

    # Security headers
    app.add_middleware(SecurityHeadersMiddleware)
    # Compression
    app.add_middleware(GZipMiddleware, minimum_size=1024)

    # Routers
    prefix = "/v1"
    app.include_router(health.router, prefix=prefix)
    app.include_router(menu.router, prefix=prefix)
    app.include_router(shopping.router, prefix=prefix)

    # Errors render as {"error": message}
    app.add_exception_handler(GroceriesError, _groceries_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)

    # Rate limit handling
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Metrics
    Instrumentator().instrument(app).expose(app, include_in_schema=False)

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn

    port = int(os.environ.get("PORT", "8000"))
    uvicorn.run("crane_groceries.main:app", host="0.0.0.0", port=port, reload=False)
