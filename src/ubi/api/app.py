from __future__ import annotations

import os
from typing import List

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from ubi.api.errors import ApiError
from ubi.api.routes_public import public_router
from ubi.api.structured_logging import RequestLogMiddleware
from ubi.runtime.errors import ClaimError
from ubi.runtime.processor_boot import build_processor as _build_processor


def build_processor():
    """Build the ClaimProcessor for API runtime.

    This wrapper exists so tests can monkeypatch `ubi.api.app.build_processor`
    without reaching into runtime modules.
    """
    return _build_processor()


def _parse_cors_origins() -> List[str]:
    """Parse CORS origins with production-safe defaults.

    Policy:
      - If UBI_CORS_ORIGINS is unset/empty -> CORS disabled (fail-closed)
      - Wildcard "*" is rejected in UBI_MODE=prod
      - In non-prod modes, "*" is allowed for convenience
    """
    raw = os.environ.get("UBI_CORS_ORIGINS", "").strip()
    mode = os.environ.get("UBI_MODE", "prod").strip().lower()

    if not raw:
        return []

    origins = [o.strip() for o in raw.split(",") if o.strip()]

    if "*" in origins:
        if mode == "prod":
            raise RuntimeError(
                "Unsafe CORS configuration: wildcard '*' not allowed in production. "
                "Set explicit origins in UBI_CORS_ORIGINS."
            )
        return ["*"]

    return origins


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiError)
    async def _api_error(_request: Request, exc: ApiError):
        return exc.to_response()

    @app.exception_handler(ClaimError)
    async def _claim_error(_request: Request, exc: ClaimError):
        return ApiError.from_claim_error(exc).to_response()

    @app.exception_handler(RequestValidationError)
    async def _validation_error(_request: Request, exc: RequestValidationError):
        details = {"errors": jsonable_encoder(exc.errors())}
        return ApiError(422, "invalid_payload", "request validation failed", details).to_response()


def create_app(*, boot_runtime: bool = True) -> FastAPI:
    """Create the FastAPI application.

    boot_runtime:
      - True (default): load campaign config + attach a ClaimProcessor
      - False: keep lightweight for unit tests / import-time validation
    """
    mode = os.environ.get("UBI_MODE", "prod").strip().lower()

    # Disable docs in production.
    if mode == "prod":
        app = FastAPI(title="UBI Campaign API", docs_url=None, redoc_url=None, openapi_url=None)
    else:
        app = FastAPI(title="UBI Campaign API")

    if boot_runtime:
        app.state.processor = build_processor()
    else:
        app.state.processor = None

    _install_error_handlers(app)

    app.add_middleware(RequestLogMiddleware)

    # CORS (explicit allowlist only by default).
    cors_origins = _parse_cors_origins()
    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["Authorization", "Content-Type"],
        )

    app.include_router(public_router)

    return app
