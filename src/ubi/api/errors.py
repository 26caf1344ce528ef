from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi.responses import JSONResponse

from ubi.runtime.errors import (
    ClaimError,
    ConfigurationError,
    NotPrivileged,
    OutsideWindow,
    TooSoon,
    TransferError,
)


@dataclass(eq=False)
class ApiError(Exception):
    status_code: int
    code: str
    message: str
    details: Dict[str, Any]

    @staticmethod
    def bad_request(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(400, code, message, details or {})

    @staticmethod
    def forbidden(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(403, code, message, details or {})

    @staticmethod
    def not_found(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(404, code, message, details or {})

    @staticmethod
    def conflict(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(409, code, message, details or {})

    @staticmethod
    def internal(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(500, code, message, details or {})

    @staticmethod
    def bad_gateway(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(502, code, message, details or {})

    @staticmethod
    def from_claim_error(e: ClaimError) -> "ApiError":
        details = e.details if isinstance(e.details, dict) else {}
        if isinstance(e, (OutsideWindow, NotPrivileged)):
            return ApiError.forbidden(e.code, e.reason, details)
        if isinstance(e, TooSoon):
            return ApiError.conflict(e.code, e.reason, details)
        if isinstance(e, TransferError):
            return ApiError.bad_gateway(e.code, e.reason, details)
        if isinstance(e, ConfigurationError):
            return ApiError.internal(e.code, e.reason, details)
        return ApiError.internal(e.code or "claim_error", e.reason, details)

    def to_response(self) -> JSONResponse:
        return JSONResponse(
            status_code=self.status_code,
            content={"ok": False, "error": {"code": self.code, "message": self.message, "details": self.details}},
        )
