from __future__ import annotations

from typing import Any

from fastapi import Request

from ubi.api.errors import ApiError
from ubi.runtime.processor import ClaimProcessor


def _processor(request: Request) -> ClaimProcessor:
    proc = getattr(request.app.state, "processor", None)
    if proc is None:
        raise ApiError.internal("not_ready", "processor not attached to app.state", {})
    return proc


def _address_param(v: Any) -> str:
    s = str(v or "").strip()
    if not s:
        raise ApiError.bad_request("invalid_payload", "missing address", {})
    return s
