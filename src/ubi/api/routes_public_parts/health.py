from __future__ import annotations

import logging
import os
import time
from typing import Any, Optional

from fastapi import APIRouter, Request

router = APIRouter()

log = logging.getLogger("ubi.http")


def _now_ms() -> int:
    return int(time.time() * 1000)


def _try_status(proc: Any) -> Optional[dict[str, Any]]:
    if proc is None:
        return None
    try:
        st = proc.status()
    except Exception:
        # health must never crash; readiness reports the failure
        log.exception("health_status_failed")
        return None
    return st if isinstance(st, dict) else None


def _health_payload(request: Request) -> dict[str, object]:
    proc = getattr(request.app.state, "processor", None)
    st = _try_status(proc)

    return {
        "ok": True,
        "service": "ubi-campaign",
        "version": "v1",
        "ts_ms": _now_ms(),
        "campaign_id": os.environ.get("UBI_CAMPAIGN_ID") or None,
        "processor_attached": proc is not None,
        "active": st.get("active") if st else None,
        "current_day": st.get("current_day") if st else None,
        "total_claims": st.get("total_claims") if st else None,
    }


@router.get("/v1/health")
def v1_health(request: Request) -> dict[str, object]:
    return _health_payload(request)


@router.get("/health")
def health(request: Request) -> dict[str, object]:
    # unversioned alias for ops tooling
    return _health_payload(request)


@router.get("/healthz")
def healthz(request: Request) -> dict[str, object]:
    # Kubernetes-style alias
    return _health_payload(request)


@router.get("/readyz")
def readyz(request: Request) -> dict[str, object]:
    """Readiness: ok only when a processor is attached and its ledger is readable."""
    proc = getattr(request.app.state, "processor", None)
    st = _try_status(proc)
    return {
        "ok": st is not None,
        "service": "ubi-campaign",
        "version": "v1",
        "ts_ms": _now_ms(),
        "active": st.get("active") if st else None,
    }
