from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from ubi.api.errors import ApiError
from ubi.api.routes_public_parts.common import _address_param, _processor
from ubi.api.schemas import ClaimRequest, ClaimResponse, DayBucketResponse, EntitlementResponse

router = APIRouter()

Json = Dict[str, Any]


@router.post("/claims", response_model=ClaimResponse)
def claims_submit(body: ClaimRequest, request: Request) -> Json:
    """Claim the caller's accrued entitlement.

    Errors:
      403 outside_window | not_privileged
      409 too_soon
      502 transfer_failed
    """
    proc = _processor(request)
    receipt = proc.claim(_address_param(body.address))
    return {"ok": True, **receipt.to_dict()}


@router.get("/claims/{address}/entitlement", response_model=EntitlementResponse)
def claims_entitlement(address: str, request: Request) -> Json:
    proc = _processor(request)
    addr = _address_param(address)
    now = proc.clock_now()
    return {"ok": True, "address": addr, "now": now, "entitlement": proc.check_entitlement(addr, now)}


@router.get("/claims/{address}")
def claims_record(address: str, request: Request) -> Json:
    proc = _processor(request)
    addr = _address_param(address)
    rec = proc.claim_record(addr)
    return {
        "ok": True,
        "address": addr,
        "last_claimed_at": rec.last_claimed_at if rec is not None else None,
        "registered_at": proc.registry.registered_at(addr),
        "privileged": bool(proc.registry.is_privileged(addr)),
    }


@router.get("/days/current", response_model=DayBucketResponse)
def days_current(request: Request) -> Json:
    proc = _processor(request)
    day = proc.current_day_index()
    if day is None:
        return {"ok": True, "day": None, "claimer_count": 0, "total_distributed": 0}
    return {"ok": True, "day": day, **proc.day_stats(day).to_dict()}


@router.get("/days/{day}", response_model=DayBucketResponse)
def days_get(day: int, request: Request) -> Json:
    if day < 0:
        raise ApiError.bad_request("invalid_day", "day index must be >= 0", {"day": day})
    proc = _processor(request)
    return {"ok": True, "day": day, **proc.day_stats(day).to_dict()}


@router.get("/campaign")
def campaign_status(request: Request) -> Json:
    proc = _processor(request)
    return {"ok": True, **proc.status()}
