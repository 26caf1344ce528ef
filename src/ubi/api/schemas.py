"""Pydantic request/response schemas for the public API.

These exist only for HTTP input validation and UX stability; the ledger's
own value objects live in ubi.ledger.types.
"""

from typing import Optional

from pydantic import BaseModel, Field


class ClaimRequest(BaseModel):
    address: str = Field(..., min_length=1, description="Claiming address, e.g. 0xabc...")

    # Any extra fields are ignored (forward compatible)
    model_config = {"extra": "allow"}


class ClaimResponse(BaseModel):
    ok: bool = True
    address: str
    amount: int
    claimed_at: int
    day_index: int
    claim_days: int


class EntitlementResponse(BaseModel):
    ok: bool = True
    address: str
    now: int
    entitlement: int


class DayBucketResponse(BaseModel):
    ok: bool = True
    day: Optional[int] = Field(default=None, description="Zero-based day index; null before the campaign starts")
    claimer_count: int = 0
    total_distributed: int = 0
