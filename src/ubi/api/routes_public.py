# src/ubi/api/routes_public.py
from __future__ import annotations

from fastapi import APIRouter

from ubi.api.routes_public_parts.claims import router as claims_router
from ubi.api.routes_public_parts.health import router as health_router
from ubi.api.routes_public_parts.metrics import router as metrics_router

public_router = APIRouter()

# Versioned API surface
public_router.include_router(health_router, prefix="", tags=["health"])
public_router.include_router(claims_router, prefix="/v1", tags=["claims"])

# Ops
public_router.include_router(metrics_router, prefix="/v1", tags=["metrics"])
