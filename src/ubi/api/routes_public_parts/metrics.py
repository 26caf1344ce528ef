from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request, Response

from ubi.api.errors import ApiError
from ubi.runtime.metrics import format_prometheus, metrics_enabled, set_gauge, snapshot

router = APIRouter()

Json = Dict[str, Any]


def _refresh_ledger_gauges(request: Request) -> None:
    # counters are pushed by the processor; ledger totals are pulled at scrape time
    proc = getattr(request.app.state, "processor", None)
    if proc is None:
        return
    st = proc.status()
    set_gauge("ledger_total_claims", int(st.get("total_claims") or 0))
    set_gauge("ledger_total_distributed", int(st.get("total_distributed") or 0))
    if isinstance(st.get("reserve"), int):
        set_gauge("reserve_remaining", st["reserve"])


@router.get("/metrics")
def metrics(request: Request) -> Response:
    """Claim metrics in Prometheus text format.

    Counters: claims_settled, claims_rejected_<code>, distributed_total,
    transfers_reversed, transfers_unreconciled, sink_failures.
    Gauges: current_day, ledger_total_claims, ledger_total_distributed,
    reserve_remaining.

    Disabled by default. Enable with UBI_METRICS_ENABLED=1.
    """
    if not metrics_enabled():
        return Response(status_code=404, content="not_found\n", media_type="text/plain")
    _refresh_ledger_gauges(request)
    return Response(content=format_prometheus(), media_type="text/plain")


@router.get("/metrics/json")
def metrics_json(request: Request) -> Json:
    if not metrics_enabled():
        raise ApiError.not_found("metrics_disabled", "set UBI_METRICS_ENABLED=1", {})
    _refresh_ledger_gauges(request)
    return {"ok": True, **snapshot()}
