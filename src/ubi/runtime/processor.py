# src/ubi/runtime/processor.py
from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List, Optional

from ubi.ledger.claims import ClaimLedger
from ubi.ledger.day_index import day_index
from ubi.ledger.entitlement import accrued_days, compute_entitlement, preview_entitlement
from ubi.ledger.state import LedgerView
from ubi.ledger.types import Campaign, ClaimReceipt, ClaimRecord, ClaimSettled, DayBucket
from ubi.runtime.errors import ClaimError, NotPrivileged, OutsideWindow, TransferError
from ubi.runtime.event_logging import log_event
from ubi.runtime.interfaces import Clock, ClaimSink, Disburser, IdentityRegistry, LedgerStore, SystemClock
from ubi.runtime.metrics import inc_counter, set_gauge

Json = Dict[str, Any]

log = logging.getLogger("ubi.claims")


def genesis_state(campaign: Campaign) -> Json:
    return {
        "campaign": campaign.to_dict(),
        "claims": {},
        "days": {},
        "current_day": None,
        "total_claims": 0,
        "total_distributed": 0,
        "closed_at": None,
        "swept": 0,
    }


class ClaimProcessor:
    """Orchestrates claim attempts against one campaign.

    Claim gates, in order (first failure aborts with no mutation):
      1) active window      -> OutsideWindow
      2) privilege          -> NotPrivileged
      3) entitlement        -> TooSoon
      4) disbursement       -> TransferError
      5) ledger commit
      6) ClaimSettled signal

    Steps 3-5 run inside one store.update() so the record read, the
    transfer and the ledger write are a single unit: a failed transfer
    publishes nothing. If the store fails to commit after the transfer
    went through, the transfer is refunded through disburser.refund() and
    the claim fails with TransferError.

    Sink failures in step 6 are logged, never raised: the claim has settled.
    """

    def __init__(
        self,
        *,
        campaign: Campaign,
        store: LedgerStore,
        registry: IdentityRegistry,
        disburser: Disburser,
        clock: Optional[Clock] = None,
        sinks: Optional[List[ClaimSink]] = None,
    ) -> None:
        self.campaign = campaign
        self._store = store
        self._registry = registry
        self._disburser = disburser
        self._clock: Clock = clock or SystemClock()
        self._sinks: List[ClaimSink] = list(sinks or [])
        self._lock = threading.Lock()

        if not self._store.exists():
            self._store.write(genesis_state(campaign))
        else:
            stored = self._store.read().get("campaign")
            if isinstance(stored, dict) and Campaign.from_dict(stored) != campaign:
                raise RuntimeError(
                    "ledger belongs to a different campaign; refuse to start to avoid corrupting data"
                )

    # ---- wiring ----

    @property
    def disburser(self) -> Disburser:
        return self._disburser

    @property
    def registry(self) -> IdentityRegistry:
        return self._registry

    def subscribe(self, sink: ClaimSink) -> None:
        self._sinks.append(sink)

    def clock_now(self) -> int:
        return int(self._clock.now())

    def _now(self, now: Optional[int]) -> int:
        return self.clock_now() if now is None else int(now)

    # ---- gates ----

    def _require_window(self, now: int) -> None:
        c = self.campaign
        if not c.is_active(now):
            raise OutsideWindow(
                "outside_window",
                "claim_outside_campaign_period",
                {"now": now, "period_start": c.period_start, "period_end": c.period_end},
            )

    def _require_privilege(self, address: str) -> None:
        if not self._registry.is_privileged(address):
            raise NotPrivileged("not_privileged", "caller_lacks_claim_privilege", {"address": address})

    # ---- mutating path ----

    def claim(self, address: str, now: Optional[int] = None) -> ClaimReceipt:
        addr = str(address or "").strip()
        ts = self._now(now)
        try:
            if not addr:
                raise NotPrivileged("not_privileged", "missing_address", {})
            self._require_window(ts)
            self._require_privilege(addr)
            registered_at = self._registry.registered_at(addr)
            day = day_index(ts, self.campaign.period_start)
            paid: List[int] = []

            def _settle(st: Json) -> ClaimReceipt:
                ledger = ClaimLedger(st)
                rec = ledger.get(addr)
                last = rec.last_claimed_at if rec is not None else None
                amount = compute_entitlement(ts, last, registered_at, self.campaign.daily_rate)
                self._transfer(addr, amount)
                paid.append(amount)
                ledger.record_claim(addr, ts, day, amount)
                return ClaimReceipt(
                    address=addr,
                    amount=amount,
                    claimed_at=ts,
                    day_index=day,
                    claim_days=accrued_days(ts, last, registered_at),
                )

            with self._lock:
                try:
                    receipt = self._store.update(_settle)
                except Exception as e:
                    if not paid:
                        raise
                    # tokens moved but the ledger did not commit: take them back
                    reason = self._reverse(addr, paid[0], e, event="claim")
                    raise TransferError(
                        "transfer_failed", reason, {"to": addr, "amount": paid[0], "error": str(e)}
                    ) from e
        except ClaimError as e:
            inc_counter(f"claims_rejected_{e.code}")
            log_event(log, "claim_rejected", level=logging.WARNING, address=addr, now=ts, code=e.code, reason=e.reason)
            raise

        inc_counter("claims_settled")
        inc_counter("distributed_total", receipt.amount)
        set_gauge("current_day", receipt.day_index)
        log_event(log, "claim_settled", **receipt.to_dict())

        self._emit(ClaimSettled(claimer=receipt.address, amount=receipt.amount))
        return receipt

    def _transfer(self, addr: str, amount: int) -> None:
        try:
            self._disburser.transfer(addr, amount)
        except TransferError:
            raise
        except Exception as e:
            raise TransferError("transfer_failed", "disburser_error", {"to": addr, "amount": amount, "error": str(e)}) from e

    def _reverse(self, addr: str, amount: int, cause: BaseException, *, event: str) -> str:
        """Refund `amount` from `addr` after a failed ledger commit.

        Returns the TransferError reason the caller should raise with.
        """
        refund = getattr(self._disburser, "refund", None)
        if not callable(refund):
            inc_counter("transfers_unreconciled")
            log_event(
                log, f"{event}_unreconciled", level=logging.ERROR,
                address=addr, amount=amount, error=str(cause), refund_error="disburser_cannot_refund",
            )
            return "ledger_commit_failed_unreversed"
        try:
            refund(addr, amount)
        except Exception as e:
            inc_counter("transfers_unreconciled")
            log_event(
                log, f"{event}_unreconciled", level=logging.ERROR,
                address=addr, amount=amount, error=str(cause), refund_error=str(e),
            )
            return "ledger_commit_failed_unreversed"
        inc_counter("transfers_reversed")
        log_event(log, f"{event}_reversed", level=logging.WARNING, address=addr, amount=amount, error=str(cause))
        return "ledger_commit_failed"

    def _emit(self, evt: ClaimSettled) -> None:
        # the claim is already committed; a failing sink must not turn it into an error
        for sink in list(self._sinks):
            try:
                sink(evt)
            except Exception as e:
                inc_counter("sink_failures")
                log_event(
                    log, "claim_sink_failed", level=logging.ERROR,
                    claimer=evt.claimer, amount=evt.amount, sink=repr(sink), error=str(e),
                )

    def close(self, recipient: str, now: Optional[int] = None) -> int:
        """Sweep the remaining reserve to `recipient` once the campaign has ended.

        The close-out is recorded in the ledger (closed_at, swept) so it
        happens at most once, across restarts too. A second call returns 0.
        """
        dest = str(recipient or "").strip()
        ts = self._now(now)
        if ts <= self.campaign.period_end:
            raise OutsideWindow(
                "outside_window",
                "campaign_still_running",
                {"now": ts, "period_end": self.campaign.period_end},
            )
        sweep = getattr(self._disburser, "sweep", None)
        if not callable(sweep):
            raise TransferError("transfer_failed", "disburser_cannot_sweep", {"recipient": dest})

        moved: List[int] = []

        def _close(st: Json) -> Optional[int]:
            ledger = ClaimLedger(st)
            if ledger.closed_at is not None:
                return None
            amount = int(sweep(dest))
            moved.append(amount)
            ledger.record_close(ts, amount)
            return amount

        with self._lock:
            try:
                out = self._store.update(_close)
            except Exception as e:
                if not moved or moved[0] <= 0:
                    raise
                reason = self._reverse(dest, moved[0], e, event="close")
                raise TransferError(
                    "transfer_failed", reason, {"recipient": dest, "amount": moved[0], "error": str(e)}
                ) from e

        if out is None:
            log_event(log, "campaign_already_closed", level=logging.WARNING, recipient=dest, now=ts)
            return 0
        log_event(log, "campaign_closed", recipient=dest, amount=out, now=ts)
        return out

    # ---- read-only path ----

    def snapshot(self) -> Json:
        return self._store.read()

    def view(self) -> LedgerView:
        return LedgerView.from_ledger(self._store.read())

    def check_entitlement(self, address: str, now: Optional[int] = None) -> int:
        """Amount `address` could claim at `now`. Never mutates, never raises TooSoon.

        Returns 0 outside the campaign window. An address with no registration
        record is previewed from a `now - 1 day` baseline even though the
        claim path would reject it as not privileged.
        """
        addr = str(address or "").strip()
        ts = self._now(now)
        if not addr or not self.campaign.is_active(ts):
            return 0
        last = self.view().last_claimed_at(addr)
        return preview_entitlement(ts, last, self._registry.registered_at(addr), self.campaign.daily_rate)

    def claim_record(self, address: str) -> Optional[ClaimRecord]:
        last = self.view().last_claimed_at(str(address or "").strip())
        return None if last is None else ClaimRecord(last_claimed_at=last)

    def day_stats(self, day: int) -> DayBucket:
        return self.view().day_bucket(day)

    def current_day_index(self, now: Optional[int] = None) -> Optional[int]:
        ts = self._now(now)
        if ts < self.campaign.period_start:
            return None
        return day_index(ts, self.campaign.period_start)

    def status(self, now: Optional[int] = None) -> Json:
        ts = self._now(now)
        v = self.view()
        reserve = getattr(self._disburser, "reserve", None)
        return {
            "now": ts,
            "active": self.campaign.is_active(ts),
            "campaign": self.campaign.to_dict(),
            "current_day": self.current_day_index(ts),
            "last_recorded_day": v.current_day,
            "total_claims": v.total_claims,
            "total_distributed": v.total_distributed,
            "closed_at": v.closed_at,
            "swept": v.swept,
            "reserve": int(reserve) if isinstance(reserve, int) else None,
        }
