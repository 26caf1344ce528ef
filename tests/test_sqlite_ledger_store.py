from __future__ import annotations

import multiprocessing as mp
from pathlib import Path

import pytest

from ubi.ledger.claims import ClaimLedger
from ubi.ledger.constants import ONE_DAY
from ubi.ledger.types import Campaign, DayBucket
from ubi.runtime.errors import TooSoon, TransferError
from ubi.runtime.identity import AccountRegistry
from ubi.runtime.interfaces import FixedClock
from ubi.runtime.processor import ClaimProcessor, genesis_state
from ubi.runtime.reserve import TokenReserve
from ubi.runtime.sqlite_db import SqliteDB, SqliteLedgerStore

START = 1_767_225_600
NOW = START + 3 * ONE_DAY
CAMPAIGN = Campaign(period_start=START, period_end=START + 30 * ONE_DAY, daily_rate=10, initial_reserve=1_000)


def _store(path: Path) -> SqliteLedgerStore:
    return SqliteLedgerStore(db=SqliteDB(path=str(path)))


def _processor(store: SqliteLedgerStore, reserve: int = 1_000) -> ClaimProcessor:
    reg = AccountRegistry()
    reg.register("0xalice", NOW - ONE_DAY)
    return ClaimProcessor(
        campaign=CAMPAIGN,
        store=store,
        registry=reg,
        disburser=TokenReserve(reserve),
        clock=FixedClock(NOW),
    )


def test_claims_survive_a_restart(tmp_path: Path) -> None:
    db_path = tmp_path / "ubi.db"
    first = _processor(_store(db_path))
    r = first.claim("0xalice")
    assert r.amount == 20

    # fresh store + processor over the same file
    second = _processor(_store(db_path))
    assert second.claim_record("0xalice").last_claimed_at == NOW  # type: ignore[union-attr]
    assert second.day_stats(3) == DayBucket(claimer_count=1, total_distributed=20)
    with pytest.raises(TooSoon):
        second.claim("0xalice")


def test_failed_update_rolls_back(tmp_path: Path) -> None:
    store = _store(tmp_path / "ubi.db")
    store.write(genesis_state(CAMPAIGN))
    before = store.read()

    def _boom(st: dict) -> None:
        ClaimLedger(st).record_claim("0xalice", NOW, 3, 20)
        raise RuntimeError("abort after mutation")

    with pytest.raises(RuntimeError):
        store.update(_boom)

    assert store.read() == before


def test_update_returns_the_mutation_result(tmp_path: Path) -> None:
    store = _store(tmp_path / "ubi.db")
    store.write(genesis_state(CAMPAIGN))
    assert store.update(lambda st: "done") == "done"


def test_transfer_failure_is_not_persisted(tmp_path: Path) -> None:
    db_path = tmp_path / "ubi.db"
    proc = _processor(_store(db_path), reserve=1)
    with pytest.raises(TransferError):
        proc.claim("0xalice")

    assert _store(db_path).read() == genesis_state(CAMPAIGN)


def test_missing_snapshot_is_reported(tmp_path: Path) -> None:
    store = _store(tmp_path / "ubi.db")
    assert store.exists() is False
    with pytest.raises(FileNotFoundError):
        store.read()


def _worker(db_path: str, worker: int, n: int) -> None:
    store = SqliteLedgerStore(db=SqliteDB(path=db_path))

    for i in range(int(n)):

        def _record(st: dict, i: int = i) -> None:
            ClaimLedger(st).record_claim(f"0xworker{worker}", START + i, 0, 1)

        store.update(_record)


def test_sqlite_ledger_store_update_is_cross_process_safe(tmp_path: Path) -> None:
    """Concurrent writers recording claims must not lose bucket increments."""
    db_path = str(tmp_path / "ubi.db")
    store = _store(Path(db_path))
    store.write(genesis_state(CAMPAIGN))

    procs: list[mp.Process] = []
    workers = 4
    per = 50

    for w in range(workers):
        pr = mp.Process(target=_worker, args=(db_path, w, per))
        pr.start()
        procs.append(pr)

    for pr in procs:
        pr.join(60)
        assert pr.exitcode == 0

    final = ClaimLedger(store.read())
    assert final.day_bucket(0) == DayBucket(claimer_count=workers * per, total_distributed=workers * per)
    assert final.totals()["total_claims"] == workers * per
