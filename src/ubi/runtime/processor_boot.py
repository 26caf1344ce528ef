# src/ubi/runtime/processor_boot.py

from __future__ import annotations

import logging
from typing import Optional

from ubi.runtime.campaign_config import CampaignConfig, load_campaign_config
from ubi.runtime.event_logging import log_event
from ubi.runtime.identity import AccountRegistry
from ubi.runtime.interfaces import Clock, LedgerStore
from ubi.runtime.memory_store import MemoryLedgerStore
from ubi.runtime.processor import ClaimProcessor
from ubi.runtime.reserve import TokenReserve
from ubi.runtime.sqlite_db import SqliteDB, SqliteLedgerStore

log = logging.getLogger("ubi.boot")


def build_store(cfg: CampaignConfig) -> LedgerStore:
    path = (cfg.db_path or "").strip()
    if not path or path == ":memory:":
        return MemoryLedgerStore()
    return SqliteLedgerStore(db=SqliteDB(path=path))


def build_registry(cfg: CampaignConfig) -> AccountRegistry:
    if cfg.identity_path:
        return AccountRegistry.from_file(cfg.identity_path, min_tier=cfg.min_privileged_tier)
    return AccountRegistry(min_tier=cfg.min_privileged_tier)


def build_processor(cfg: Optional[CampaignConfig] = None, *, clock: Optional[Clock] = None) -> ClaimProcessor:
    """
    Build a ClaimProcessor from an explicit config or, if omitted, from
    UBI_CAMPAIGN_CONFIG_PATH / defaults.

    `ubi.api.app` calls this with no args in production.
    """
    c = cfg or load_campaign_config()
    campaign = c.campaign()
    store = build_store(c)

    # The built-in reserve is not persisted; rebuild it from what the ledger
    # already paid out in claims and in the close-out sweep.
    distributed = 0
    if store.exists():
        st = store.read()
        distributed = int(st.get("total_distributed", 0) or 0) + int(st.get("swept", 0) or 0)

    proc = ClaimProcessor(
        campaign=campaign,
        store=store,
        registry=build_registry(c),
        disburser=TokenReserve(max(0, campaign.initial_reserve - distributed)),
        clock=clock,
    )
    log_event(
        log,
        "processor_booted",
        campaign_id=c.campaign_id,
        mode=c.mode,
        db_path=c.db_path or ":memory:",
        **campaign.to_dict(),
    )
    return proc
