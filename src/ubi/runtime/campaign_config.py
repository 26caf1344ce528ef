# src/ubi/runtime/campaign_config.py
from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from ubi.ledger.constants import COIN, DEFAULT_MIN_PRIVILEGED_TIER, ONE_DAY
from ubi.ledger.types import Campaign
from ubi.runtime.errors import ConfigurationError

Json = Dict[str, Any]


def _as_int(v: Any, default: int) -> int:
    if v is None:
        return int(default)
    if isinstance(v, bool):
        raise ConfigurationError("invalid_config", "bool_is_not_an_int", {"value": v})
    try:
        return int(v)
    except Exception as e:
        raise ConfigurationError("invalid_config", "value_must_be_int", {"value": repr(v)}) from e


def _as_str(v: Any, default: str) -> str:
    if v is None:
        return str(default)
    s = str(v)
    return s if s.strip() else str(default)


@dataclass(frozen=True)
class CampaignConfig:
    campaign_id: str
    mode: str  # "dev" | "testnet" | "prod"

    period_start: int
    period_end: int
    daily_rate: int
    initial_reserve: int

    # Empty db_path keeps the claim ledger in memory.
    db_path: str
    identity_path: str
    min_privileged_tier: int

    api_host: str
    api_port: int

    log_level: str

    def campaign(self) -> Campaign:
        return Campaign(
            period_start=self.period_start,
            period_end=self.period_end,
            daily_rate=self.daily_rate,
            initial_reserve=self.initial_reserve,
        )


_ALLOWED_MODES = {"dev", "testnet", "prod"}


def validate_campaign_config(cfg: CampaignConfig) -> None:
    """Fail-fast validation. A campaign that fails here never becomes operational."""

    def _bad(reason: str, **details: Any) -> ConfigurationError:
        return ConfigurationError("invalid_config", reason, details)

    if not isinstance(cfg.campaign_id, str) or not cfg.campaign_id.strip():
        raise _bad("campaign_id_must_be_non_empty")

    mode = str(cfg.mode or "").strip().lower()
    if mode not in _ALLOWED_MODES:
        raise _bad("unknown_mode", mode=cfg.mode, allowed=sorted(_ALLOWED_MODES))

    if int(cfg.initial_reserve) <= 0:
        raise _bad("initial_reserve_must_be_positive", initial_reserve=cfg.initial_reserve)

    if int(cfg.min_privileged_tier) < 0:
        raise _bad("min_privileged_tier_must_not_be_negative", min_privileged_tier=cfg.min_privileged_tier)

    if int(cfg.api_port) <= 0 or int(cfg.api_port) > 65535:
        raise _bad("api_port_out_of_range", api_port=cfg.api_port)

    if cfg.identity_path and not Path(cfg.identity_path).is_file():
        raise _bad("identity_path_not_a_file", identity_path=cfg.identity_path)

    # period ordering and daily_rate > 0
    cfg.campaign()


def default_campaign_config() -> CampaignConfig:
    start = 1_767_225_600  # 2026-01-01T00:00:00Z
    return CampaignConfig(
        campaign_id="ubi-dev",
        # Without an explicit config file, stay in the strict posture.
        mode="prod",
        period_start=start,
        period_end=start + 365 * ONE_DAY,
        daily_rate=1 * COIN,
        initial_reserve=1_000_000 * COIN,
        db_path="./data/ubi.db",
        identity_path="",
        min_privileged_tier=DEFAULT_MIN_PRIVILEGED_TIER,
        api_host="127.0.0.1",
        api_port=8080,
        log_level="INFO",
    )


def _read_raw(path: Path) -> Json:
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in {".yaml", ".yml"}:
        raw = yaml.safe_load(text)
    else:
        raw = json.loads(text)
    if not isinstance(raw, dict):
        raise ConfigurationError("invalid_config", "config_must_be_an_object", {"path": str(path)})
    return raw


def read_campaign_config_file(path: str) -> CampaignConfig:
    raw = _read_raw(Path(path))
    d = default_campaign_config()

    cfg = CampaignConfig(
        campaign_id=_as_str(raw.get("campaign_id"), d.campaign_id),
        mode=_as_str(raw.get("mode"), d.mode).strip().lower(),
        period_start=_as_int(raw.get("period_start"), d.period_start),
        period_end=_as_int(raw.get("period_end"), d.period_end),
        daily_rate=_as_int(raw.get("daily_rate"), d.daily_rate),
        initial_reserve=_as_int(raw.get("initial_reserve"), d.initial_reserve),
        db_path=str(raw["db_path"]) if raw.get("db_path") is not None else d.db_path,
        identity_path=_as_str(raw.get("identity_path"), d.identity_path),
        min_privileged_tier=_as_int(raw.get("min_privileged_tier"), d.min_privileged_tier),
        api_host=_as_str(raw.get("api_host"), d.api_host),
        api_port=_as_int(raw.get("api_port"), d.api_port),
        log_level=_as_str(raw.get("log_level"), d.log_level),
    )

    validate_campaign_config(cfg)
    return cfg


def load_campaign_config(*, config_path: Optional[str] = None) -> CampaignConfig:
    p = config_path or os.environ.get("UBI_CAMPAIGN_CONFIG_PATH")
    if p:
        return read_campaign_config_file(p)

    cfg = default_campaign_config()
    validate_campaign_config(cfg)
    return cfg


def apply_campaign_config_to_env(cfg: CampaignConfig) -> None:
    validate_campaign_config(cfg)
    os.environ["UBI_CAMPAIGN_ID"] = cfg.campaign_id
    os.environ["UBI_MODE"] = (cfg.mode or "prod").strip().lower()
    os.environ["UBI_DB_PATH"] = cfg.db_path
    os.environ["UBI_API_HOST"] = cfg.api_host
    os.environ["UBI_API_PORT"] = str(int(cfg.api_port))
    os.environ["UBI_LOG_LEVEL"] = cfg.log_level
