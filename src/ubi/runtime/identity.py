# src/ubi/runtime/identity.py
from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Any, Dict, Optional

from ubi.ledger.constants import DEFAULT_MIN_PRIVILEGED_TIER

Json = Dict[str, Any]


def _as_int(x: Any, default: int = 0) -> int:
    try:
        return int(x)
    except Exception:
        return int(default)


class AccountRegistry:
    """In-process identity registry.

    Accounts shape:
      {"<address>": {"registered_at": <int seconds>, "poh_tier": <int>, "banned": <bool>}}

    Privilege rule:
      - account exists and has a registration timestamp
      - poh_tier >= min_tier
      - not banned
    """

    def __init__(self, accounts: Optional[Json] = None, *, min_tier: int = DEFAULT_MIN_PRIVILEGED_TIER) -> None:
        self._lock = threading.Lock()
        self._accounts: Json = {}
        self.min_tier = int(min_tier)
        for addr, rec in (accounts or {}).items():
            if isinstance(rec, dict):
                self._accounts[str(addr)] = dict(rec)

    @classmethod
    def from_file(cls, path: str, *, min_tier: int = DEFAULT_MIN_PRIVILEGED_TIER) -> "AccountRegistry":
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        if not isinstance(raw, dict):
            raise ValueError("identity registry file must be a JSON object")
        accounts = raw.get("accounts", raw)
        if not isinstance(accounts, dict):
            raise ValueError("identity registry 'accounts' must be a JSON object")
        return cls(accounts, min_tier=min_tier)

    def _get(self, address: str) -> Json:
        with self._lock:
            rec = self._accounts.get(str(address))
            return dict(rec) if isinstance(rec, dict) else {}

    def register(self, address: str, registered_at: int, *, poh_tier: int = DEFAULT_MIN_PRIVILEGED_TIER) -> None:
        addr = str(address or "").strip()
        if not addr:
            raise ValueError("register requires an address")
        with self._lock:
            self._accounts[addr] = {"registered_at": int(registered_at), "poh_tier": int(poh_tier), "banned": False}

    def set_banned(self, address: str, banned: bool = True) -> None:
        with self._lock:
            rec = self._accounts.get(str(address))
            if isinstance(rec, dict):
                rec["banned"] = bool(banned)

    def registered_at(self, address: str) -> Optional[int]:
        v = self._get(address).get("registered_at")
        return None if v is None else _as_int(v)

    def poh_tier(self, address: str) -> int:
        return _as_int(self._get(address).get("poh_tier"), 0)

    def is_privileged(self, address: str) -> bool:
        acct = self._get(address)
        if not acct or acct.get("registered_at") is None:
            return False
        if bool(acct.get("banned", False)):
            return False
        return _as_int(acct.get("poh_tier"), 0) >= self.min_tier
