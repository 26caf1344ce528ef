#!/usr/bin/env python3

"""Production-ish smoke test for the UBI campaign service.

It verifies:
  - the processor boots on a fresh SQLite db from a campaign config file
  - the FastAPI app serves /health + /readyz
  - a registered address can claim once and is refused a second time

Usage:
  python3 scripts/smoke_claim.py
"""

from __future__ import annotations

import json
import os
import tempfile
import time

from fastapi.testclient import TestClient

from ubi.api.app import create_app
from ubi.ledger.constants import ONE_DAY


def main() -> int:
    now = int(time.time())

    with tempfile.TemporaryDirectory(prefix="ubi-smoke-") as td:
        identities = os.path.join(td, "identities.json")
        with open(identities, "w", encoding="utf-8") as f:
            json.dump({"accounts": {"0xsmoke": {"registered_at": now - 2 * ONE_DAY, "poh_tier": 1}}}, f)

        config = os.path.join(td, "campaign.json")
        with open(config, "w", encoding="utf-8") as f:
            json.dump(
                {
                    "campaign_id": "ubi-smoke",
                    "mode": "dev",
                    "period_start": now - ONE_DAY,
                    "period_end": now + 30 * ONE_DAY,
                    "daily_rate": 100,
                    "initial_reserve": 1_000_000,
                    "db_path": os.path.join(td, "ubi.db"),
                    "identity_path": identities,
                },
                f,
            )

        os.environ["UBI_CAMPAIGN_CONFIG_PATH"] = config
        os.environ.setdefault("UBI_MODE", "dev")

        c = TestClient(create_app(boot_runtime=True))

        r = c.get("/health")
        print("health:", r.status_code, r.json())
        if r.status_code != 200:
            return 2

        r = c.get("/readyz")
        print("readyz:", r.status_code, r.json())
        if not r.json().get("ok"):
            return 3

        r = c.post("/v1/claims", json={"address": "0xsmoke"})
        print("claim:", r.status_code, r.json())
        if r.status_code != 200 or int(r.json().get("amount", 0)) <= 0:
            return 4

        r = c.post("/v1/claims", json={"address": "0xsmoke"})
        print("second claim:", r.status_code, r.json())
        if r.status_code != 409:
            return 5

    print("OK")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
