# src/ubi/ledger/constants.py
from __future__ import annotations

"""Campaign accrual constants.

- Time is measured in whole seconds.
- One accrual day is 86,400 seconds; leap seconds are ignored.
- A single claim pays for at most 7 days and at least 1 day.
"""

ONE_DAY: int = 86_400

MIN_CLAIM_DAYS: int = 1
MAX_CLAIM_DAYS: int = 7

# Token precision (1 UBI = 1e2 units)
COIN_DECIMALS: int = 2
COIN: int = 10**COIN_DECIMALS

# Amounts live in the uint256 domain of the token ledger.
MAX_AMOUNT: int = 2**256 - 1

# Minimum identity tier that grants claim privilege.
DEFAULT_MIN_PRIVILEGED_TIER: int = 1
