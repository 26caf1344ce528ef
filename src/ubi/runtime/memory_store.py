from __future__ import annotations

import copy
import threading
from typing import Any, Callable, Dict, Optional

Json = Dict[str, Any]


class MemoryLedgerStore:
    """In-memory ledger snapshot store with the same contract as SqliteLedgerStore.

    update() runs the mutation on a private deep copy and publishes it only
    when the mutation returns normally, so a raising mutation leaves the
    stored snapshot untouched.
    """

    def __init__(self, initial: Optional[Json] = None) -> None:
        self._lock = threading.RLock()
        self._state: Optional[Json] = copy.deepcopy(initial) if initial is not None else None

    def exists(self) -> bool:
        with self._lock:
            return self._state is not None

    def read(self) -> Json:
        with self._lock:
            if self._state is None:
                raise FileNotFoundError("memory ledger_state is missing")
            return copy.deepcopy(self._state)

    def write(self, st: Json) -> None:
        if not isinstance(st, dict):
            raise ValueError("ledger write expects dict")
        with self._lock:
            self._state = copy.deepcopy(st)

    def update(self, mut: Callable[[Json], Any]) -> Any:
        with self._lock:
            if self._state is None:
                raise FileNotFoundError("memory ledger_state is missing")
            work = copy.deepcopy(self._state)
            out = mut(work)
            if not isinstance(work, dict):
                raise ValueError("ledger_state is not a JSON object")
            self._state = work
            return out
