"""Thread-safe in-memory persistence adapter.

Stands in for the remote datastore behind the PersistencePort: answers,
provider bindings and wallet bindings, all keyed by the subject identity.
Every upsert replaces the previous record for its key, so repeated
identical calls are idempotent.
"""

import threading
from typing import Any, Optional


class MemoryStore:
    def __init__(self):
        self._lock = threading.Lock()
        self._answers: dict[str, dict[str, Any]] = {}                # identity → answers
        self._bindings: dict[tuple[str, str], dict[str, Any]] = {}  # (identity, provider) → fields
        self._wallets: dict[str, str] = {}                           # identity → address

    async def upsert_answers(self, identity: str, answers: dict[str, Any]) -> None:
        with self._lock:
            self._answers[identity] = dict(answers)

    async def upsert_binding(self, identity: str, provider_id: str, fields: dict[str, Any]) -> None:
        with self._lock:
            self._bindings[(identity, provider_id)] = dict(fields)

    async def upsert_wallet(self, identity: str, address: str) -> None:
        with self._lock:
            self._wallets[identity] = address

    async def fetch_binding_status(self, identity: str, provider_id: str) -> Optional[dict[str, Any]]:
        with self._lock:
            fields = self._bindings.get((identity, provider_id))
        return dict(fields) if fields is not None else None

    async def fetch_answers(self, identity: str) -> Optional[dict[str, Any]]:
        with self._lock:
            answers = self._answers.get(identity)
        return dict(answers) if answers is not None else None

    def wallet_for(self, identity: str) -> Optional[str]:
        with self._lock:
            return self._wallets.get(identity)

    def counts(self) -> dict[str, int]:
        """Record counts per collection."""
        with self._lock:
            return {
                "answers": len(self._answers),
                "bindings": len(self._bindings),
                "wallets": len(self._wallets),
            }

    def reset(self) -> None:
        """Clear all state. Used for testing and session resets."""
        with self._lock:
            self._answers.clear()
            self._bindings.clear()
            self._wallets.clear()
