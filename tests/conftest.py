"""Shared fakes for the onboarding ports."""

import asyncio

import pytest

from errors import AuthorizationError, PersistenceError
from ports.contracts import ProviderIdentity
from workers.memory_store import MemoryStore


class RecordingNavigator:
    def __init__(self):
        self.calls = []

    def go(self, destination, payload):
        self.calls.append((destination, payload))


class FlakyStore(MemoryStore):
    """MemoryStore that fails the next N calls of a method, or parks them on a gate."""

    def __init__(self):
        super().__init__()
        self.failures = {}   # method name → remaining failures
        self.gates = {}      # method name → asyncio.Event to wait on
        self.calls = []

    async def _checkpoint(self, method):
        self.calls.append(method)
        gate = self.gates.get(method)
        if gate is not None:
            await gate.wait()
        if self.failures.get(method, 0) > 0:
            self.failures[method] -= 1
            raise PersistenceError(f"{method} unavailable")

    async def upsert_answers(self, identity, answers):
        await self._checkpoint("upsert_answers")
        await super().upsert_answers(identity, answers)

    async def upsert_binding(self, identity, provider_id, fields):
        await self._checkpoint("upsert_binding")
        await super().upsert_binding(identity, provider_id, fields)

    async def upsert_wallet(self, identity, address):
        await self._checkpoint("upsert_wallet")
        await super().upsert_wallet(identity, address)

    async def fetch_binding_status(self, identity, provider_id):
        await self._checkpoint("fetch_binding_status")
        return await super().fetch_binding_status(identity, provider_id)


class ScriptedIdentityProvider:
    """Returns queued outcomes per provider; a default identity when the queue is empty."""

    def __init__(self):
        self.outcomes = {}
        self.calls = []

    def queue(self, provider_id, *outcomes):
        self.outcomes.setdefault(provider_id, []).extend(outcomes)

    async def authorize(self, provider_id):
        self.calls.append(provider_id)
        await asyncio.sleep(0)
        pending = self.outcomes.get(provider_id)
        outcome = pending.pop(0) if pending else None
        if isinstance(outcome, Exception):
            raise outcome
        return outcome or identity_for(provider_id)


class ScriptedWallet:
    def __init__(self, accounts=None):
        self.accounts = accounts if accounts is not None else ["0xabc"]
        self.error = None
        self.listeners = []

    async def request_accounts(self):
        await asyncio.sleep(0)
        if self.error:
            raise self.error
        return list(self.accounts)

    def subscribe(self, listener):
        self.listeners.append(listener)
        return lambda: self.listeners.remove(listener)

    def emit(self, accounts):
        for listener in list(self.listeners):
            listener(accounts)


def identity_for(provider_id):
    return ProviderIdentity(
        external_id=f"{provider_id}-42",
        external_username=f"ada-{provider_id}",
        avatar_url=f"https://{provider_id}.example/ada.png",
    )


def auth_denied(provider_id="github"):
    return AuthorizationError(f"{provider_id} authorization was denied")


@pytest.fixture
def navigator():
    return RecordingNavigator()


@pytest.fixture
def store():
    return FlakyStore()


@pytest.fixture
def idp():
    return ScriptedIdentityProvider()


@pytest.fixture
def wallet():
    return ScriptedWallet()
