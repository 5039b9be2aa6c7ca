"""Contracts for the external collaborators the onboarding core talks to.

The core only depends on these protocols. Failures are raised as
``PersistenceError`` / ``AuthorizationError``; a wallet bridge may raise
either. Upserts must be idempotent under repeated identical calls.
"""

from typing import Any, Callable, Optional, Protocol, Sequence

from pydantic import BaseModel, ConfigDict


class ProviderIdentity(BaseModel):
    """Identity record issued by a provider after a successful authorization."""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    external_id: str
    external_username: str
    avatar_url: Optional[str] = None


class PersistencePort(Protocol):
    async def upsert_answers(self, identity: str, answers: dict[str, Any]) -> None: ...

    async def upsert_binding(self, identity: str, provider_id: str, fields: dict[str, Any]) -> None: ...

    async def upsert_wallet(self, identity: str, address: str) -> None: ...

    async def fetch_binding_status(self, identity: str, provider_id: str) -> Optional[dict[str, Any]]: ...

    async def fetch_answers(self, identity: str) -> Optional[dict[str, Any]]: ...


class IdentityProviderPort(Protocol):
    async def authorize(self, provider_id: str) -> ProviderIdentity:
        """User-interactive authorization; a closed prompt raises AuthorizationError."""
        ...


AccountsListener = Callable[[Sequence[str]], None]


class WalletBridge(Protocol):
    async def request_accounts(self) -> list[str]: ...

    def subscribe(self, listener: AccountsListener) -> Callable[[], None]:
        """Register for ``accountsChanged`` pushes; returns an unsubscribe callable."""
        ...


class NavigationPort(Protocol):
    def go(self, destination: str, payload: dict[str, Any]) -> None: ...
