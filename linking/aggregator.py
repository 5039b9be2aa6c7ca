"""Account linking aggregator — per-provider link lifecycles plus a wallet.

Every provider runs its own lifecycle:

    unlinked → linking → linked
                linking → failed → linking (retry) | unlinked (dismiss)

A provider is only ``linked`` once the identity provider authorized AND the
binding was durably recorded. Connects for different providers are
independent; a second connect for a provider that is still ``linking`` is
rejected with AlreadyInProgress. The aggregate flag is computed on every read.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence

from config import AUTHORIZE_TIMEOUT_SECONDS, PERSISTENCE_TIMEOUT_SECONDS
from errors import (
    AlreadyInProgress,
    AuthorizationError,
    InvalidOperation,
    OnboardingError,
    PersistenceError,
)
from linking.providers import Provider, build_registry
from linking.state import LinkState, LinkStatus
from ports.contracts import (
    IdentityProviderPort,
    NavigationPort,
    PersistencePort,
    ProviderIdentity,
    WalletBridge,
)
from ports.guard import call_port

PROFILE_DESTINATION = "profile"


class LinkAggregator:
    """Linking session for one subject identity (the email from the wizard)."""

    def __init__(
        self,
        identity: str,
        persistence: PersistencePort,
        identity_provider: IdentityProviderPort,
        wallet_bridge: WalletBridge,
        navigator: NavigationPort,
        *,
        registry: Optional[Dict[str, Provider]] = None,
        name: Optional[str] = None,
        authorize_timeout: float = AUTHORIZE_TIMEOUT_SECONDS,
        persistence_timeout: float = PERSISTENCE_TIMEOUT_SECONDS,
    ):
        self.identity = identity
        self.registry = registry if registry is not None else build_registry()
        self.name = name
        self.authorize_timeout = authorize_timeout
        self.persistence_timeout = persistence_timeout
        self.state = LinkState(
            provider_statuses={pid: LinkStatus.UNLINKED for pid in self.registry},
        )
        self._persistence = persistence
        self._idp = identity_provider
        self._wallet = wallet_bridge
        self._navigator = navigator
        self._wallet_generation = 0
        self._wallet_request: Optional[asyncio.Future] = None  # in-flight account request
        self._tasks: set[asyncio.Task] = set()
        self._unsubscribe = None
        self._closed = False

    # ── Aggregate views ────────────────────────────────────────────────
    @property
    def is_fully_linked(self) -> bool:
        return (
            all(s is LinkStatus.LINKED for s in self.state.provider_statuses.values())
            and self.state.wallet_status is LinkStatus.LINKED
        )

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def greeting(self) -> str:
        if self.name:
            return f"Hey, {self.name}! Let's connect your socials"
        return "Hey, let's connect your socials"

    # ── Seeding ────────────────────────────────────────────────────────
    async def load(self) -> None:
        """Seed statuses from durable bindings and start listening to the wallet."""
        self._ensure_open()
        await asyncio.gather(*(self._seed(pid) for pid in self.registry))
        if self.name is None:
            await self._load_name()
        if not self._closed and self._unsubscribe is None:
            self._unsubscribe = self._wallet.subscribe(self._on_accounts_event)

    async def _seed(self, pid: str) -> None:
        try:
            fields = await call_port(
                self._persistence.fetch_binding_status(self.identity, pid),
                self.persistence_timeout,
                PersistenceError,
                f"looking up {pid} binding",
            )
        except PersistenceError as err:
            if self._closed or self.state.provider_statuses[pid] is not LinkStatus.UNLINKED:
                return
            logging.warning(f"Binding lookup for {pid} failed: {err.reason}")
            self.state.provider_statuses[pid] = LinkStatus.FAILED
            self.state.failure_reasons[pid] = err.reason
            return

        # A connect started meanwhile owns the status now
        if self._closed or self.state.provider_statuses[pid] is not LinkStatus.UNLINKED:
            return
        if fields:
            self.state.bindings[pid] = dict(fields)
            self.state.provider_statuses[pid] = LinkStatus.LINKED

    async def _load_name(self) -> None:
        """Re-derive the display name when it did not come with the hand-off."""
        try:
            answers = await call_port(
                self._persistence.fetch_answers(self.identity),
                self.persistence_timeout,
                PersistenceError,
                "looking up answers",
            )
        except PersistenceError as err:
            logging.warning(f"Could not load name for {self.identity}: {err.reason}")
            return
        if answers and not self._closed:
            self.name = answers.get("name") or None

    # ── Providers ──────────────────────────────────────────────────────
    async def connect_provider(self, provider_id: str) -> Optional[OnboardingError]:
        """Authorize *provider_id* and record the binding. Returns the failure, if any."""
        self._ensure_open()
        provider = self.registry.get(provider_id)
        if provider is None:
            raise InvalidOperation(f"Unknown provider: {provider_id}")

        status = self.state.provider_statuses[provider_id]
        if status is LinkStatus.LINKING:
            logging.info(f"{provider.label} linking already in progress, rejecting duplicate")
            return AlreadyInProgress(f"{provider.label} linking is already in progress")
        if status is LinkStatus.LINKED:
            raise InvalidOperation(f"{provider.label} is already linked")

        self.state.provider_statuses[provider_id] = LinkStatus.LINKING
        try:
            record = await call_port(
                self._authorize(provider_id),
                self.authorize_timeout,
                AuthorizationError,
                f"authorizing {provider.label}",
            )
            if self._closed:
                logging.info(f"Discarding late {provider_id} authorization after teardown")
                return None
            fields = record.model_dump()
            await call_port(
                self._persistence.upsert_binding(self.identity, provider_id, fields),
                self.persistence_timeout,
                PersistenceError,
                f"saving {provider.label} binding",
            )
        except (AuthorizationError, PersistenceError) as err:
            if self._closed:
                logging.info(f"Discarding late {provider_id} failure after teardown")
                return None
            logging.warning(f"{provider.label} linking failed ({err.kind}): {err.reason}")
            self.state.provider_statuses[provider_id] = LinkStatus.FAILED
            self.state.failure_reasons[provider_id] = err.reason
            return err

        if self._closed:
            logging.info(f"Discarding late {provider_id} reply after teardown")
            return None

        self.state.bindings[provider_id] = fields
        self.state.provider_statuses[provider_id] = LinkStatus.LINKED
        self.state.failure_reasons.pop(provider_id, None)
        logging.info(
            f"{provider.label} linked as {record.external_username} "
            f"(fully linked: {self.is_fully_linked})"
        )
        return None

    async def _authorize(self, provider_id: str) -> ProviderIdentity:
        record = await self._idp.authorize(provider_id)
        return ProviderIdentity.model_validate(record)

    def dismiss(self, provider_id: str) -> None:
        """Acknowledge a failure: failed → unlinked."""
        self._ensure_open()
        if self.state.provider_statuses.get(provider_id) is not LinkStatus.FAILED:
            raise InvalidOperation(f"{provider_id} has no failure to dismiss")
        self.state.provider_statuses[provider_id] = LinkStatus.UNLINKED
        self.state.failure_reasons.pop(provider_id, None)

    # ── Wallet ─────────────────────────────────────────────────────────
    async def connect_wallet(self) -> Optional[OnboardingError]:
        """Ask the wallet bridge for an account, record it and persist the binding."""
        self._ensure_open()
        if self.state.wallet_status is LinkStatus.LINKING:
            return AlreadyInProgress("Wallet connection is already in progress")
        if self.state.wallet_status is LinkStatus.LINKED:
            raise InvalidOperation("The wallet is already linked")

        generation = self._next_wallet_generation()
        self.state.wallet_status = LinkStatus.LINKING
        self.state.wallet_failure = None
        request = asyncio.ensure_future(call_port(
            self._wallet.request_accounts(),
            self.authorize_timeout,
            AuthorizationError,
            "requesting wallet accounts",
        ))
        self._wallet_request = request
        try:
            accounts = await request
            if not accounts:
                raise AuthorizationError("The wallet did not share any account")
        except asyncio.CancelledError:
            # A wallet event or teardown withdrew the request; anything else propagates
            if request.cancelled() and self._wallet_request is not request:
                logging.info("Wallet account request superseded")
                return None
            raise
        except AuthorizationError as err:
            if self._stale_wallet(generation):
                return None
            logging.warning(f"Wallet connection failed: {err.reason}")
            self.state.wallet_status = LinkStatus.FAILED
            self.state.wallet_failure = err.reason
            return err
        finally:
            if self._wallet_request is request:
                self._wallet_request = None

        if self._stale_wallet(generation):
            return None
        return await self._record_wallet(accounts[0], generation)

    async def retry_wallet_persistence(self) -> Optional[OnboardingError]:
        """Re-run only the persistence step for the retained wallet address."""
        self._ensure_open()
        if self.state.wallet_status is LinkStatus.LINKING:
            return AlreadyInProgress("Wallet connection is already in progress")
        if self.state.wallet_address is None or self.state.wallet_status is not LinkStatus.FAILED:
            raise InvalidOperation("There is no unsaved wallet address to retry")

        generation = self._next_wallet_generation()
        self.state.wallet_status = LinkStatus.LINKING
        self.state.wallet_failure = None
        return await self._persist_wallet(generation)

    async def accounts_changed(self, addresses: Sequence[str]) -> Optional[OnboardingError]:
        """Apply a wallet ``accountsChanged`` push; an empty list means disconnected."""
        if self._closed:
            return None
        addresses = [a for a in addresses if a]
        generation = self._next_wallet_generation()
        self._withdraw_wallet_request()

        if not addresses:
            logging.info("Wallet disconnected")
            self.state.wallet_address = None
            self.state.wallet_status = LinkStatus.UNLINKED
            self.state.wallet_failure = None
            return None

        if addresses[0] == self.state.wallet_address and self.state.wallet_status is LinkStatus.LINKED:
            return None
        return await self._record_wallet(addresses[0], generation)

    async def _record_wallet(self, address: str, generation: int) -> Optional[OnboardingError]:
        self.state.wallet_address = address
        self.state.wallet_status = LinkStatus.LINKED
        self.state.wallet_failure = None
        logging.info(f"Wallet account {address} connected")
        return await self._persist_wallet(generation)

    async def _persist_wallet(self, generation: int) -> Optional[OnboardingError]:
        address = self.state.wallet_address
        try:
            await call_port(
                self._persistence.upsert_wallet(self.identity, address),
                self.persistence_timeout,
                PersistenceError,
                "saving wallet binding",
            )
        except PersistenceError as err:
            if self._stale_wallet(generation):
                return None
            # Keep the address so the user can see it and retry the save alone
            logging.warning(f"Saving wallet {address} failed: {err.reason}")
            self.state.wallet_status = LinkStatus.FAILED
            self.state.wallet_failure = err.reason
            return err

        if self._stale_wallet(generation):
            return None
        self.state.wallet_status = LinkStatus.LINKED
        return None

    def _on_accounts_event(self, accounts: Sequence[str]) -> None:
        if self._closed:
            return
        task = asyncio.get_running_loop().create_task(self.accounts_changed(list(accounts)))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def drain(self) -> None:
        """Wait for pending wallet events to be applied."""
        while self._tasks:
            await asyncio.wait(set(self._tasks))

    def _withdraw_wallet_request(self) -> None:
        """Cancel a pending account request that a newer wallet event replaces."""
        request, self._wallet_request = self._wallet_request, None
        if request is not None and not request.done():
            request.cancel()

    def _next_wallet_generation(self) -> int:
        self._wallet_generation += 1
        return self._wallet_generation

    def _stale_wallet(self, generation: int) -> bool:
        """True when teardown or a newer wallet event superseded this operation."""
        return self._closed or generation != self._wallet_generation

    # ── Hand-off ───────────────────────────────────────────────────────
    def skip(self) -> None:
        """Leave without (full) linkage; only the identity travels forward."""
        self._ensure_open()
        logging.info(f"Linking skipped for {self.identity}")
        self._navigator.go(PROFILE_DESTINATION, {"email": self.identity})
        self.close()

    def finish(self) -> None:
        """Proceed once every provider and the wallet are linked."""
        self._ensure_open()
        if not self.is_fully_linked:
            pending: List[str] = [
                pid for pid, s in self.state.provider_statuses.items() if s is not LinkStatus.LINKED
            ]
            if self.state.wallet_status is not LinkStatus.LINKED:
                pending.append("wallet")
            raise InvalidOperation(f"Still waiting on: {', '.join(pending)}")

        payload: Dict[str, Any] = {
            "email": self.identity,
            "bindings": {pid: dict(f) for pid, f in self.state.bindings.items()},
            "wallet_address": self.state.wallet_address,
        }
        logging.info(f"All accounts linked for {self.identity}")
        self._navigator.go(PROFILE_DESTINATION, payload)
        self.close()

    def close(self) -> None:
        """Tear down: stop listening to the wallet and drop in-flight events."""
        if self._closed:
            return
        self._closed = True
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._withdraw_wallet_request()
        for task in list(self._tasks):
            task.cancel()

    def _ensure_open(self) -> None:
        if self._closed:
            raise InvalidOperation("This linking session has ended")

    def snapshot(self) -> Dict[str, Any]:
        return {
            **self.state.snapshot(),
            "identity": self.identity,
            "greeting": self.greeting,
            "fully_linked": self.is_fully_linked,
        }
