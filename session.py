"""Onboarding sessions — one user's pass through wizard → linking → profile.

The session is the navigation port for both engines: when the profile wizard
hands off to ``socials`` the session builds a linking aggregator keyed by the
email from the answers (never by reference to the wizard) and seeds it from
the durable bindings. Sessions live in a process-wide registry keyed by id.
"""

import asyncio
import logging
import time
import uuid
from typing import Any, Dict, List, Optional, Tuple

from config import INTRO_HOLD_SECONDS, REVEAL_TICK_SECONDS, SESSION_IDLE_SECONDS
from errors import InvalidOperation, OnboardingError
from langsmith_tracing import clear_flow_trace
from linking.aggregator import LinkAggregator
from linking.providers import Provider, build_registry
from wizard.engine import WizardEngine
from wizard.steps import WIZARDS
from workers.auth_broker import CallbackAuthBroker
from workers.memory_store import MemoryStore
from workers.wallet_relay import RelayWalletBridge

LINKING_DESTINATION = "socials"
FINAL_DESTINATIONS = ("profile", "company-dashboard")


class OnboardingSession:
    def __init__(
        self,
        flow: str,
        store: MemoryStore,
        *,
        session_id: Optional[str] = None,
        registry: Optional[Dict[str, Provider]] = None,
        tick: float = REVEAL_TICK_SECONDS,
        intro_hold: float = INTRO_HOLD_SECONDS,
    ):
        if flow not in WIZARDS:
            raise InvalidOperation(f"Unknown onboarding flow: {flow}")
        wiz = WIZARDS[flow]

        self.id = session_id or str(uuid.uuid4())
        self.flow = flow
        self.last_seen = time.monotonic()
        self.store = store
        self.auth = CallbackAuthBroker()
        self.wallet = RelayWalletBridge()
        self.registry = registry if registry is not None else build_registry()
        self.history: List[Tuple[str, Dict[str, Any]]] = []
        self.linking: Optional[LinkAggregator] = None
        self._linking_loaded = False
        self._tasks: Dict[str, asyncio.Task] = {}  # operation key → background task
        self.wizard = WizardEngine(
            wiz["steps"],
            store,
            self,
            identity_field=wiz["identity_field"],
            destination=wiz["destination"],
            intro=wiz["intro"],
            tick=tick,
            intro_hold=intro_hold,
        )

    # ── Navigation port ────────────────────────────────────────────────
    def go(self, destination: str, payload: Dict[str, Any]) -> None:
        logging.info(f"Session {self.id} → {destination}")
        self.history.append((destination, dict(payload)))
        if destination == LINKING_DESTINATION:
            self.linking = LinkAggregator(
                payload["email"],
                self.store,
                self.auth,
                self.wallet,
                self,
                registry=self.registry,
                name=payload.get("name"),
            )
            self._linking_loaded = False

    @property
    def destination(self) -> Optional[str]:
        return self.history[-1][0] if self.history else None

    @property
    def screen(self) -> str:
        return self.destination or "wizard"

    @property
    def finished(self) -> bool:
        return self.destination in FINAL_DESTINATIONS

    # ── Wizard actions ─────────────────────────────────────────────────
    def start(self) -> None:
        self.wizard.start()

    async def answer(self, raw: Any) -> Optional[OnboardingError]:
        err = await self.wizard.submit(raw)
        await self._enter_linking()
        return err

    def select(self, choice: str) -> Any:
        return self.wizard.select_choice(choice)

    async def confirm(self) -> Optional[OnboardingError]:
        err = await self.wizard.confirm()
        await self._enter_linking()
        return err

    async def finalize(self) -> Optional[OnboardingError]:
        err = await self.wizard.finalize()
        await self._enter_linking()
        return err

    async def _enter_linking(self) -> None:
        if self.linking is not None and not self._linking_loaded:
            self._linking_loaded = True
            await self.linking.load()

    # ── Linking actions ────────────────────────────────────────────────
    def require_linking(self) -> LinkAggregator:
        if self.linking is None:
            raise InvalidOperation("The account linking screen is not open")
        return self.linking

    def spawn(self, key: str, coro) -> asyncio.Task:
        """Run a port-bound operation in the background, owned by this session."""
        task = asyncio.get_running_loop().create_task(coro, name=f"{self.id}:{key}")
        self._tasks[key] = task
        task.add_done_callback(lambda t: self._forget(key, t))
        return task

    def busy(self, key: str) -> bool:
        task = self._tasks.get(key)
        return task is not None and not task.done()

    def _forget(self, key: str, task: asyncio.Task) -> None:
        if self._tasks.get(key) is task:
            del self._tasks[key]

    async def settle(self, key: str) -> Optional[OnboardingError]:
        """Wait for the background operation *key* and return its outcome."""
        task = self._tasks.get(key)
        if task is None:
            return None
        await asyncio.wait({task})
        return None if task.cancelled() else task.result()

    def close(self) -> None:
        """Release reveals, pending authorizations and in-flight operations."""
        self.wizard.close()
        if self.linking is not None:
            self.linking.close()
        self.auth.cancel_all()
        for task in list(self._tasks.values()):
            task.cancel()

    def view(self) -> Dict[str, Any]:
        return {
            "session_id": self.id,
            "flow": self.flow,
            "screen": self.screen,
            "finished": self.finished,
            "wizard": None if self.wizard.closed else self.wizard.snapshot(),
            "linking": None if self.linking is None or self.linking.closed else self.linking.snapshot(),
            "payload": self.history[-1][1] if self.history else None,
        }


# ── Process-wide registry ──────────────────────────────────────────────
store = MemoryStore()
_sessions: dict[str, OnboardingSession] = {}


def create_session(flow: str, **kwargs) -> OnboardingSession:
    evict_idle()
    session = OnboardingSession(flow, store, **kwargs)
    _sessions[session.id] = session
    session.start()
    return session


def get_session(session_id: str) -> Optional[OnboardingSession]:
    session = _sessions.get(session_id)
    if session is not None:
        session.last_seen = time.monotonic()
    return session


def discard_session(session_id: str) -> None:
    session = _sessions.pop(session_id, None)
    if session is not None:
        session.close()


def evict_idle(idle: float = SESSION_IDLE_SECONDS, now: Optional[float] = None) -> List[str]:
    """Close and drop sessions nobody has touched for *idle* seconds."""
    now = time.monotonic() if now is None else now
    expired = [sid for sid, s in _sessions.items() if now - s.last_seen > idle]
    for sid in expired:
        logging.info(f"Evicting idle session {sid}")
        clear_flow_trace(sid)
        discard_session(sid)
    return expired


def reset() -> None:
    """Close every session and clear the store. Used for testing."""
    for sid in list(_sessions):
        discard_session(sid)
    store.reset()
