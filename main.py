"""FastAPI entrypoint — exposes the onboarding wizard and account linking via REST."""

import asyncio
import logging
from typing import Any, List, Literal, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

import session as sessions
from config import HOST, LOG_LEVEL, PORT
from errors import InvalidOperation, OnboardingError
from langsmith_tracing import clear_flow_trace, continue_flow_trace, flow_trace
from ports.contracts import ProviderIdentity

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)

# ── App ─────────────────────────────────────────────────────────────────
app = FastAPI(title="Onboarding Flow", version="1.0.0")


@app.exception_handler(InvalidOperation)
async def invalid_operation_handler(request: Request, exc: InvalidOperation):
    return JSONResponse(status_code=409, content={"detail": exc.reason})


# ── Request models ──────────────────────────────────────────────────────
class StartRequest(BaseModel):
    flow: Literal["profile", "company"] = "profile"


class AnswerRequest(BaseModel):
    answer: Any = None


class ChoiceRequest(BaseModel):
    choice: str


class AccountsRequest(BaseModel):
    accounts: List[str] = []


class RejectRequest(BaseModel):
    reason: Optional[str] = None


# ── Endpoints: session ──────────────────────────────────────────────────

@app.post("/onboarding/start")
async def start_onboarding(req: StartRequest):
    """Create a session and enter the first question (or the intro banner)."""
    session = sessions.create_session(req.flow)
    with flow_trace(session.id, req.flow):
        logging.info(f"Started {req.flow} onboarding session {session.id}")
    return _respond(session)


@app.get("/onboarding/{session_id}")
async def get_onboarding(session_id: str):
    return _respond(_session(session_id))


# ── Endpoints: wizard ───────────────────────────────────────────────────

@app.post("/onboarding/{session_id}/answer")
async def answer(session_id: str, req: AnswerRequest):
    session = _session(session_id)
    with continue_flow_trace(session_id):
        err = await session.answer(req.answer)
    return _respond(session, err)


@app.post("/onboarding/{session_id}/select")
async def select(session_id: str, req: ChoiceRequest):
    session = _session(session_id)
    session.select(req.choice)
    return _respond(session)


@app.post("/onboarding/{session_id}/confirm")
async def confirm(session_id: str):
    session = _session(session_id)
    with continue_flow_trace(session_id):
        err = await session.confirm()
    return _respond(session, err)


@app.post("/onboarding/{session_id}/finalize")
async def finalize(session_id: str):
    """Retry saving the answers after a failed submission."""
    session = _session(session_id)
    with continue_flow_trace(session_id):
        err = await session.finalize()
    return _respond(session, err)


# ── Endpoints: provider linking ─────────────────────────────────────────

@app.post("/onboarding/{session_id}/links/{provider_id}/connect")
async def connect_provider(session_id: str, provider_id: str):
    """Start linking; the outcome arrives through the callback / cancel endpoints."""
    session = _session(session_id)
    linking = session.require_linking()
    key = f"link:{provider_id}"
    with continue_flow_trace(session_id):
        if session.busy(key):
            err = await linking.connect_provider(provider_id)
        else:
            err = await _launch(session, key, linking.connect_provider(provider_id))
    return _respond(session, err)


@app.post("/onboarding/{session_id}/links/{provider_id}/callback")
async def provider_callback(session_id: str, provider_id: str, record: ProviderIdentity):
    session = _session(session_id)
    if not session.auth.resolve(provider_id, record):
        raise HTTPException(409, f"No {provider_id} authorization is waiting.")
    return _respond(session, await session.settle(f"link:{provider_id}"))


@app.post("/onboarding/{session_id}/links/{provider_id}/cancel")
async def provider_cancel(session_id: str, provider_id: str, req: RejectRequest):
    """The user closed the authorization window."""
    session = _session(session_id)
    if not session.auth.reject(provider_id, req.reason or "Authorization window was closed"):
        raise HTTPException(409, f"No {provider_id} authorization is waiting.")
    return _respond(session, await session.settle(f"link:{provider_id}"))


@app.post("/onboarding/{session_id}/links/{provider_id}/dismiss")
async def provider_dismiss(session_id: str, provider_id: str):
    session = _session(session_id)
    session.require_linking().dismiss(provider_id)
    return _respond(session)


# ── Endpoints: wallet ───────────────────────────────────────────────────

@app.post("/onboarding/{session_id}/wallet/connect")
async def wallet_connect(session_id: str):
    session = _session(session_id)
    linking = session.require_linking()
    with continue_flow_trace(session_id):
        if session.busy("wallet"):
            err = await linking.connect_wallet()
        else:
            err = await _launch(session, "wallet", linking.connect_wallet())
    return _respond(session, err)


@app.post("/onboarding/{session_id}/wallet/accounts")
async def wallet_accounts(session_id: str, req: AccountsRequest):
    """Answer to a pending account request."""
    session = _session(session_id)
    if not session.wallet.deliver_accounts(req.accounts):
        raise HTTPException(409, "No wallet request is waiting.")
    return _respond(session, await session.settle("wallet"))


@app.post("/onboarding/{session_id}/wallet/reject")
async def wallet_reject(session_id: str, req: RejectRequest):
    session = _session(session_id)
    if not session.wallet.reject(req.reason or "The wallet request was rejected"):
        raise HTTPException(409, "No wallet request is waiting.")
    return _respond(session, await session.settle("wallet"))


@app.post("/onboarding/{session_id}/wallet/changed")
async def wallet_changed(session_id: str, req: AccountsRequest):
    """Relay of the wallet's accountsChanged event."""
    session = _session(session_id)
    linking = session.require_linking()
    session.wallet.push_accounts_changed(req.accounts)
    await linking.drain()
    # A superseded connect finishes as soon as its request is withdrawn
    await session.settle("wallet")
    return _respond(session)


@app.post("/onboarding/{session_id}/wallet/retry")
async def wallet_retry(session_id: str):
    """Retry saving a wallet address whose binding could not be recorded."""
    session = _session(session_id)
    with continue_flow_trace(session_id):
        err = await session.require_linking().retry_wallet_persistence()
    return _respond(session, err)


# ── Endpoints: hand-off ─────────────────────────────────────────────────

@app.post("/onboarding/{session_id}/skip")
async def skip(session_id: str):
    session = _session(session_id)
    session.require_linking().skip()
    return _respond(session)


@app.post("/onboarding/{session_id}/finish")
async def finish(session_id: str):
    session = _session(session_id)
    session.require_linking().finish()
    return _respond(session)


# ── Helpers ─────────────────────────────────────────────────────────────
def _session(session_id: str) -> sessions.OnboardingSession:
    session = sessions.get_session(session_id)
    if session is None:
        raise HTTPException(404, "Session not found.")
    return session


async def _launch(session, key: str, coro) -> Optional[OnboardingError]:
    """Start a background operation; report its result if it finished right away."""
    task = session.spawn(key, coro)
    await asyncio.sleep(0)
    return task.result() if task.done() else None


def _respond(session: sessions.OnboardingSession, err: Optional[OnboardingError] = None) -> dict:
    body = {**session.view(), "error": err.to_dict() if err else None}
    # Clear trace and release the session once the flow has handed off
    if session.finished:
        clear_flow_trace(session.id)
        sessions.discard_session(session.id)
    return body


# ── Run ─────────────────────────────────────────────────────────────────
if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host=HOST, port=PORT, reload=True)
