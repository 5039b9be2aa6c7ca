"""Tests for session — wizard → linking hand-off and teardown."""

import asyncio

import pytest

from errors import InvalidOperation
from linking.providers import build_registry
from linking.state import LinkStatus
import session as sessions
from session import OnboardingSession

from conftest import FlakyStore, identity_for


def _session(store, flow="profile"):
    return OnboardingSession(
        flow, store, registry=build_registry(["github", "twitter"]), tick=0, intro_hold=0,
    )


async def _complete_profile(session):
    session.start()
    await session.answer("a@b.co")
    await session.answer("Ada")
    session.select("Tech")
    return await session.confirm()


@pytest.mark.asyncio
async def test_completed_wizard_opens_seeded_linking_screen():
    store = FlakyStore()
    await store.upsert_binding("a@b.co", "github", identity_for("github").model_dump())
    session = _session(store)

    assert await _complete_profile(session) is None

    assert session.screen == "socials"
    assert session.wizard.closed
    linking = session.require_linking()
    assert linking.identity == "a@b.co"
    assert linking.state.provider_statuses["github"] is LinkStatus.LINKED
    assert linking.state.provider_statuses["twitter"] is LinkStatus.UNLINKED
    assert linking.greeting == "Hey, Ada! Let's connect your socials"


@pytest.mark.asyncio
async def test_failed_submission_keeps_wizard_until_retry():
    store = FlakyStore()
    store.failures["upsert_answers"] = 1
    session = _session(store)

    assert await _complete_profile(session) is not None
    assert session.screen == "wizard"
    with pytest.raises(InvalidOperation):
        session.require_linking()

    assert await session.finalize() is None
    assert session.screen == "socials"


@pytest.mark.asyncio
async def test_skip_finishes_the_flow():
    session = _session(FlakyStore())
    await _complete_profile(session)
    session.require_linking().skip()
    assert session.finished
    assert session.history[-1] == ("profile", {"email": "a@b.co"})
    assert session.view()["linking"] is None


@pytest.mark.asyncio
async def test_company_flow_goes_to_dashboard():
    session = _session(FlakyStore(), flow="company")
    session.start()
    await session.answer("Acme")
    session.select("Cybersecurity")
    await session.confirm()
    session.select("Python")
    assert await session.confirm() is None
    assert session.finished
    assert session.destination == "company-dashboard"
    assert session.linking is None


def test_unknown_flow():
    with pytest.raises(InvalidOperation):
        OnboardingSession("payroll", FlakyStore())


@pytest.mark.asyncio
async def test_close_releases_everything():
    session = _session(FlakyStore())
    await _complete_profile(session)
    task = session.spawn("link:twitter", session.require_linking().connect_provider("twitter"))
    session.close()
    assert session.wizard.closed
    assert session.require_linking().closed
    await asyncio.wait({task})
    assert task.cancelled()


@pytest.mark.asyncio
async def test_idle_sessions_are_evicted():
    sessions.reset()
    stale = sessions.create_session("profile", tick=0)
    fresh = sessions.create_session("profile", tick=0)
    stale.last_seen -= 120

    assert sessions.evict_idle(idle=60) == [stale.id]
    assert sessions.get_session(stale.id) is None
    assert stale.wizard.closed
    assert sessions.get_session(fresh.id) is fresh
    sessions.reset()


@pytest.mark.asyncio
async def test_lookup_keeps_a_session_alive():
    sessions.reset()
    s = sessions.create_session("profile", tick=0)
    s.last_seen -= 120
    assert sessions.get_session(s.id) is s
    assert sessions.evict_idle(idle=60) == []
    sessions.reset()
