"""LangSmith tracing — one onboarding session = one trace across requests.

The REST surface is stateless per request, so the root run of a session is
kept in ``_session_trace_store`` keyed by session id:

* ``flow_trace`` opens the root run when ``/onboarding/start`` creates the
  session and tags it with the flow (``profile`` or ``company``).
* ``continue_flow_trace`` re-enters that root for every later request that
  reaches a port (answers, submission, provider and wallet linking), so
  persistence and authorization work is grouped under the session.
* ``clear_flow_trace`` ends and uploads the root once the session hands off
  to its final screen or is evicted, and forgets it.

All three are no-ops unless ``LANGSMITH_TRACING`` is enabled.
"""

import logging
import os
from contextlib import contextmanager

import langsmith as ls
from langsmith.run_trees import RunTree

from config import LANGSMITH_TRACING, LANGSMITH_PROJECT

# In-memory store: session_id -> parent RunTree (for stateless REST requests)
_session_trace_store: dict[str, RunTree] = {}


def _ensure_env():
    """Ensure LangSmith env vars are set when tracing is enabled."""
    if LANGSMITH_TRACING:
        os.environ.setdefault("LANGCHAIN_TRACING_V2", "true")
        os.environ.setdefault("LANGCHAIN_PROJECT", LANGSMITH_PROJECT)


@contextmanager
def flow_trace(session_id: str, flow: str = ""):
    """
    Create a parent trace for an onboarding session. Every request handled
    inside this context is grouped under one trace; later requests for the
    same session continue it with ``continue_flow_trace``.
    """
    if not LANGSMITH_TRACING:
        yield
        return

    _ensure_env()
    root = RunTree(
        name="onboarding_flow",
        run_type="chain",
    )
    root.add_metadata({"session_id": session_id, "flow": flow})
    root.add_tags(["onboarding", "flow"])
    root.post()
    _session_trace_store[session_id] = root

    with ls.tracing_context(
        project_name=LANGSMITH_PROJECT,
        enabled=True,
        parent=root,
        metadata={"session_id": session_id, "flow": flow},
        tags=["onboarding", "flow"],
    ):
        yield str(root.id)


@contextmanager
def continue_flow_trace(session_id: str):
    """Continue the trace started for *session_id*, if any."""
    if not LANGSMITH_TRACING:
        yield
        return

    _ensure_env()
    root = _session_trace_store.get(session_id)
    if not root:
        yield
        return

    with ls.tracing_context(
        project_name=LANGSMITH_PROJECT,
        enabled=True,
        parent=root,
        metadata={"session_id": session_id},
        tags=["onboarding", "flow", "resume"],
    ):
        yield


def clear_flow_trace(session_id: str) -> None:
    """End the root run and remove from store when the session hands off or resets."""
    root = _session_trace_store.pop(session_id, None)
    if root:
        try:
            root.end()
            root.patch()
        except Exception as e:
            logging.warning(f"Could not close trace for session {session_id}: {e}")
