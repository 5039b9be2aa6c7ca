"""App-wide configuration and environment settings."""

import os
from dotenv import load_dotenv

load_dotenv()  # Load from .env file


def get_secret(key, default=None):
    """Read a setting from the environment (populated from .env)."""
    value = os.getenv(key)
    return default if value is None or value == "" else value


def _float(key, default):
    return float(get_secret(key, default))


# Reveal animation
REVEAL_TICK_SECONDS = _float("REVEAL_TICK_SECONDS", 0.05)  # one character per tick
INTRO_HOLD_SECONDS = _float("INTRO_HOLD_SECONDS", 1.0)     # pause after the intro banner

# Port timeouts (a hung authorization or write surfaces as a failure)
AUTHORIZE_TIMEOUT_SECONDS = _float("AUTHORIZE_TIMEOUT_SECONDS", 300.0)
PERSISTENCE_TIMEOUT_SECONDS = _float("PERSISTENCE_TIMEOUT_SECONDS", 15.0)

# Sessions (idle sessions are evicted when new ones start)
SESSION_IDLE_SECONDS = _float("SESSION_IDLE_SECONDS", 3600.0)

# Linking
LINK_PROVIDERS = [
    p.strip().lower()
    for p in get_secret("LINK_PROVIDERS", "github,linkedin,twitter,instagram").split(",")
    if p.strip()
]

# Logging
LOG_LEVEL = get_secret("LOG_LEVEL", "INFO").upper()

# LangSmith
LANGSMITH_TRACING = os.getenv("LANGSMITH_TRACING", "false").lower() in ("true", "1")
LANGSMITH_PROJECT = os.getenv("LANGSMITH_PROJECT", "onboarding-flow")

# Server
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8000"))
