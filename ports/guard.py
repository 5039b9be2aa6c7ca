"""Bounded port calls — every awaited port reply goes through ``call_port``."""

import asyncio
import logging
from typing import Awaitable, Type, TypeVar

from errors import OnboardingError

T = TypeVar("T")


async def call_port(
    awaitable: Awaitable[T],
    timeout: float,
    error_cls: Type[OnboardingError],
    what: str,
) -> T:
    """
    Await a port reply with a timeout, folding every failure into *error_cls*.
    Cancellation (session teardown) is not caught and propagates.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout)
    except error_cls:
        raise
    except asyncio.TimeoutError as e:
        raise error_cls(f"{what} timed out after {timeout:g}s") from e
    except OnboardingError as e:
        raise error_cls(e.reason or f"{what} failed") from e
    except Exception as e:
        logging.exception(f"Unexpected error while {what}")
        raise error_cls(f"{what} failed: {e}") from e
