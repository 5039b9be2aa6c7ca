"""Callback-driven identity provider adapter.

The OAuth round trip happens in the user's browser. ``authorize`` parks on a
future until the client reports the outcome through the callback endpoint
(``resolve``) or reports that the authorization window was closed
(``reject``), which surfaces as an AuthorizationError instead of hanging.
"""

import asyncio
import logging
from typing import Any, Dict, Mapping, Union

from errors import AuthorizationError
from ports.contracts import ProviderIdentity


class CallbackAuthBroker:
    def __init__(self):
        self._pending: Dict[str, asyncio.Future] = {}  # provider_id → outcome

    async def authorize(self, provider_id: str) -> ProviderIdentity:
        fut = asyncio.get_running_loop().create_future()
        self._pending[provider_id] = fut
        logging.info(f"Waiting for {provider_id} authorization callback")
        try:
            return await fut
        finally:
            if self._pending.get(provider_id) is fut:
                del self._pending[provider_id]

    def is_pending(self, provider_id: str) -> bool:
        fut = self._pending.get(provider_id)
        return fut is not None and not fut.done()

    def resolve(self, provider_id: str, record: Union[ProviderIdentity, Mapping[str, Any]]) -> bool:
        """Deliver the provider-issued identity. False if nothing was waiting."""
        fut = self._pending.get(provider_id)
        if fut is None or fut.done():
            return False
        fut.set_result(ProviderIdentity.model_validate(record))
        return True

    def reject(self, provider_id: str, reason: str = "Authorization window was closed") -> bool:
        """Fail the pending authorization. False if nothing was waiting."""
        fut = self._pending.get(provider_id)
        if fut is None or fut.done():
            return False
        fut.set_exception(AuthorizationError(reason))
        return True

    def cancel_all(self) -> None:
        for fut in self._pending.values():
            if not fut.done():
                fut.cancel()
        self._pending.clear()
