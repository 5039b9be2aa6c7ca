"""Wallet bridge relayed from the browser.

The injected wallet lives client-side; the client relays the answer to an
account request (``deliver_accounts`` / ``reject``) and every
``accountsChanged`` event (``push_accounts_changed``).
"""

import asyncio
from typing import Callable, List, Optional, Sequence

from errors import AuthorizationError
from ports.contracts import AccountsListener


class RelayWalletBridge:
    def __init__(self):
        self._listeners: List[AccountsListener] = []
        self._request: Optional[asyncio.Future] = None

    async def request_accounts(self) -> list[str]:
        fut = asyncio.get_running_loop().create_future()
        self._request = fut
        try:
            return list(await fut)
        finally:
            if self._request is fut:
                self._request = None

    @property
    def request_pending(self) -> bool:
        return self._request is not None and not self._request.done()

    def deliver_accounts(self, accounts: Sequence[str]) -> bool:
        if not self.request_pending:
            return False
        self._request.set_result(list(accounts))
        return True

    def reject(self, reason: str = "The wallet request was rejected") -> bool:
        if not self.request_pending:
            return False
        self._request.set_exception(AuthorizationError(reason))
        return True

    def subscribe(self, listener: AccountsListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def push_accounts_changed(self, accounts: Sequence[str]) -> None:
        for listener in list(self._listeners):
            listener(list(accounts))
