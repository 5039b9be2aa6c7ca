"""Text reveal driver — discloses a string one character per tick.

A reveal runs as a background asyncio task that pushes each prefix into the
consumer's sink. Only one reveal is active per driver: starting a new one
cancels the previous one first, and a generation counter guarantees that no
frame of a cancelled reveal reaches the sink after ``cancel()`` returns.
"""

import asyncio
import logging
from contextlib import aclosing
from typing import AsyncIterator, Callable, Optional

from config import REVEAL_TICK_SECONDS


class TextReveal:
    """Cancellable typewriter for one consumer."""

    def __init__(self, sink: Callable[[str], None], tick: float = REVEAL_TICK_SECONDS):
        self._sink = sink
        self.tick = tick
        self._task: Optional[asyncio.Task] = None
        self._generation = 0

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    async def prefixes(self, text: str) -> AsyncIterator[str]:
        """Lazy prefixes of *text*, first one immediately, then one per tick."""
        if not text:
            yield ""
            return
        for end in range(1, len(text) + 1):
            if end > 1:
                await asyncio.sleep(self.tick)
            yield text[:end]

    def reveal(
        self,
        text: str,
        hold: float = 0.0,
        on_complete: Optional[Callable[[], None]] = None,
    ) -> asyncio.Task:
        """Start revealing *text*; any in-flight reveal is cancelled first."""
        self.cancel()
        generation = self._generation
        self._task = asyncio.get_running_loop().create_task(
            self._run(text, generation, hold, on_complete),
            name=f"reveal-{generation}",
        )
        return self._task

    def cancel(self) -> None:
        """Stop the active reveal. Synchronous with respect to sink frames."""
        self._generation += 1
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()

    async def wait(self) -> None:
        """Wait until no reveal is running (follows chained reveals)."""
        while self._task is not None and not self._task.done():
            await asyncio.wait({self._task})

    async def _run(self, text, generation, hold, on_complete) -> None:
        async with aclosing(self.prefixes(text)) as frames:
            async for prefix in frames:
                if generation != self._generation:
                    return
                self._sink(prefix)

        if hold:
            await asyncio.sleep(hold)
        if generation != self._generation:
            return

        # Finished: let on_complete start the next reveal without cancelling us
        self._task = None
        if on_complete:
            try:
                on_complete()
            except Exception:
                logging.exception("Reveal completion callback failed")
