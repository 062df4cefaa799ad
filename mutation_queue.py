"""
Serial execution of state mutations.

Catalog operations read the current collection, build a new one and persist
it. Two of them interleaving across an ``await`` would each start from the
same snapshot and one write would drop the other's change, so every mutation
goes through this queue and runs alone, in arrival order.
"""

import asyncio
import inspect
import logging
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Optional, Tuple, Union

logger = logging.getLogger(__name__)

Mutation = Callable[[], Union[Any, Awaitable[Any]]]


class MutationQueue:
    def __init__(self):
        self._pending: Deque[Tuple[Mutation, asyncio.Future]] = deque()
        self._running = False
        self._current: Optional[asyncio.Task] = None
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    @property
    def busy(self) -> bool:
        return self._running

    def enqueue(self, mutation: Mutation) -> asyncio.Future:
        """Append a mutation. The returned future carries its result or exception."""
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        self._pending.append((mutation, future))
        self._idle.clear()
        if not self._running:
            self._running = True
            loop.call_soon(self._next)
        return future

    async def join(self) -> None:
        await self._idle.wait()

    def _next(self) -> None:
        if not self._pending:
            self._running = False
            self._current = None
            self._idle.set()
            return
        mutation, future = self._pending.popleft()
        self._current = asyncio.get_running_loop().create_task(self._run(mutation, future))

    async def _run(self, mutation: Mutation, future: asyncio.Future) -> None:
        try:
            result = mutation()
            if inspect.isawaitable(result):
                result = await result
        except Exception as exc:
            logger.debug("Mutation failed: %r", exc)
            if not future.cancelled():
                future.set_exception(exc)
        else:
            if not future.cancelled():
                future.set_result(result)
        finally:
            asyncio.get_running_loop().call_soon(self._next)
