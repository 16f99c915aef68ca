"""Fire-and-forget delivery of realtime events and pushes after a commit."""
import asyncio
import logging
from typing import Awaitable, Optional

from hustlrs.settings import settings

logger = logging.getLogger(__name__)


class BackgroundDelivery:
    """Runs delivery coroutines as tasks with a timeout. Failures are logged, never raised."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def _run(self, coro: Awaitable, label: str, timeout: float) -> None:
        try:
            await asyncio.wait_for(coro, timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Delivery timed out after %.1fs: %s", timeout, label)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("Delivery failed: %s: %s", label, e)

    def spawn(self, coro: Awaitable, *, label: str, timeout: Optional[float] = None) -> asyncio.Task:
        t = timeout if timeout is not None else settings.realtime_push_timeout_seconds
        task = asyncio.create_task(self._run(coro, label, t))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for everything in flight (shutdown and tests)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


delivery = BackgroundDelivery()
