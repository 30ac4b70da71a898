import asyncio
import os
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

_RATE_LIMIT_MARKERS = ("429", "rate limit", "rate_limit", "quota", "resource_exhausted")


def is_rate_limit_error(exc: BaseException) -> bool:
    """True if exc looks like a 429 / quota failure from any of our transports."""
    for attr in ("status_code", "status"):
        if getattr(exc, attr, None) == 429:
            return True
    msg = str(exc).lower()
    return any(marker in msg for marker in _RATE_LIMIT_MARKERS)


@dataclass
class QueuedTask:
    factory: Callable[[], Awaitable[Any]]
    future: asyncio.Future = field(repr=False)


class RequestScheduler:
    """
    Serializes calls to the generative service.

    Tasks run strictly one at a time in submission order. After every task the
    consumer waits `interval` seconds before starting the next one; after a
    rate-limited failure it waits `backoff` seconds instead. The failure is
    still raised to the caller: retrying is the caller's decision, the
    scheduler only throttles whatever comes next.
    """

    def __init__(
        self,
        interval: float | None = None,
        backoff: float | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if interval is None:
            interval = float(os.getenv("REQUEST_INTERVAL_SEC", "0.3"))
        if backoff is None:
            backoff = float(os.getenv("RATE_LIMIT_BACKOFF_SEC", "5.0"))
        self.interval = max(0.0, interval)
        self.backoff = max(self.interval, backoff)
        self._sleep = sleep

        self._pending: deque[QueuedTask] = deque()
        self._busy: bool = False
        self._consumer: asyncio.Task | None = None

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def submit(self, factory: Callable[[], Awaitable[Any]]) -> Any:
        """Queue a coroutine factory and wait for its result (or its exception)."""
        future = asyncio.get_running_loop().create_future()
        self._pending.append(QueuedTask(factory=factory, future=future))
        if not self._busy:
            self._busy = True
            self._consumer = asyncio.create_task(self._drain())
        return await future

    async def _drain(self) -> None:
        try:
            while self._pending:
                item = self._pending.popleft()
                if item.future.cancelled():
                    print("[Scheduler] Skipping task whose caller has gone")
                    continue
                rate_limited = await self._run(item)
                if rate_limited:
                    print(f"[Scheduler] Rate limited, backing off {self.backoff:.2f}s")
                    await self._sleep(self.backoff)
                else:
                    await self._sleep(self.interval)
        finally:
            self._busy = False
            self._consumer = None

    async def _run(self, item: QueuedTask) -> bool:
        """Run one task, deliver its outcome, return True if it was rate limited."""
        try:
            result = await item.factory()
        except asyncio.CancelledError:
            if not item.future.done():
                item.future.cancel()
            raise
        except Exception as exc:
            print(f"[Scheduler] Task failed: {exc}")
            if not item.future.done():
                item.future.set_exception(exc)
            return is_rate_limit_error(exc)

        if not item.future.done():
            item.future.set_result(result)
        return False
