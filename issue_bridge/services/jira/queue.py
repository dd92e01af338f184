"""Per-account request queues.

Each configured account gets one FIFO queue that bounds how many requests
run at once (``concurrent_slots``) and how close together two dispatches may
start (``delay_ms``). Queues are created on first use and kept for the
process lifetime.
"""

import asyncio
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Deque, Dict, Optional, Set

from issue_bridge.core.logging import get_logger
from issue_bridge.models.account import Account, RateLimitSettings

logger = get_logger(__name__)

Work = Callable[[], Awaitable[Any]]


@dataclass
class _QueueEntry:
    work: Work
    future: asyncio.Future
    position: int


class AccountQueue:
    """FIFO queue with a concurrency limit and minimum dispatch spacing.

    A unit is dispatched only when a slot is free and at least ``delay_ms``
    has passed since the previous dispatch started. A failing unit only
    fails its own caller; the next unit is dispatched on schedule.
    """

    def __init__(self, name: str = "default", delay_ms: int = 100,
                 concurrent_slots: int = 1, enabled: bool = True,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.name = name
        self.delay_ms = max(0, delay_ms)
        self.concurrent_slots = max(1, concurrent_slots)
        self.enabled = enabled
        self._clock = clock
        self._sleep = sleep

        self._pending: Deque[_QueueEntry] = deque()
        self._active = 0
        self._submitted = 0
        self._last_dispatch: Optional[float] = None
        self._pump_task: Optional[asyncio.Task] = None
        self._tasks: Set[asyncio.Task] = set()

    @classmethod
    def from_policy(cls, name: str, policy: RateLimitSettings, **kwargs) -> "AccountQueue":
        return cls(name=name, delay_ms=policy.delay_ms,
                   concurrent_slots=policy.concurrent_slots,
                   enabled=policy.enabled, **kwargs)

    @property
    def pending(self) -> int:
        return len(self._pending)

    @property
    def active(self) -> int:
        return self._active

    async def add(self, work: Work) -> Any:
        """Run ``work`` when its turn comes and return its result.

        With rate limiting disabled the work runs immediately.
        """
        if not self.enabled:
            return await work()

        loop = asyncio.get_running_loop()
        entry = _QueueEntry(work=work, future=loop.create_future(),
                            position=self._submitted)
        self._submitted += 1
        self._pending.append(entry)
        self._schedule_pump()
        return await entry.future

    def _schedule_pump(self) -> None:
        if self._pump_task is None or self._pump_task.done():
            self._pump_task = asyncio.create_task(self._pump())

    def _seconds_until_next_dispatch(self) -> float:
        if self._last_dispatch is None:
            return 0.0
        elapsed = self._clock() - self._last_dispatch
        return max(0.0, self.delay_ms / 1000 - elapsed)

    async def _pump(self) -> None:
        while self._pending and self._active < self.concurrent_slots:
            wait = self._seconds_until_next_dispatch()
            if wait > 0:
                await self._sleep(wait)
                continue

            entry = self._pending.popleft()
            if entry.future.done():
                # Caller gave up while waiting
                continue

            self._active += 1
            self._last_dispatch = self._clock()
            logger.debug("Queue dispatch",
                         queue=self.name,
                         position=entry.position,
                         active=self._active,
                         pending=len(self._pending))

            task = asyncio.create_task(self._run(entry))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _run(self, entry: _QueueEntry) -> None:
        try:
            result = await entry.work()
        except asyncio.CancelledError:
            entry.future.cancel()
            raise
        except Exception as e:
            if not entry.future.done():
                entry.future.set_exception(e)
        else:
            if not entry.future.done():
                entry.future.set_result(result)
        finally:
            self._active -= 1
            if self._pending:
                self._schedule_pump()


class QueueRegistry:
    """Owns one AccountQueue per account alias.

    Passed explicitly to the dispatcher so tests can inject their own clock
    and sleep.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self._clock = clock
        self._sleep = sleep
        self._queues: Dict[str, AccountQueue] = {}

    def get(self, account: Account) -> AccountQueue:
        """Get or lazily create the queue for an account."""
        queue = self._queues.get(account.alias)
        if queue is None:
            queue = AccountQueue.from_policy(account.alias, account.rate_limit,
                                             clock=self._clock, sleep=self._sleep)
            self._queues[account.alias] = queue
            logger.info("Request queue created",
                        account=account.alias,
                        delay_ms=queue.delay_ms,
                        concurrent_slots=queue.concurrent_slots)
        return queue

    async def submit(self, account: Account, work: Work) -> Any:
        """Run ``work`` through the account's queue, or directly when the
        account has rate limiting disabled."""
        if not account.rate_limit.enabled:
            return await work()
        return await self.get(account).add(work)

    def __contains__(self, alias: str) -> bool:
        return alias in self._queues

    def __len__(self) -> int:
        return len(self._queues)
