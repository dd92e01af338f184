"""Tests for per-account request queues."""

import asyncio
import time

import pytest

from conftest import make_account
from issue_bridge.services.jira.queue import AccountQueue, QueueRegistry


def _timed_work(clock, starts, name, duration):
    async def work():
        starts.append((name, clock()))
        await clock.sleep(duration)
        return name
    return work


@pytest.mark.asyncio
async def test_dispatches_in_fifo_order_with_spacing(clock) -> None:
    queue = AccountQueue("A", delay_ms=100, concurrent_slots=1,
                         clock=clock, sleep=clock.sleep)
    starts = []

    results = await asyncio.gather(
        queue.add(_timed_work(clock, starts, "first", 0.3)),
        queue.add(_timed_work(clock, starts, "second", 0.01)),
        queue.add(_timed_work(clock, starts, "third", 0.01)),
    )

    assert results == ["first", "second", "third"]
    assert [name for name, _ in starts] == ["first", "second", "third"]
    times = [t for _, t in starts]
    for earlier, later in zip(times, times[1:]):
        assert later - earlier >= 0.1 - 1e-9


@pytest.mark.asyncio
async def test_spacing_holds_in_real_time() -> None:
    queue = AccountQueue("A", delay_ms=50, concurrent_slots=1)
    starts = []

    async def work():
        starts.append(time.monotonic())

    await asyncio.gather(*(queue.add(work) for _ in range(3)))

    assert len(starts) == 3
    for earlier, later in zip(starts, starts[1:]):
        assert later - earlier >= 0.045


@pytest.mark.asyncio
async def test_concurrency_never_exceeds_slots() -> None:
    queue = AccountQueue("A", delay_ms=0, concurrent_slots=2)
    running = 0
    peak = 0

    async def work():
        nonlocal running, peak
        running += 1
        peak = max(peak, running)
        await asyncio.sleep(0.01)
        running -= 1

    await asyncio.gather(*(queue.add(work) for _ in range(6)))

    assert peak == 2
    assert queue.active == 0
    assert queue.pending == 0


@pytest.mark.asyncio
async def test_failure_does_not_poison_queue(clock) -> None:
    queue = AccountQueue("A", delay_ms=100, clock=clock, sleep=clock.sleep)

    async def boom():
        raise ValueError("boom")

    async def ok():
        return "ok"

    results = await asyncio.gather(queue.add(boom), queue.add(ok), return_exceptions=True)

    assert isinstance(results[0], ValueError)
    assert results[1] == "ok"
    assert await queue.add(ok) == "ok"


@pytest.mark.asyncio
async def test_disabled_queue_runs_immediately(clock) -> None:
    queue = AccountQueue("A", delay_ms=1000, enabled=False,
                         clock=clock, sleep=clock.sleep)

    async def work():
        return "direct"

    assert await queue.add(work) == "direct"
    assert await queue.add(work) == "direct"
    assert clock.sleeps == []


@pytest.mark.asyncio
async def test_registry_creates_one_queue_per_alias(clock) -> None:
    registry = QueueRegistry(clock=clock, sleep=clock.sleep)
    account = make_account("A", throttled=True)

    assert registry.get(account) is registry.get(account)
    assert "A" in registry
    assert len(registry) == 1


@pytest.mark.asyncio
async def test_registry_bypasses_queue_when_rate_limit_disabled(clock) -> None:
    registry = QueueRegistry(clock=clock, sleep=clock.sleep)
    account = make_account("A", throttled=False)

    async def work():
        return 42

    assert await registry.submit(account, work) == 42
    assert "A" not in registry


def test_queue_from_account_policy() -> None:
    account = make_account("A", throttled=True)
    queue = AccountQueue.from_policy(account.alias, account.rate_limit)

    assert queue.name == "A"
    assert queue.enabled
    assert queue.concurrent_slots == 1


@pytest.mark.asyncio
async def test_spacing_applies_with_several_slots() -> None:
    queue = AccountQueue("A", delay_ms=50, concurrent_slots=2)
    starts = []
    running = 0
    peak = 0

    async def work():
        nonlocal running, peak
        starts.append(time.monotonic())
        running += 1
        peak = max(peak, running)
        await asyncio.sleep(0.25)
        running -= 1

    await asyncio.gather(*(queue.add(work) for _ in range(4)))

    assert peak == 2
    for earlier, later in zip(starts, starts[1:]):
        assert later - earlier >= 0.045
    # The third unit waits for a free slot, not just for the spacing
    assert starts[2] - starts[0] >= 0.24
