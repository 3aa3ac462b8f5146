from __future__ import annotations

import asyncio

import pytest

from agent_relay.pipeline import DedupeTimeoutError, RequestDeduplicator, dedupe_key


def test_dedupe_key_depends_on_session_and_exact_question() -> None:
    assert dedupe_key("s1", "Reset password?") == dedupe_key("s1", "Reset password?")
    assert dedupe_key("s1", "Reset password?") != dedupe_key("s2", "Reset password?")
    assert dedupe_key("s1", "Reset password?") != dedupe_key("s1", "reset password?")
    assert dedupe_key(None, "q") == dedupe_key("", "q")


@pytest.mark.asyncio
async def test_concurrent_callers_share_one_operation() -> None:
    deduplicator = RequestDeduplicator(timeout_s=5)
    calls = 0

    async def operation() -> str:
        nonlocal calls
        calls += 1
        await asyncio.sleep(0.02)
        return f"result-{calls}"

    results = await asyncio.gather(*(deduplicator.run("k", operation) for _ in range(5)))

    assert calls == 1
    assert results == ["result-1"] * 5
    assert deduplicator.in_flight() == 0


@pytest.mark.asyncio
async def test_entry_is_evicted_after_completion() -> None:
    deduplicator = RequestDeduplicator(timeout_s=5)
    calls = 0

    async def operation() -> int:
        nonlocal calls
        calls += 1
        return calls

    assert await deduplicator.run("k", operation) == 1
    assert await deduplicator.run("k", operation) == 2


@pytest.mark.asyncio
async def test_failure_reaches_every_waiter_and_is_evicted() -> None:
    deduplicator = RequestDeduplicator(timeout_s=5)

    async def operation() -> None:
        await asyncio.sleep(0.01)
        raise RuntimeError("upstream down")

    results = await asyncio.gather(
        *(deduplicator.run("k", operation) for _ in range(3)), return_exceptions=True
    )

    assert all(isinstance(item, RuntimeError) for item in results)
    assert deduplicator.in_flight() == 0


@pytest.mark.asyncio
async def test_shared_bound_raises_dedupe_timeout_to_all_waiters() -> None:
    deduplicator = RequestDeduplicator(timeout_s=0.05)

    async def operation() -> None:
        await asyncio.sleep(5)

    results = await asyncio.gather(
        *(deduplicator.run("k", operation) for _ in range(3)), return_exceptions=True
    )

    assert all(isinstance(item, DedupeTimeoutError) for item in results)
    assert deduplicator.in_flight() == 0


@pytest.mark.asyncio
async def test_cancelled_caller_does_not_cancel_shared_work() -> None:
    deduplicator = RequestDeduplicator(timeout_s=5)

    async def operation() -> str:
        await asyncio.sleep(0.05)
        return "done"

    impatient = asyncio.create_task(deduplicator.run("k", operation))
    patient = asyncio.create_task(deduplicator.run("k", operation))
    await asyncio.sleep(0.01)
    impatient.cancel()

    assert await patient == "done"
    with pytest.raises(asyncio.CancelledError):
        await impatient
