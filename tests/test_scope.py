from __future__ import annotations

import asyncio
import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from taskscope import (
    LoopDispatcher,
    Scope,
    ScopeClosedError,
    as_dispatcher,
    checkpoint,
    default_dispatcher,
    fixed_pool,
    run_blocking,
    with_context,
)


class Boom(Exception):
    pass


async def _fail_after(delay: float) -> None:
    await asyncio.sleep(delay)
    raise Boom(f"failed after {delay}")


def test_run_blocking_returns_body_result() -> None:
    async def body(scope: Scope, left: int, *, right: int) -> int:
        return left + right

    assert run_blocking(body, 1, right=2) == 3


def test_run_blocking_accepts_plain_callables() -> None:
    assert run_blocking(lambda scope: scope.name, name="plain") == "plain"


def test_scope_waits_for_launched_jobs() -> None:
    events: list[str] = []

    async def child() -> None:
        await asyncio.sleep(0.05)
        events.append("child")

    async def body(scope: Scope) -> None:
        scope.launch(child)
        events.append("body")

    run_blocking(body)
    assert events == ["body", "child"]


def test_children_may_launch_siblings_while_scope_exits() -> None:
    events: list[str] = []

    async def grandchild() -> None:
        await asyncio.sleep(0.02)
        events.append("grandchild")

    async def body(scope: Scope) -> None:
        async def child() -> None:
            await asyncio.sleep(0.02)
            scope.launch(grandchild)

        scope.launch(child)

    run_blocking(body)
    assert events == ["grandchild"]


def test_failure_cancels_siblings_and_surfaces() -> None:
    jobs = {}

    async def body(scope: Scope) -> None:
        jobs["slow"] = scope.launch(asyncio.sleep, 10)
        jobs["bad"] = scope.launch(_fail_after, 0.01)
        await asyncio.sleep(10)

    with pytest.raises(Boom):
        run_blocking(body)
    assert jobs["slow"].state == "cancelled"
    assert jobs["bad"].state == "failed"


def test_failure_is_observed_at_await() -> None:
    caught: list[BaseException] = []

    async def body(scope: Scope) -> None:
        deferred = scope.async_(_fail_after, 0.01)
        try:
            await deferred
        except Boom as exc:
            caught.append(exc)
            raise

    with pytest.raises(Boom):
        run_blocking(body)
    assert len(caught) == 1


def test_first_failure_wins() -> None:
    async def body(scope: Scope) -> None:
        scope.launch(_fail_after, 0.01)
        scope.launch(_fail_after, 0.01)

    with pytest.raises(Boom, match="failed after 0.01"):
        run_blocking(body)


def test_body_failure_cancels_children() -> None:
    jobs = []

    async def body(scope: Scope) -> None:
        jobs.append(scope.launch(asyncio.sleep, 10))
        await checkpoint()
        raise Boom("body")

    with pytest.raises(Boom, match="body"):
        run_blocking(body)
    assert jobs[0].state == "cancelled"


def test_cancel_stops_children_and_raises_cancelled() -> None:
    jobs = []

    async def main() -> None:
        async with Scope() as scope:
            jobs.append(scope.launch(asyncio.sleep, 10))
            scope.cancel()
            assert scope.is_cancelled
            await asyncio.sleep(10)

    with pytest.raises(asyncio.CancelledError):
        asyncio.run(main())
    assert jobs[0].state == "cancelled"


def test_external_cancellation_propagates_through_scope() -> None:
    jobs = []

    async def inner() -> None:
        async with Scope() as scope:
            jobs.append(scope.launch(asyncio.sleep, 10))
            await asyncio.sleep(10)

    async def main() -> str:
        task = asyncio.create_task(inner())
        await asyncio.sleep(0.02)
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            return "cancelled"
        return "finished"

    assert asyncio.run(main()) == "cancelled"
    assert jobs[0].state == "cancelled"


def test_launch_outside_scope_lifetime_raises() -> None:
    async def main() -> Scope:
        scope = Scope()
        with pytest.raises(ScopeClosedError):
            scope.launch(lambda: None)
        async with scope:
            pass
        with pytest.raises(ScopeClosedError):
            scope.async_(lambda: None)
        return scope

    scope = asyncio.run(main())
    assert not scope.is_active
    assert "closed" in repr(scope)


def test_scope_cannot_be_entered_twice() -> None:
    async def main() -> None:
        scope = Scope()
        async with scope:
            with pytest.raises(RuntimeError):
                async with scope:
                    pass

    asyncio.run(main())


def test_run_blocking_inside_running_loop_raises() -> None:
    async def main() -> None:
        with pytest.raises(RuntimeError):
            run_blocking(lambda scope: None)

    asyncio.run(main())


def test_run_blocking_on_dispatcher_blocks_caller() -> None:
    async def body(scope: Scope) -> str:
        await asyncio.sleep(0.02)
        return threading.current_thread().name

    name = run_blocking(body, dispatcher=default_dispatcher())
    assert name.startswith("taskscope-default-worker-")


def test_launch_on_dispatcher_runs_on_its_threads() -> None:
    names: list[str] = []

    async def record() -> None:
        await asyncio.sleep(0.02)
        names.append(threading.current_thread().name)

    pool = fixed_pool(2, name="custom-pool")

    async def body(scope: Scope) -> None:
        job = scope.launch(record, dispatcher=pool)
        assert job.dispatcher == "custom-pool"
        assert job.scope is scope

    try:
        run_blocking(body)
    finally:
        pool.shutdown()
    assert names == ["custom-pool-worker-1"]


def test_dispatched_failure_surfaces_from_scope() -> None:
    with fixed_pool(1) as pool:

        async def body(scope: Scope) -> None:
            await scope.async_(_fail_after, 0.01, dispatcher=pool)

        with pytest.raises(Boom):
            run_blocking(body)


def test_with_context_runs_sequentially_and_returns_value() -> None:
    async def body(scope: Scope) -> list[str]:
        first = await with_context(
            default_dispatcher(), lambda: threading.current_thread().name
        )
        second = await with_context(None, lambda: threading.current_thread().name)
        return [first, second]

    first, second = run_blocking(body)
    assert first.startswith("taskscope-default-worker-")
    assert second == threading.current_thread().name


def test_with_context_propagates_failure() -> None:
    async def body(scope: Scope) -> None:
        await with_context(default_dispatcher(), _fail_after, 0.0)

    with pytest.raises(Boom):
        run_blocking(body)


@pytest.mark.parametrize("pause", [None, 0.05])
def test_failed_scope_waits_for_running_executor_body(pause: float | None) -> None:
    events: list[str] = []

    def blocking() -> None:
        events.append("started")
        time.sleep(0.3)
        events.append("blocking")

    async def body(scope: Scope) -> None:
        scope.launch(blocking, dispatcher=dispatcher)
        if pause is not None:
            await asyncio.sleep(pause)
        raise Boom("scope body")

    with as_dispatcher(ThreadPoolExecutor(max_workers=2)) as dispatcher:
        with pytest.raises(Boom):
            run_blocking(body)
        # A started blocking body cannot be interrupted, so the scope outlives it.
        assert events in ([], ["started", "blocking"])
        if pause is not None:
            assert events == ["started", "blocking"]
        assert dispatcher.pending == 0


@pytest.mark.parametrize("pause", [None, 0.05])
def test_failed_scope_cancels_and_awaits_loop_body(pause: float | None) -> None:
    events: list[str] = []

    async def slow() -> None:
        events.append("started")
        try:
            await asyncio.sleep(0.3)
            events.append("slow")
        finally:
            await asyncio.sleep(0.05)
            events.append("unwound")

    async def body(scope: Scope) -> None:
        scope.launch(slow, dispatcher=pool)
        if pause is not None:
            await asyncio.sleep(pause)
        raise Boom("scope body")

    with fixed_pool(1) as pool:
        with pytest.raises(Boom):
            run_blocking(body)
        assert events in ([], ["started", "unwound"])
        assert pool.pending == 0
        time.sleep(0.4)
    assert "slow" not in events


def test_failed_sibling_cancels_dispatched_job_before_scope_returns() -> None:
    events: list[str] = []
    jobs = {}

    async def slow() -> None:
        try:
            await asyncio.sleep(10)
        finally:
            await asyncio.sleep(0.05)
            events.append("unwound")

    async def body(scope: Scope) -> None:
        jobs["remote"] = scope.launch(slow, dispatcher=pool)
        scope.launch(_fail_after, 0.05)
        await asyncio.sleep(10)

    with fixed_pool(1) as pool:
        with pytest.raises(Boom):
            run_blocking(body)
        assert events == ["unwound"]
    assert jobs["remote"].state == "cancelled"


def test_cancelled_scope_waits_for_dispatched_body_to_unwind() -> None:
    events: list[str] = []

    async def slow() -> None:
        try:
            await asyncio.sleep(10)
        finally:
            await asyncio.sleep(0.05)
            events.append("unwound")

    async def main(pool: LoopDispatcher) -> None:
        async with Scope() as scope:
            scope.launch(slow, dispatcher=pool)
            await asyncio.sleep(0.05)
            scope.cancel()
            await asyncio.sleep(10)

    with fixed_pool(1) as pool:
        with pytest.raises(asyncio.CancelledError):
            asyncio.run(main(pool))
        assert events == ["unwound"]


def test_cancelled_with_context_waits_for_dispatched_body() -> None:
    events: list[str] = []

    async def slow() -> None:
        try:
            await asyncio.sleep(10)
        finally:
            await asyncio.sleep(0.05)
            events.append("unwound")

    async def main(pool: LoopDispatcher) -> list[str]:
        task = asyncio.create_task(with_context(pool, slow))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        return list(events)

    with fixed_pool(1) as pool:
        assert asyncio.run(main(pool)) == ["unwound"]
