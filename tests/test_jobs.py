from __future__ import annotations

import asyncio

import pytest

from taskscope import Deferred, Job, Scope, await_all, join_all, run_blocking


class Boom(Exception):
    pass


async def _fail() -> None:
    await asyncio.sleep(0.01)
    raise Boom("boom")


def test_job_states_follow_body_outcome() -> None:
    async def main() -> tuple[str, str, str]:
        loop = asyncio.get_running_loop()
        ok: asyncio.Future[int] = loop.create_future()
        bad: asyncio.Future[int] = loop.create_future()
        gone: asyncio.Future[int] = loop.create_future()
        ok.set_result(1)
        bad.set_exception(Boom("x"))
        bad.exception()
        gone.cancel()
        jobs = [Job(future, name=str(i)) for i, future in enumerate((ok, bad, gone))]
        return tuple(job.state for job in jobs)  # type: ignore[return-value]

    assert asyncio.run(main()) == ("completed", "failed", "cancelled")


def test_result_before_completion_raises() -> None:
    async def body(scope: Scope) -> None:
        job = scope.async_(asyncio.sleep, 0.05)
        assert job.state == "pending"
        assert not job.done
        with pytest.raises(RuntimeError):
            job.result()
        assert job.exception() is None
        await job

    run_blocking(body)


def test_join_discards_result_and_never_raises() -> None:
    seen: list[str] = []

    async def body(scope: Scope) -> None:
        job = scope.launch(_fail)
        job.cancel()
        assert await job.join() is None
        seen.append(job.state)

    run_blocking(body)
    assert seen == ["cancelled"]


def test_deferred_returns_result_on_await() -> None:
    async def body(scope: Scope) -> int:
        deferred = scope.async_(lambda: 7)
        assert isinstance(deferred, Deferred)
        first = await deferred
        # Awaiting again gives the same value.
        second = await deferred.await_()
        return first + second

    assert run_blocking(body) == 14


def test_cancelled_deferred_raises_cancelled_error() -> None:
    async def body(scope: Scope) -> str:
        deferred = scope.async_(asyncio.sleep, 10)
        deferred.cancel()
        try:
            await deferred
        except asyncio.CancelledError:
            return deferred.state
        return "not cancelled"

    assert run_blocking(body) == "cancelled"


def test_join_all_waits_for_every_job() -> None:
    async def body(scope: Scope) -> list[str]:
        jobs = [scope.launch(asyncio.sleep, delay) for delay in (0.03, 0.01, 0.02)]
        await join_all(*jobs)
        return [job.state for job in jobs]

    assert run_blocking(body) == ["completed"] * 3


def test_await_all_keeps_argument_order() -> None:
    async def later(value: int, delay: float) -> int:
        await asyncio.sleep(delay)
        return value

    async def body(scope: Scope) -> list[int]:
        return await await_all(
            scope.async_(later, 1, 0.03),
            scope.async_(later, 2, 0.01),
            scope.async_(later, 3, 0.02),
        )

    assert run_blocking(body) == [1, 2, 3]


def test_await_all_surfaces_first_failure() -> None:
    async def body(scope: Scope) -> None:
        slow = scope.async_(asyncio.sleep, 10)
        await await_all(slow, scope.async_(_fail))

    with pytest.raises(Boom):
        run_blocking(body)


def test_job_repr_mentions_state() -> None:
    async def body(scope: Scope) -> str:
        job = scope.launch(lambda: None)
        await job
        return repr(job)

    text = run_blocking(body, name="repr")
    assert text.startswith("Job(name='repr/job-")
    assert "state=completed" in text
