"""Handles to scheduled task bodies.

A :class:`Job` wraps either an :class:`asyncio.Future` living on a scope's
event loop or a :class:`concurrent.futures.Future` produced by a dispatcher,
and exposes the same small surface for both. :class:`Deferred` adds the
result-returning ``await``.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import weakref
from collections.abc import Generator
from typing import TYPE_CHECKING, Any, Generic, Literal, TypeVar

from .events import JobEvent, JobEventKind, emit

if TYPE_CHECKING:
    from .scope import Scope

T = TypeVar("T")

JobState = Literal["pending", "completed", "failed", "cancelled"]

AnyFuture = asyncio.Future[Any] | concurrent.futures.Future[Any]


class Job:
    """Handle to a launched task body; await it (or :meth:`join`) for completion."""

    def __init__(
        self,
        future: AnyFuture,
        *,
        name: str,
        scope: Scope | None = None,
        dispatcher: str | None = None,
    ) -> None:
        self._future = future
        self._name = name
        self._scope_ref = weakref.ref(scope) if scope is not None else None
        self._dispatcher = dispatcher

    @property
    def name(self) -> str:
        return self._name

    @property
    def scope(self) -> Scope | None:
        """Owning scope, or ``None`` for unstructured jobs or collected scopes."""

        return self._scope_ref() if self._scope_ref is not None else None

    @property
    def dispatcher(self) -> str | None:
        return self._dispatcher

    @property
    def state(self) -> JobState:
        future = self._future
        if not future.done():
            return "pending"
        if future.cancelled():
            return "cancelled"
        return "failed" if future.exception() is not None else "completed"

    @property
    def done(self) -> bool:
        return self._future.done()

    def result(self) -> Any:
        """Return the body's result once completed.

        Raises:
            RuntimeError: If the job has not finished yet.
            asyncio.CancelledError: If the job was cancelled.
            Exception: Whatever the body raised.
        """

        if not self._future.done():
            raise RuntimeError(f"job {self._name!r} is still pending")
        if self._future.cancelled():
            raise asyncio.CancelledError(f"job {self._name!r} was cancelled")
        return self._future.result()

    def exception(self) -> BaseException | None:
        """Return the body's failure, or ``None`` if pending, cancelled or successful."""

        if not self._future.done() or self._future.cancelled():
            return None
        return self._future.exception()

    def cancel(self) -> bool:
        """Request cancellation; ``False`` when the job already finished."""

        return self._future.cancel()

    async def join(self) -> None:
        """Suspend until the job is terminal. Never raises the job's failure.

        Cancelling the joiner leaves the job itself running.
        """

        await asyncio.wait({self._awaitable()})

    def __await__(self) -> Generator[Any, None, None]:
        return self.join().__await__()

    def _awaitable(self) -> asyncio.Future[Any]:
        if isinstance(self._future, concurrent.futures.Future):
            wrapped = asyncio.wrap_future(self._future)
            wrapped.add_done_callback(_consume_exception)
            return wrapped
        return self._future

    def _reclaim_failure(self) -> BaseException | None:
        """Return this job's failure if its scope interrupted the caller for it."""

        failure = self.exception()
        scope = self.scope
        if failure is None or scope is None:
            return None
        return failure if scope._claim_interrupt(failure) else None

    def _watch(self) -> None:
        """Publish lifecycle events for this job."""

        emit(self._event("launched"))
        self._future.add_done_callback(self._on_done)

    def _on_done(self, _future: AnyFuture) -> None:
        emit(self._event(self.state, self.exception()))  # type: ignore[arg-type]

    def _event(self, kind: JobEventKind, error: BaseException | None = None) -> JobEvent:
        scope = self.scope
        return JobEvent(
            kind=kind,
            job=self._name,
            scope=scope.name if scope is not None else None,
            dispatcher=self._dispatcher,
            error=error,
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self._name!r}, state={self.state})"


class Deferred(Job, Generic[T]):
    """A :class:`Job` whose result is fetched by awaiting it."""

    async def await_(self) -> T:
        """Suspend until terminal, then return the result or raise the failure."""

        try:
            await self.join()
        except asyncio.CancelledError:
            failure = self._reclaim_failure()
            if failure is None:
                raise
            raise failure
        return self.result()

    def __await__(self) -> Generator[Any, None, T]:
        return self.await_().__await__()


async def join_all(*jobs: Job) -> None:
    """Suspend until every job is terminal."""

    for job in jobs:
        await job.join()


async def await_all(*deferreds: Deferred[Any]) -> list[Any]:
    """Await every deferred and return their results in argument order.

    Fails as soon as any of them fails, without waiting for the rest.
    """

    pending = {deferred._awaitable() for deferred in deferreds}
    try:
        while pending:
            done, pending = await asyncio.wait(
                pending, return_when=asyncio.FIRST_EXCEPTION
            )
            for waiter in done:
                if not waiter.cancelled() and waiter.exception() is not None:
                    raise waiter.exception()  # type: ignore[misc]
    except asyncio.CancelledError:
        for deferred in deferreds:
            failure = deferred._reclaim_failure()
            if failure is not None:
                raise failure
        raise
    return [deferred.result() for deferred in deferreds]


def _consume_exception(future: asyncio.Future[Any]) -> None:
    # Failures are reported through the job itself, not the loop-local wrapper.
    if not future.cancelled():
        future.exception()


__all__ = ["Job", "Deferred", "JobState", "join_all", "await_all"]
