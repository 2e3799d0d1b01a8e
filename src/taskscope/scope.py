"""Scopes: lifetime boundaries that decide who waits for launched work.

:class:`Scope` is structured. It tracks every job launched into it and its
exit does not complete until all of them are terminal. The first failure
cancels the siblings, interrupts the scope body and is re-raised from the
scope. :class:`GlobalScope` is the unstructured counterpart: it hands work
straight to a dispatcher and nobody waits for it.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import functools
import itertools
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, TypeVar

from .dispatchers import Dispatcher, get_default_dispatcher, invoke
from .errors import ScopeClosedError
from .jobs import Deferred, Job

if TYPE_CHECKING:
    from types import TracebackType

T = TypeVar("T")
JobT = TypeVar("JobT", bound=Job)

logger = logging.getLogger(__name__)

_SCOPE_IDS = itertools.count(1)
_JOB_IDS = itertools.count(1)


class Scope:
    """Structured scope bound to the event loop it is entered on.

    Example:
        >>> async def main() -> int:
        ...     async with Scope() as scope:
        ...         first = scope.async_(lambda: 20)
        ...         second = scope.async_(lambda: 22)
        ...         return await first + await second
        >>> asyncio.run(main())
        42

    Jobs launched without a dispatcher run on the scope's own loop; with one
    they run on the dispatcher's threads while the scope keeps a local task
    tracking them. Jobs may be launched until the scope has closed, including
    from other jobs of the same scope while it is waiting at exit.
    """

    def __init__(self, *, name: str | None = None) -> None:
        self._name = name or f"scope-{next(_SCOPE_IDS)}"
        self._children: set[asyncio.Task[Any]] = set()
        self._settling: set[asyncio.Future[Any]] = set()
        self._jobs: list[Job] = []
        self._loop: asyncio.AbstractEventLoop | None = None
        self._host: asyncio.Task[Any] | None = None
        self._entered = False
        self._closed = False
        self._body_active = False
        self._interrupt_pending = False
        self._cancel_requested = False
        self._failure: BaseException | None = None

    @property
    def name(self) -> str:
        return self._name

    @property
    def jobs(self) -> list[Job]:
        return list(self._jobs)

    @property
    def failure(self) -> BaseException | None:
        """First failure recorded by the scope, if any."""

        return self._failure

    @property
    def is_active(self) -> bool:
        return self._entered and not self._closed

    @property
    def is_cancelled(self) -> bool:
        return self._cancel_requested or self._failure is not None

    def launch(
        self,
        func: Callable[..., Any],
        /,
        *args: Any,
        dispatcher: Dispatcher | None = None,
        name: str | None = None,
        **kwargs: Any,
    ) -> Job:
        """Start *func* without waiting for it; the scope waits at exit."""

        return self._start(Job, func, args, kwargs, dispatcher, name)

    def async_(
        self,
        func: Callable[..., Any],
        /,
        *args: Any,
        dispatcher: Dispatcher | None = None,
        name: str | None = None,
        **kwargs: Any,
    ) -> Deferred[Any]:
        """Start *func* now and hand back a :class:`Deferred` for its result."""

        return self._start(Deferred, func, args, kwargs, dispatcher, name)

    def cancel(self) -> None:
        """Cancel every child and the scope body; the scope then raises ``CancelledError``."""

        self._ensure_open()
        self._cancel_requested = True
        self._cancel_children()
        if self._body_active and self._loop is not None:
            self._loop.call_soon(self._interrupt_body)

    def _start(
        self,
        job_type: type[JobT],
        func: Callable[..., Any],
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
        dispatcher: Dispatcher | None,
        name: str | None,
    ) -> JobT:
        loop = self._ensure_open()
        remote: concurrent.futures.Future[Any] | None = None
        if dispatcher is None:
            coro = invoke(func, *args, **kwargs)
        else:
            remote = dispatcher.submit(func, *args, **kwargs)
            settled = dispatcher.settled(remote)
            coro = _await_dispatched(remote, settled)
        label = name or f"{self._name}/job-{next(_JOB_IDS)}"
        task = loop.create_task(coro, name=label)
        self._children.add(task)
        task.add_done_callback(self._on_child_done)
        if remote is not None:
            # A task cancelled before its first step never reaches its own cleanup.
            task.add_done_callback(functools.partial(_cancel_if_cancelled, remote))
            waiter = asyncio.wrap_future(settled, loop=loop)
            self._settling.add(waiter)
            waiter.add_done_callback(self._on_remote_settled)
        job = job_type(
            task,
            name=label,
            scope=self,
            dispatcher=dispatcher.name if dispatcher is not None else None,
        )
        self._jobs.append(job)
        job._watch()
        if self.is_cancelled:
            task.cancel()
        return job

    def _ensure_open(self) -> asyncio.AbstractEventLoop:
        if not self._entered or self._closed:
            raise ScopeClosedError(f"scope {self._name!r} is not open")
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        if loop is None or loop is not self._loop:
            raise RuntimeError(
                f"scope {self._name!r} can only be used from its own event loop"
            )
        return loop

    # ------------------------------------------------------------------

    async def __aenter__(self) -> Scope:
        if self._entered:
            raise RuntimeError("Scope cannot be entered multiple times")
        self._entered = True
        self._loop = asyncio.get_running_loop()
        self._host = asyncio.current_task()
        self._body_active = True
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool:
        self._body_active = False
        interrupted = self._interrupt_pending
        if interrupted:
            self._interrupt_pending = False
            if self._host is not None:
                self._host.uncancel()
        external_cancel = False
        if isinstance(exc, asyncio.CancelledError):
            external_cancel = not interrupted
            self._cancel_children()
        elif exc is not None:
            self._record_failure(exc)

        if await self._join_children():
            external_cancel = True
        self._closed = True

        if external_cancel:
            logger.debug("scope %s cancelled from outside", self._name)
            if isinstance(exc, asyncio.CancelledError):
                return False
            raise asyncio.CancelledError()
        if self._failure is not None:
            if self._failure is exc:
                return False
            raise self._failure
        if self._cancel_requested and not isinstance(exc, asyncio.CancelledError):
            raise asyncio.CancelledError()
        return False

    async def _join_children(self) -> bool:
        """Wait out children and remote bodies; ``True`` if the wait itself was cancelled."""

        cancelled = False
        while self._children or self._settling:
            try:
                await asyncio.wait(self._children | self._settling)
            except asyncio.CancelledError:
                cancelled = True
                self._cancel_children()
        return cancelled

    def _on_remote_settled(self, waiter: asyncio.Future[Any]) -> None:
        self._settling.discard(waiter)
        if not waiter.cancelled():
            # Failures reach the scope through the child task.
            waiter.exception()

    def _on_child_done(self, task: asyncio.Task[Any]) -> None:
        self._children.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._record_failure(exc)

    def _record_failure(self, exc: BaseException) -> None:
        if self._failure is not None:
            logger.debug("scope %s ignoring later failure %r", self._name, exc)
            return
        self._failure = exc
        logger.debug(
            "scope %s failed with %r; cancelling %d sibling(s)",
            self._name,
            exc,
            len(self._children),
        )
        self._cancel_children()
        if self._body_active and self._loop is not None:
            self._loop.call_soon(self._interrupt_body)

    def _cancel_children(self) -> None:
        for task in list(self._children):
            task.cancel()

    def _interrupt_body(self) -> None:
        host = self._host
        if not self._body_active or self._interrupt_pending:
            return
        if host is None or host.done():
            return
        self._interrupt_pending = True
        host.cancel()

    def _claim_interrupt(self, failure: BaseException) -> bool:
        """Turn our interruption of the body back into *failure* at an await."""

        if not self._interrupt_pending or failure is not self._failure:
            return False
        if self._host is None or asyncio.current_task() is not self._host:
            return False
        self._interrupt_pending = False
        self._host.uncancel()
        return True

    def __repr__(self) -> str:
        if not self._entered:
            state = "new"
        elif self._closed:
            state = "closed"
        else:
            state = "active"
        return f"Scope(name={self._name!r}, state={state}, jobs={len(self._jobs)})"


class GlobalScope:
    """Unstructured scope: jobs go straight to a dispatcher and nobody waits.

    Jobs default to the shared default dispatcher and may be abandoned when the
    process exits. Failures of launched jobs are logged, never swallowed;
    failures of ``async_`` jobs stay in their :class:`Deferred`.
    """

    name = "global"

    def launch(
        self,
        func: Callable[..., Any],
        /,
        *args: Any,
        dispatcher: Dispatcher | None = None,
        name: str | None = None,
        **kwargs: Any,
    ) -> Job:
        job = self._start(Job, func, args, kwargs, dispatcher, name)
        job._future.add_done_callback(
            lambda future: _report_unhandled(job.name, future)
        )
        return job

    def async_(
        self,
        func: Callable[..., Any],
        /,
        *args: Any,
        dispatcher: Dispatcher | None = None,
        name: str | None = None,
        **kwargs: Any,
    ) -> Deferred[Any]:
        return self._start(Deferred, func, args, kwargs, dispatcher, name)

    def _start(
        self,
        job_type: type[JobT],
        func: Callable[..., Any],
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
        dispatcher: Dispatcher | None,
        name: str | None,
    ) -> JobT:
        target = dispatcher or get_default_dispatcher()
        future = target.submit(func, *args, **kwargs)
        job = job_type(
            future,
            name=name or f"{self.name}/job-{next(_JOB_IDS)}",
            dispatcher=target.name,
        )
        job._watch()
        return job

    def __repr__(self) -> str:
        return "GlobalScope()"


GLOBAL_SCOPE = GlobalScope()


def run_blocking(
    body: Callable[..., Any],
    /,
    *args: Any,
    dispatcher: Dispatcher | None = None,
    name: str | None = None,
    **kwargs: Any,
) -> Any:
    """Run ``body(scope, *args, **kwargs)`` in a fresh :class:`Scope` and block.

    Without a dispatcher the scope runs on a new event loop on the calling
    thread. With one, the whole scope runs on a dispatcher thread while the
    caller waits. Either way the call returns only once every job launched
    into the scope is terminal, and re-raises the scope's first failure.
    """

    try:
        asyncio.get_running_loop()
    except RuntimeError:
        pass
    else:
        raise RuntimeError("run_blocking cannot be called from a running event loop")

    if dispatcher is None:
        return asyncio.run(_run_scope(body, args, kwargs, name))
    future = dispatcher.submit(_run_scope, body, args, kwargs, name)
    try:
        return future.result()
    except concurrent.futures.CancelledError:
        raise asyncio.CancelledError() from None


async def with_context(
    dispatcher: Dispatcher | None,
    func: Callable[..., Any],
    /,
    *args: Any,
    **kwargs: Any,
) -> Any:
    """Run *func* on *dispatcher* and suspend the caller until it returns.

    No handle is produced: the result (or failure) comes back directly, so
    consecutive calls execute one after another. Cancelling the caller
    cancels the dispatched body and waits for it to unwind.
    """

    if dispatcher is None:
        return await invoke(func, *args, **kwargs)
    future = dispatcher.submit(func, *args, **kwargs)
    return await _await_dispatched(future, dispatcher.settled(future))


async def checkpoint() -> None:
    """Cooperative cancellation point: yield once to the event loop."""

    await asyncio.sleep(0)


async def _run_scope(
    body: Callable[..., Any],
    args: tuple[Any, ...],
    kwargs: dict[str, Any],
    name: str | None,
) -> Any:
    async with Scope(name=name) as scope:
        return await invoke(body, scope, *args, **kwargs)


async def _await_dispatched(
    future: concurrent.futures.Future[T],
    settled: concurrent.futures.Future[Any],
) -> T:
    try:
        return await asyncio.wrap_future(future)
    except asyncio.CancelledError:
        future.cancel()
        # The remote body may still be unwinding; stay until it has.
        waiter = asyncio.wrap_future(settled)
        while not waiter.done():
            try:
                await asyncio.wait({waiter})
            except asyncio.CancelledError:
                continue
        if not waiter.cancelled():
            waiter.exception()
        raise


def _cancel_if_cancelled(
    future: concurrent.futures.Future[Any], task: asyncio.Task[Any]
) -> None:
    if task.cancelled():
        future.cancel()


def _report_unhandled(name: str, future: concurrent.futures.Future[Any]) -> None:
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        logger.error("unhandled failure in global job %s", name, exc_info=exc)


__all__ = [
    "Scope",
    "GlobalScope",
    "GLOBAL_SCOPE",
    "run_blocking",
    "with_context",
    "checkpoint",
]
