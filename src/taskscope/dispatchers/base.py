from __future__ import annotations

import asyncio
import inspect
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from concurrent.futures import Future
from threading import Lock
from typing import Any, ParamSpec, TypeVar

from ..errors import DispatcherShutdownError

T = TypeVar("T")
P = ParamSpec("P")


async def invoke(func: Callable[..., Any], /, *args: Any, **kwargs: Any) -> Any:
    """Call *func* and await its result when it hands back an awaitable."""

    result = func(*args, **kwargs)
    if inspect.isawaitable(result):
        return await result
    return result


def call_blocking(func: Callable[..., Any], /, *args: Any, **kwargs: Any) -> Any:
    """Call *func* on the current thread, driving awaitables with ``asyncio.run``."""

    result = func(*args, **kwargs)
    if inspect.isawaitable(result):
        return asyncio.run(_resolve(result))
    return result


async def _resolve(awaitable: Awaitable[T]) -> T:
    return await awaitable


class Dispatcher(ABC):
    """Where a task body physically executes.

    Subclasses hand work to their threads through :meth:`submit`, which
    mirrors :meth:`concurrent.futures.Executor.submit` and returns a plain
    :class:`concurrent.futures.Future`. Bodies may be coroutine functions or
    ordinary callables.
    """

    def __init__(self, name: str) -> None:
        self._name = name
        self._lock = Lock()
        self._shutdown = False
        self._outstanding: set[Future[Any]] = set()

    @property
    def name(self) -> str:
        return self._name

    @property
    @abstractmethod
    def capacity(self) -> int:
        """Number of worker threads backing the dispatcher."""

    @property
    def is_shutdown(self) -> bool:
        return self._shutdown

    @property
    def pending(self) -> int:
        """Submissions that have not reached a terminal state yet."""

        with self._lock:
            return len(self._outstanding)

    def submit(
        self, func: Callable[P, T], /, *args: P.args, **kwargs: P.kwargs
    ) -> Future[T]:
        with self._lock:
            if self._shutdown:
                raise DispatcherShutdownError(self._name)
            future = self._dispatch(func, args, kwargs)
            self._outstanding.add(future)
        future.add_done_callback(self._forget)
        return future

    def settled(self, future: Future[Any]) -> Future[Any]:
        """Return a future that completes once the body behind *future* stopped running.

        A running executor body cannot be cancelled, so by default its own
        future already marks the moment the body is gone.
        """

        return future

    @abstractmethod
    def _dispatch(
        self,
        func: Callable[..., Any],
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
    ) -> Future[Any]:
        """Schedule *func* on a worker; called with the dispatcher lock held."""

    @abstractmethod
    def shutdown(self, wait: bool = True, *, cancel_pending: bool = False) -> None:
        """Stop accepting work and release the worker threads."""

    def _mark_shutdown(self, *, cancel_pending: bool) -> bool:
        """Flip the dispatcher into shutdown; ``True`` for the first caller only."""

        with self._lock:
            first = not self._shutdown
            self._shutdown = True
            outstanding = list(self._outstanding)
        if cancel_pending:
            for future in outstanding:
                future.cancel()
        return first

    def _forget(self, future: Future[Any]) -> None:
        with self._lock:
            self._outstanding.discard(future)

    def __enter__(self) -> Dispatcher:
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.shutdown(wait=True)
        return False

    def __repr__(self) -> str:
        state = "shutdown" if self._shutdown else "running"
        return (
            f"{type(self).__name__}(name={self._name!r}, "
            f"capacity={self.capacity}, state={state})"
        )
