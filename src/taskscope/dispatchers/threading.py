from __future__ import annotations

import atexit
import logging
from collections.abc import Callable
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from threading import Lock
from typing import Any

from ..capabilities import detect_capabilities
from ..config import get_config
from ..errors import DispatcherShutdownError
from .base import Dispatcher, call_blocking

logger = logging.getLogger(__name__)

_IO_DISPATCHER: ExecutorDispatcher | None = None
_LOCK = Lock()


class ExecutorDispatcher(Dispatcher):
    """Adapt a :class:`concurrent.futures.Executor` into a dispatcher.

    Plain callables run as-is on the executor's threads. Coroutine bodies are
    driven to completion with :func:`asyncio.run` on the worker, so their
    suspensions hold that worker until they finish.

    Only dispatchers that own their executor shut it down; wrapping a
    caller-managed executor leaves its lifecycle with the caller.
    """

    def __init__(
        self,
        executor: Executor,
        *,
        name: str | None = None,
        owns_executor: bool = False,
    ) -> None:
        super().__init__(name or f"executor-{id(executor):x}")
        self._executor = executor
        self._owns_executor = owns_executor

    @property
    def executor(self) -> Executor:
        return self._executor

    @property
    def capacity(self) -> int:
        max_workers = getattr(self._executor, "_max_workers", None)
        return max_workers if isinstance(max_workers, int) else 1

    def _dispatch(
        self,
        func: Callable[..., Any],
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
    ) -> Future[Any]:
        try:
            return self._executor.submit(call_blocking, func, *args, **kwargs)
        except RuntimeError as exc:
            # The wrapped executor was shut down behind our back.
            self._shutdown = True
            raise DispatcherShutdownError(self._name) from exc

    def shutdown(self, wait: bool = True, *, cancel_pending: bool = False) -> None:
        first = self._mark_shutdown(cancel_pending=cancel_pending)
        if first:
            logger.debug("dispatcher %s shutting down", self._name)
        if self._owns_executor:
            self._executor.shutdown(wait=wait, cancel_futures=cancel_pending)


def as_dispatcher(
    executor: Executor,
    *,
    name: str | None = None,
    owns_executor: bool = True,
) -> ExecutorDispatcher:
    """Wrap *executor*; by default shutting the dispatcher shuts the executor."""

    return ExecutorDispatcher(executor, name=name, owns_executor=owns_executor)


def get_io_dispatcher() -> ExecutorDispatcher:
    """Return the shared dispatcher for blocking IO, creating it on first use.

    It owns a :class:`ThreadPoolExecutor` sized from the active
    :class:`~taskscope.config.RuntimeConfig`. A shared dispatcher that a
    caller shut down is replaced by a fresh one.
    """

    global _IO_DISPATCHER
    with _LOCK:
        if _IO_DISPATCHER is None or _IO_DISPATCHER.is_shutdown:
            config = get_config()
            workers = config.io_workers or detect_capabilities().suggested_io_workers
            prefix = f"{config.thread_name_prefix}-io"
            pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix=prefix)
            _IO_DISPATCHER = ExecutorDispatcher(pool, name=prefix, owns_executor=True)
            logger.debug("started io dispatcher %s with %d workers", prefix, workers)
        return _IO_DISPATCHER


def reset_io_dispatcher(*, cancel_pending: bool = False) -> None:
    """Tear down the shared IO dispatcher and its pool if created."""

    global _IO_DISPATCHER
    with _LOCK:
        dispatcher = _IO_DISPATCHER
        _IO_DISPATCHER = None
    if dispatcher is not None:
        dispatcher.shutdown(wait=True, cancel_pending=cancel_pending)


atexit.register(reset_io_dispatcher)
