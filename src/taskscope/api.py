from __future__ import annotations

from collections.abc import Callable
from concurrent.futures import Executor
from typing import Any, TypeVar

from . import config as config_module
from .config import RuntimeConfig
from .dispatchers import Dispatcher, ExecutorDispatcher, LoopDispatcher
from .dispatchers import as_dispatcher as _as_dispatcher
from .dispatchers import fixed_pool as _fixed_pool
from .dispatchers.loop import get_default_dispatcher, reset_default_dispatcher
from .dispatchers.threading import get_io_dispatcher, reset_io_dispatcher
from .jobs import Deferred, Job
from .jobs import await_all as _await_all
from .jobs import join_all as _join_all
from .scope import Scope
from .scope import run_blocking as _run_blocking
from .scope import with_context as _with_context

T = TypeVar("T")


def run_blocking(
    body: Callable[..., Any],
    /,
    *args: Any,
    dispatcher: Dispatcher | None = None,
    name: str | None = None,
    **kwargs: Any,
) -> Any:
    """Run ``body(scope, ...)`` in a new scope, blocking until it and its jobs finish.

    >>> async def body(scope):
    ...     answer = scope.async_(lambda: 6 * 7)
    ...     return await answer
    >>> run_blocking(body)
    42
    >>> import threading
    >>> async def where(scope):
    ...     return threading.current_thread().name
    >>> run_blocking(where, dispatcher=default_dispatcher()).startswith("taskscope-default")
    True
    >>> reset()
    """

    return _run_blocking(body, *args, dispatcher=dispatcher, name=name, **kwargs)


def launch(
    scope: Scope,
    func: Callable[..., Any],
    /,
    *args: Any,
    dispatcher: Dispatcher | None = None,
    name: str | None = None,
    **kwargs: Any,
) -> Job:
    """Fire-and-forget *func* inside *scope*; the scope still waits for it.

    >>> import asyncio
    >>> seen = []
    >>> async def record(value):
    ...     await asyncio.sleep(0.01)
    ...     seen.append(value)
    >>> async def body(scope):
    ...     launch(scope, record, "two")
    ...     seen.append("one")
    >>> run_blocking(body)
    >>> seen
    ['one', 'two']
    """

    return scope.launch(func, *args, dispatcher=dispatcher, name=name, **kwargs)


def async_(
    scope: Scope,
    func: Callable[..., Any],
    /,
    *args: Any,
    dispatcher: Dispatcher | None = None,
    name: str | None = None,
    **kwargs: Any,
) -> Deferred[Any]:
    """Start *func* inside *scope* and return a :class:`Deferred` for its result.

    >>> async def body(scope):
    ...     first = async_(scope, pow, 2, 5)
    ...     second = async_(scope, pow, 3, 2)
    ...     return await await_(first) + await await_(second)
    >>> run_blocking(body)
    41
    """

    return scope.async_(func, *args, dispatcher=dispatcher, name=name, **kwargs)


async def join(job: Job) -> None:
    """Suspend until *job* is terminal; discards its result.

    >>> async def body(scope):
    ...     job = launch(scope, lambda: "ignored")
    ...     return await join(job), job.state
    >>> run_blocking(body)
    (None, 'completed')
    """

    await job.join()


async def await_(deferred: Deferred[T]) -> T:
    """Suspend until *deferred* is terminal and return its result or raise its failure.

    >>> async def body(scope):
    ...     return await await_(async_(scope, str.upper, "done"))
    >>> run_blocking(body)
    'DONE'
    """

    return await deferred.await_()


async def join_all(*jobs: Job) -> None:
    """Suspend until every job is terminal."""

    await _join_all(*jobs)


async def await_all(*deferreds: Deferred[Any]) -> list[Any]:
    """Await several deferreds, returning results in argument order.

    >>> async def body(scope):
    ...     return await await_all(*(async_(scope, abs, n) for n in (-1, -2, -3)))
    >>> run_blocking(body)
    [1, 2, 3]
    """

    return await _await_all(*deferreds)


async def with_context(
    dispatcher: Dispatcher | None,
    func: Callable[..., Any],
    /,
    *args: Any,
    **kwargs: Any,
) -> Any:
    """Run *func* on *dispatcher*, suspending the caller until the result is back.

    >>> async def body(scope):
    ...     return await with_context(io_dispatcher(), sum, [1, 2, 3])
    >>> run_blocking(body)
    6
    >>> reset()
    """

    return await _with_context(dispatcher, func, *args, **kwargs)


def default_dispatcher() -> LoopDispatcher:
    """Expose the process-wide default dispatcher.

    >>> default_dispatcher() is default_dispatcher()
    True
    >>> reset()
    """

    return get_default_dispatcher()


def io_dispatcher() -> ExecutorDispatcher:
    """Expose the shared dispatcher meant for blocking IO.

    >>> io_dispatcher().submit(lambda: "hello").result()
    'hello'
    >>> reset()
    """

    return get_io_dispatcher()


def fixed_pool(max_workers: int, *, name: str | None = None) -> LoopDispatcher:
    """Create a custom dispatcher that the caller must shut down.

    >>> with fixed_pool(2, name="custom") as pool:
    ...     pool.submit(lambda: 1 + 1).result()
    2
    >>> pool.is_shutdown
    True
    """

    return _fixed_pool(max_workers, name=name)


def as_dispatcher(
    executor: Executor, *, name: str | None = None, owns_executor: bool = True
) -> ExecutorDispatcher:
    """Adapt a :class:`concurrent.futures.Executor` into a dispatcher.

    >>> from concurrent.futures import ThreadPoolExecutor
    >>> dispatcher = as_dispatcher(ThreadPoolExecutor(max_workers=1))
    >>> dispatcher.submit(len, "four").result()
    4
    >>> dispatcher.shutdown()
    """

    return _as_dispatcher(executor, name=name, owns_executor=owns_executor)


def reset(*, cancel_pending: bool = False) -> None:
    """Tear down the shared dispatchers so they are rebuilt on next use.

    Use this helper in tests or long-lived processes when you need to ensure
    pools are recreated with fresh configuration.

    >>> reset()
    """

    reset_default_dispatcher(cancel_pending=cancel_pending)
    reset_io_dispatcher(cancel_pending=cancel_pending)


def configure(config: RuntimeConfig | None) -> None:
    """Replace the runtime configuration and rebuild the shared dispatchers.

    >>> configure(RuntimeConfig(default_workers=1, thread_name_prefix="demo"))
    >>> default_dispatcher().name
    'demo-default'
    >>> configure(None)
    """

    reset()
    config_module.set_config(config)
