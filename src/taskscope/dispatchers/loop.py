from __future__ import annotations

import asyncio
import atexit
import itertools
import logging
import threading
from collections.abc import Callable, Coroutine
from concurrent.futures import Future
from threading import Lock
from typing import Any

from ..capabilities import detect_capabilities
from ..config import get_config
from .base import Dispatcher, invoke

logger = logging.getLogger(__name__)

_POOL_IDS = itertools.count(1)

_DEFAULT_DISPATCHER: LoopDispatcher | None = None
_DEFAULT_LOCK = Lock()


class _LoopWorker:
    """One thread driving one event loop until it is drained and stopped."""

    def __init__(self, name: str, *, daemon: bool) -> None:
        self.name = name
        self.load = 0
        self.loop = asyncio.new_event_loop()
        self._stopping = False
        self.thread = threading.Thread(target=self._run, name=name, daemon=daemon)
        self.thread.start()

    def _run(self) -> None:
        asyncio.set_event_loop(self.loop)
        try:
            self.loop.run_forever()
        finally:
            try:
                self._cancel_leftovers()
                self.loop.run_until_complete(self.loop.shutdown_asyncgens())
            finally:
                asyncio.set_event_loop(None)
                self.loop.close()

    def _cancel_leftovers(self) -> None:
        tasks = asyncio.all_tasks(self.loop)
        if not tasks:
            return
        for task in tasks:
            task.cancel()
        self.loop.run_until_complete(asyncio.gather(*tasks, return_exceptions=True))

    def schedule(
        self,
        coro: Coroutine[Any, Any, Any],
        future: Future[Any],
        settled: Future[None],
    ) -> None:
        """Run *coro* on this loop, reporting its outcome through *future*.

        Cancelling *future* cancels the task, and *settled* completes only
        once the task has finished unwinding.
        """

        self.loop.call_soon_threadsafe(self._start, coro, future, settled)

    def _start(
        self,
        coro: Coroutine[Any, Any, Any],
        future: Future[Any],
        settled: Future[None],
    ) -> None:
        if future.cancelled():
            coro.close()
            settled.set_result(None)
            return
        task = self.loop.create_task(coro)
        task.add_done_callback(lambda done: _copy_outcome(done, future, settled))
        future.add_done_callback(
            lambda done: self._cancel_task(task) if done.cancelled() else None
        )

    def _cancel_task(self, task: asyncio.Task[Any]) -> None:
        self.loop.call_soon_threadsafe(task.cancel)

    def stop(self) -> None:
        """Let the tasks already on the loop finish, then stop it."""

        if self._stopping:
            return
        self._stopping = True
        self.loop.call_soon_threadsafe(self._begin_drain)

    def _begin_drain(self) -> None:
        self.loop.create_task(self._drain())

    async def _drain(self) -> None:
        current = asyncio.current_task()
        while True:
            pending = {task for task in asyncio.all_tasks() if task is not current}
            if not pending:
                break
            await asyncio.wait(pending)
        self.loop.stop()


def _copy_outcome(
    task: asyncio.Task[Any], future: Future[Any], settled: Future[None]
) -> None:
    try:
        if task.cancelled():
            future.cancel()
        elif future.set_running_or_notify_cancel():
            error = task.exception()
            if error is None:
                future.set_result(task.result())
            else:
                future.set_exception(error)
    finally:
        settled.set_result(None)


class LoopDispatcher(Dispatcher):
    """Fixed-size pool of threads, each running its own asyncio event loop.

    Coroutine bodies suspend without holding their thread, so a single worker
    can interleave many of them; blocking bodies occupy their worker until they
    return. Workers are started on demand up to ``max_workers`` and each
    submission goes to the least-loaded worker.

    Non-daemon pools keep the interpreter alive until :meth:`shutdown` is
    called, exactly like an un-shut ``ThreadPoolExecutor`` would.
    """

    def __init__(
        self,
        max_workers: int | None = None,
        *,
        name: str | None = None,
        daemon: bool = False,
    ) -> None:
        if max_workers is None:
            max_workers = detect_capabilities().suggested_default_workers
        if max_workers <= 0:
            raise ValueError("max_workers must be greater than 0")
        super().__init__(name or f"loop-pool-{next(_POOL_IDS)}")
        self._max_workers = max_workers
        self._daemon = daemon
        self._workers: list[_LoopWorker] = []
        self._settled: dict[Future[Any], Future[None]] = {}

    @property
    def capacity(self) -> int:
        return self._max_workers

    @property
    def is_terminated(self) -> bool:
        """Whether shutdown completed and every worker thread has exited."""

        return self._shutdown and not any(
            worker.thread.is_alive() for worker in self._workers
        )

    @property
    def thread_names(self) -> list[str]:
        return [worker.name for worker in self._workers]

    def _dispatch(
        self,
        func: Callable[..., Any],
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
    ) -> Future[Any]:
        worker = self._pick_worker()
        future: Future[Any] = Future()
        settled: Future[None] = Future()
        worker.load += 1
        self._settled[future] = settled
        settled.add_done_callback(lambda _: self._release(future, worker))
        worker.schedule(invoke(func, *args, **kwargs), future, settled)
        return future

    def settled(self, future: Future[Any]) -> Future[Any]:
        # A cancelled future is done before its task has unwound.
        with self._lock:
            return self._settled.get(future, future)

    def _pick_worker(self) -> _LoopWorker:
        idle = [worker for worker in self._workers if worker.load == 0]
        if idle:
            return idle[0]
        if len(self._workers) < self._max_workers:
            worker = _LoopWorker(
                f"{self._name}-worker-{len(self._workers) + 1}",
                daemon=self._daemon,
            )
            self._workers.append(worker)
            logger.debug("dispatcher %s started %s", self._name, worker.name)
            return worker
        return min(self._workers, key=lambda worker: worker.load)

    def _release(self, future: Future[Any], worker: _LoopWorker) -> None:
        with self._lock:
            self._settled.pop(future, None)
            worker.load -= 1

    def shutdown(self, wait: bool = True, *, cancel_pending: bool = False) -> None:
        if self._mark_shutdown(cancel_pending=cancel_pending):
            logger.debug(
                "dispatcher %s shutting down (cancel_pending=%s)",
                self._name,
                cancel_pending,
            )
            for worker in self._workers:
                worker.stop()
        if not wait:
            return
        current = threading.current_thread()
        for worker in self._workers:
            if worker.thread is not current:
                worker.thread.join()


def fixed_pool(max_workers: int, *, name: str | None = None) -> LoopDispatcher:
    """Create a custom dispatcher; the caller owns it and must shut it down."""

    return LoopDispatcher(max_workers, name=name, daemon=False)


def get_default_dispatcher() -> LoopDispatcher:
    """Return the process-wide default dispatcher, creating it on first use."""

    global _DEFAULT_DISPATCHER
    with _DEFAULT_LOCK:
        if _DEFAULT_DISPATCHER is None:
            config = get_config()
            workers = (
                config.default_workers
                or detect_capabilities().suggested_default_workers
            )
            _DEFAULT_DISPATCHER = LoopDispatcher(
                workers,
                name=f"{config.thread_name_prefix}-default",
                daemon=True,
            )
        return _DEFAULT_DISPATCHER


def reset_default_dispatcher(*, cancel_pending: bool = False) -> None:
    """Tear down the default dispatcher if it has been created."""

    global _DEFAULT_DISPATCHER
    with _DEFAULT_LOCK:
        dispatcher = _DEFAULT_DISPATCHER
        _DEFAULT_DISPATCHER = None
    if dispatcher is not None:
        dispatcher.shutdown(wait=True, cancel_pending=cancel_pending)


# Unjoined global jobs are abandoned when the process exits.
atexit.register(reset_default_dispatcher, cancel_pending=True)
