"""Structured task-concurrency primitives on top of asyncio.

`taskscope` offers a small vocabulary for launching work: block on a scope
(:func:`run_blocking`), fire and forget (:meth:`Scope.launch`), fan out and
collect (:meth:`Scope.async_` + ``await``), and hop onto another execution
context (:func:`with_context`). Where that work physically runs is decided by
pluggable dispatchers; see :mod:`taskscope.dispatchers`.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

from .api import (
    as_dispatcher,
    async_,
    await_,
    await_all,
    configure,
    default_dispatcher,
    fixed_pool,
    io_dispatcher,
    join,
    join_all,
    launch,
    reset,
    run_blocking,
    with_context,
)
from .capabilities import RuntimeCapabilities, detect_capabilities
from .config import RuntimeConfig
from .dispatchers import Dispatcher, ExecutorDispatcher, LoopDispatcher
from .errors import DispatcherShutdownError, ScopeClosedError, TaskScopeError
from .events import JobEvent, add_job_listener, observe_jobs, remove_job_listener
from .jobs import Deferred, Job, JobState
from .scope import GLOBAL_SCOPE, GlobalScope, Scope, checkpoint

__all__ = [
    "GLOBAL_SCOPE",
    "Deferred",
    "Dispatcher",
    "DispatcherShutdownError",
    "ExecutorDispatcher",
    "GlobalScope",
    "Job",
    "JobEvent",
    "JobState",
    "LoopDispatcher",
    "RuntimeCapabilities",
    "RuntimeConfig",
    "Scope",
    "ScopeClosedError",
    "TaskScopeError",
    "add_job_listener",
    "as_dispatcher",
    "async_",
    "await_",
    "await_all",
    "checkpoint",
    "configure",
    "default_dispatcher",
    "detect_capabilities",
    "fixed_pool",
    "io_dispatcher",
    "join",
    "join_all",
    "launch",
    "observe_jobs",
    "remove_job_listener",
    "reset",
    "run_blocking",
    "with_context",
]

try:
    __version__ = version("taskscope")
except PackageNotFoundError:  # pragma: no cover - during local dev
    __version__ = "0.0.0"
