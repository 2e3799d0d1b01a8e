"""Execution contexts that task bodies are dispatched onto.

Two implementations share the :class:`Dispatcher` interface: event-loop
worker pools (:mod:`.loop`) and adapters over ``concurrent.futures``
executors (:mod:`.threading`). Submissions always return stdlib
:class:`concurrent.futures.Future` objects.
"""

from .base import Dispatcher, call_blocking, invoke
from .loop import (
    LoopDispatcher,
    fixed_pool,
    get_default_dispatcher,
    reset_default_dispatcher,
)
from .threading import (
    ExecutorDispatcher,
    as_dispatcher,
    get_io_dispatcher,
    reset_io_dispatcher,
)

__all__ = [
    "Dispatcher",
    "LoopDispatcher",
    "ExecutorDispatcher",
    "as_dispatcher",
    "call_blocking",
    "fixed_pool",
    "get_default_dispatcher",
    "get_io_dispatcher",
    "invoke",
    "reset_default_dispatcher",
    "reset_io_dispatcher",
]
