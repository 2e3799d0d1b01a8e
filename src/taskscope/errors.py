from __future__ import annotations


class TaskScopeError(Exception):
    """Base class for errors raised by taskscope itself."""


class DispatcherShutdownError(TaskScopeError, RuntimeError):
    """Raised when work is submitted to a dispatcher that has been shut down."""

    def __init__(self, name: str) -> None:
        super().__init__(f"dispatcher {name!r} is shut down and cannot accept work")
        self.dispatcher_name = name


class ScopeClosedError(TaskScopeError, RuntimeError):
    """Raised when launching into a scope that is not open."""


__all__ = ["TaskScopeError", "DispatcherShutdownError", "ScopeClosedError"]
