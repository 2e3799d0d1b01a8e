from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from threading import Lock
from typing import Any, Literal

JobEventKind = Literal["launched", "completed", "failed", "cancelled"]


@dataclass(slots=True)
class JobEvent:
    kind: JobEventKind
    job: str
    scope: str | None = None
    dispatcher: str | None = None
    error: BaseException | None = None

    def as_dict(self) -> dict[str, Any]:
        """Represent the event as plain data for logging or testing."""

        return {
            "kind": self.kind,
            "job": self.job,
            "scope": self.scope,
            "dispatcher": self.dispatcher,
            "error": repr(self.error) if self.error is not None else None,
        }


_LISTENERS: list[Callable[[JobEvent], None]] = []
_LOCK = Lock()


def add_job_listener(listener: Callable[[JobEvent], None]) -> None:
    """Register a callback invoked on every job lifecycle transition.

    Listeners run synchronously on whichever thread drove the transition, so
    they should be quick and must not block.
    """

    with _LOCK:
        _LISTENERS.append(listener)


def remove_job_listener(listener: Callable[[JobEvent], None]) -> None:
    """Remove a previously registered job listener."""

    with _LOCK:
        try:
            _LISTENERS.remove(listener)
        except ValueError:  # pragma: no cover - listener not registered
            pass


def emit(event: JobEvent) -> None:
    with _LOCK:
        listeners = list(_LISTENERS)
    for listener in listeners:
        listener(event)


@contextmanager
def observe_jobs(
    *,
    logger: logging.Logger | None = None,
    level: int = logging.INFO,
) -> Iterator[None]:
    """Context manager that logs job lifecycle events during its scope."""

    active_logger = logger or logging.getLogger("taskscope.jobs")

    def _listener(event: JobEvent) -> None:
        active_logger.log(
            level,
            "job %s %s scope=%s dispatcher=%s error=%r",
            event.job,
            event.kind,
            event.scope,
            event.dispatcher,
            event.error,
        )

    add_job_listener(_listener)
    try:
        yield
    finally:
        remove_job_listener(_listener)


__all__ = [
    "JobEvent",
    "JobEventKind",
    "add_job_listener",
    "remove_job_listener",
    "emit",
    "observe_jobs",
]
