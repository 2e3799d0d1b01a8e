"""The launch patterns, one runnable scenario each.

Every scenario is a plain function taking the simulated ``delay`` and an
``emit`` callable for its output lines, so the CLI prints while tests capture.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from taskscope import (
    GLOBAL_SCOPE,
    Scope,
    default_dispatcher,
    fixed_pool,
    run_blocking,
    with_context,
)

from .workloads import Emit, calculate_hard_things, print_delayed, thread_name


@dataclass(frozen=True)
class DemoResult:
    """Holds the outcome of a single scenario run.

    Attributes:
        name: Scenario identifier.
        output: Value returned by the scenario, if any.
        elapsed: Wall-clock seconds the scenario took.
        tags: Lightweight labels used by reporters and filters.
    """

    name: str
    output: Any
    elapsed: float
    tags: tuple[str, ...] = ()


@dataclass(frozen=True)
class DemoScenario:
    """Describes a runnable scenario.

    Attributes:
        name: Identifier used on the command line.
        summary: One-line explanation of what the scenario shows.
        entrypoint: Callable invoked as ``entrypoint(delay, emit)``.
        tags: Topic labels such as ``("structured", "dispatcher")``.
    """

    name: str
    summary: str
    entrypoint: Callable[[float, Emit], Any]
    tags: tuple[str, ...] = ()

    def execute(self, delay: float = 1.0, emit: Emit = print) -> DemoResult:
        start = time.perf_counter()
        output = self.entrypoint(delay, emit)
        elapsed = time.perf_counter() - start
        return DemoResult(name=self.name, output=output, elapsed=elapsed, tags=self.tags)


def example_blocking(delay: float, emit: Emit = print) -> None:
    """Block the calling thread on a scope; lines appear strictly in order."""

    async def body(scope: Scope) -> None:
        emit("one")
        await print_delayed("two", delay, emit)
        emit("three")

    run_blocking(body)


def example_blocking_dispatcher(delay: float, emit: Emit = print) -> None:
    """Run the scope on the default dispatcher while the caller still blocks."""

    async def body(scope: Scope) -> None:
        emit(f"one - from thread {thread_name()}")
        await print_delayed(f"two - from thread {thread_name()}", delay, emit)

    run_blocking(body, dispatcher=default_dispatcher())
    # Printed by the blocked caller, after the scope has fully finished.
    emit(f"three - from thread {thread_name()}")


async def _announce_two(delay: float, emit: Emit) -> None:
    await print_delayed(f"two - from thread {thread_name()}", delay, emit)


def example_launch_global(delay: float, emit: Emit = print) -> None:
    """Launch on the global scope and never join: "two" usually never shows."""

    async def body(scope: Scope) -> None:
        emit(f"one - from thread {thread_name()}")
        GLOBAL_SCOPE.launch(_announce_two, delay, emit)
        emit(f"three - from thread {thread_name()}")

    run_blocking(body)


def example_launch_global_join(delay: float, emit: Emit = print) -> None:
    """Same global launch, but joined so the scope waits for it."""

    async def body(scope: Scope) -> None:
        emit(f"one - from thread {thread_name()}")
        job = GLOBAL_SCOPE.launch(_announce_two, delay, emit)
        emit(f"three - from thread {thread_name()}")
        await job.join()

    run_blocking(body)


def example_launch_scope(delay: float, emit: Emit = print) -> None:
    """Launch into the structured scope on a custom pool; no join needed."""

    async def body(scope: Scope) -> None:
        emit(f"one - from thread {thread_name()}")
        custom = fixed_pool(2, name="custom-pool")
        scope.launch(_announce_two, delay, emit, dispatcher=custom)
        emit(f"three - from thread {thread_name()}")
        # Custom pools are ours to shut down; launched work still completes.
        custom.shutdown(wait=False)

    run_blocking(body)


def example_async_await(delay: float, emit: Emit = print) -> int:
    """Fan out three computations and await them: total time is about one delay."""

    async def body(scope: Scope) -> int:
        start = time.perf_counter()
        first = scope.async_(calculate_hard_things, 10, delay)
        second = scope.async_(calculate_hard_things, 20, delay)
        third = scope.async_(calculate_hard_things, 30, delay)
        total = await first + await second + await third
        emit(f"async/await result = {total}")
        emit(f"Time taken: {(time.perf_counter() - start) * 1000:.0f} ms")
        return total

    return run_blocking(body)


def example_with_context(delay: float, emit: Emit = print) -> int:
    """Three sequential context switches: total time is about three delays."""

    async def body(scope: Scope) -> int:
        start = time.perf_counter()
        dispatcher = default_dispatcher()
        first = await with_context(dispatcher, calculate_hard_things, 10, delay)
        second = await with_context(dispatcher, calculate_hard_things, 20, delay)
        third = await with_context(dispatcher, calculate_hard_things, 30, delay)
        total = first + second + third
        emit(f"with_context result = {total}")
        emit(f"Time taken: {(time.perf_counter() - start) * 1000:.0f} ms")
        return total

    return run_blocking(body)


SCENARIOS: dict[str, DemoScenario] = {
    scenario.name: scenario
    for scenario in (
        DemoScenario(
            name="blocking",
            summary="run_blocking holds the calling thread until the scope is done.",
            entrypoint=example_blocking,
            tags=("blocking",),
        ),
        DemoScenario(
            name="blocking-dispatcher",
            summary="The scope runs on the default dispatcher; the caller still waits.",
            entrypoint=example_blocking_dispatcher,
            tags=("blocking", "dispatcher"),
        ),
        DemoScenario(
            name="launch-global",
            summary="Unstructured launch without join; the job may never report.",
            entrypoint=example_launch_global,
            tags=("launch", "unstructured"),
        ),
        DemoScenario(
            name="launch-global-join",
            summary="Unstructured launch, explicitly joined before the scope ends.",
            entrypoint=example_launch_global_join,
            tags=("launch", "unstructured", "join"),
        ),
        DemoScenario(
            name="launch-scope",
            summary="Structured launch on a custom pool; the scope waits by itself.",
            entrypoint=example_launch_scope,
            tags=("launch", "structured", "dispatcher"),
        ),
        DemoScenario(
            name="async-await",
            summary="Concurrent fan-out with async_/await; time is the slowest body.",
            entrypoint=example_async_await,
            tags=("async", "concurrent"),
        ),
        DemoScenario(
            name="with-context",
            summary="Sequential with_context calls; time is the sum of the bodies.",
            entrypoint=example_with_context,
            tags=("with_context", "sequential"),
        ),
    )
}

DEFAULT_SCENARIO = "with-context"


__all__ = [
    "DemoResult",
    "DemoScenario",
    "SCENARIOS",
    "DEFAULT_SCENARIO",
    "example_blocking",
    "example_blocking_dispatcher",
    "example_launch_global",
    "example_launch_global_join",
    "example_launch_scope",
    "example_async_await",
    "example_with_context",
]
