from __future__ import annotations

import os
import platform
import sys
import sysconfig
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class RuntimeCapabilities:
    """Snapshot of the interpreter features that size the shared dispatchers."""

    python_version: tuple[int, int, int]
    implementation: str
    gil_enabled: bool
    free_threading_build: bool
    cpu_count: int
    suggested_default_workers: int
    suggested_io_workers: int

    @property
    def python_release(self) -> str:
        major, minor, micro = self.python_version
        return f"{major}.{minor}.{micro}"


def detect_capabilities() -> RuntimeCapabilities:
    version = sys.version_info
    cpu_count = os.cpu_count() or 1
    free_threading_build = bool(sysconfig.get_config_var("Py_GIL_DISABLED"))

    # Event-loop workers mostly wait on suspension points, so even a single
    # core benefits from a second loop.
    suggested_default_workers = max(2, cpu_count)
    suggested_io_workers = max(4, min(64, cpu_count * 5))

    return RuntimeCapabilities(
        python_version=(version.major, version.minor, version.micro),
        implementation=platform.python_implementation(),
        gil_enabled=_is_gil_enabled(),
        free_threading_build=free_threading_build,
        cpu_count=cpu_count,
        suggested_default_workers=suggested_default_workers,
        suggested_io_workers=suggested_io_workers,
    )


def _is_gil_enabled() -> bool:
    checker = getattr(sys, "_is_gil_enabled", None)
    if checker is None:
        return True
    try:
        return bool(checker())
    except RuntimeError:
        # Some implementations may raise if called from a non-main thread.
        return True
