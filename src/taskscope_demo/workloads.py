from __future__ import annotations

import asyncio
import threading
from collections.abc import Callable

Emit = Callable[[str], None]


def thread_name() -> str:
    return threading.current_thread().name


async def print_delayed(message: str, delay: float, emit: Emit = print) -> None:
    """Suspend for ``delay`` seconds without holding the thread, then emit."""

    await asyncio.sleep(delay)
    emit(message)


async def calculate_hard_things(start: int, delay: float) -> int:
    """Pretend to compute for ``delay`` seconds and return ``start * 10``."""

    await asyncio.sleep(delay)
    return start * 10


__all__ = [
    "Emit",
    "thread_name",
    "print_delayed",
    "calculate_hard_things",
]
