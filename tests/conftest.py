from __future__ import annotations

from collections.abc import Iterator

import pytest

from taskscope import RuntimeConfig, configure, reset


@pytest.fixture(autouse=True)
def restore_runtime() -> Iterator[None]:
    reset(cancel_pending=True)
    configure(RuntimeConfig())
    yield
    configure(RuntimeConfig())
    reset(cancel_pending=True)
