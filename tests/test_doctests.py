from __future__ import annotations

import doctest

import taskscope.api
import taskscope.scope


def test_taskscope_api_doctests() -> None:
    failure_count, _ = doctest.testmod(
        taskscope.api,
        optionflags=doctest.NORMALIZE_WHITESPACE,
    )
    assert failure_count == 0


def test_taskscope_scope_doctests() -> None:
    failure_count, _ = doctest.testmod(
        taskscope.scope,
        optionflags=doctest.NORMALIZE_WHITESPACE,
    )
    assert failure_count == 0
