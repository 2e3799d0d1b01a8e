"""Runnable demonstrations of the taskscope launch patterns.

``python -m taskscope_demo --list`` shows the catalog; each entry in
:data:`SCENARIOS` can also be executed programmatically.
"""

from __future__ import annotations

from .scenarios import DEFAULT_SCENARIO, SCENARIOS, DemoResult, DemoScenario

__all__ = ["DEFAULT_SCENARIO", "SCENARIOS", "DemoResult", "DemoScenario"]
