from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_THREAD_PREFIX = "taskscope"


@dataclass(slots=True)
class RuntimeConfig:
    """User-tunable settings for the shared dispatchers.

    ``None`` sizes defer to :func:`taskscope.capabilities.detect_capabilities`
    so the defaults track the machine the process runs on.
    """

    default_workers: int | None = None
    io_workers: int | None = None
    thread_name_prefix: str = DEFAULT_THREAD_PREFIX

    @classmethod
    def from_env(cls) -> RuntimeConfig:
        """Load overrides from environment variables.

        Supported variables (all optional):

        ``TASKSCOPE_DEFAULT_WORKERS``
            Positive integer sizing the shared default dispatcher.
        ``TASKSCOPE_IO_WORKERS``
            Positive integer sizing the shared IO thread pool.
        ``TASKSCOPE_THREAD_PREFIX``
            Prefix used when naming shared worker threads.
        """

        def _parse_int(value: str | None) -> int | None:
            if value is None:
                return None
            try:
                parsed = int(value)
            except ValueError:
                return None
            return parsed if parsed > 0 else None

        env = os.environ

        prefix = env.get("TASKSCOPE_THREAD_PREFIX", "").strip()

        return cls(
            default_workers=_parse_int(env.get("TASKSCOPE_DEFAULT_WORKERS")),
            io_workers=_parse_int(env.get("TASKSCOPE_IO_WORKERS")),
            thread_name_prefix=prefix or DEFAULT_THREAD_PREFIX,
        )


_ACTIVE_CONFIG: RuntimeConfig | None = None


def get_config() -> RuntimeConfig:
    """Return the active configuration, loading it from the environment once."""

    global _ACTIVE_CONFIG
    if _ACTIVE_CONFIG is None:
        _ACTIVE_CONFIG = RuntimeConfig.from_env()
    return _ACTIVE_CONFIG


def set_config(config: RuntimeConfig | None) -> None:
    """Replace the active configuration; ``None`` re-reads the environment lazily."""

    global _ACTIVE_CONFIG
    _ACTIVE_CONFIG = config
