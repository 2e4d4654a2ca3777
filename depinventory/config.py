"""Runtime configuration: environment defaults, overridable from the CLI."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace

import structlog

log = structlog.get_logger("depinventory.config")

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _env_float(key: str, default: float) -> float:
    raw = os.environ.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        log.warning("config.invalid_value", key=key, value=raw, default=default)
        return default
    if value < 0:
        log.warning("config.invalid_value", key=key, value=raw, default=default)
        return default
    return value


def _env_positive_float(key: str, default: float) -> float:
    """Like :func:`_env_float`, but 0 is rejected too."""
    value = _env_float(key, default)
    if value == 0:
        log.warning("config.invalid_value", key=key, value=os.environ.get(key), default=default)
        return default
    return value


def _env_int(key: str, default: int) -> int:
    raw = os.environ.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        log.warning("config.invalid_value", key=key, value=raw, default=default)
        return default
    if value < 1:
        log.warning("config.invalid_value", key=key, value=raw, default=default)
        return default
    return value


def _env_bool(key: str, default: bool) -> bool:
    raw = os.environ.get(key)
    if raw is None:
        return default
    lowered = raw.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    log.warning("config.invalid_value", key=key, value=raw, default=default)
    return default


@dataclass(frozen=True)
class ScanConfig:
    """Tunables for one inventory run.

    Timeouts are in seconds and command timeouts must be positive.
    ``project_timeout`` of 0 disables the per-project budget; otherwise no
    command runs past it, but file-based strategies still do.
    """

    command_timeout: float = 60.0
    install_timeout: float = 60.0
    project_timeout: float = 600.0
    concurrency: int = 1
    run_install: bool = True
    prefer_gradle_wrapper: bool = True

    @classmethod
    def from_env(cls) -> ScanConfig:
        """Read DEPINVENTORY_* environment variables, falling back to defaults."""
        return cls(
            command_timeout=_env_positive_float(
                "DEPINVENTORY_COMMAND_TIMEOUT", cls.command_timeout
            ),
            install_timeout=_env_positive_float(
                "DEPINVENTORY_INSTALL_TIMEOUT", cls.install_timeout
            ),
            project_timeout=_env_float("DEPINVENTORY_PROJECT_TIMEOUT", cls.project_timeout),
            concurrency=_env_int("DEPINVENTORY_CONCURRENCY", cls.concurrency),
            run_install=_env_bool("DEPINVENTORY_RUN_INSTALL", cls.run_install),
            prefer_gradle_wrapper=_env_bool(
                "DEPINVENTORY_GRADLE_WRAPPER", cls.prefer_gradle_wrapper
            ),
        )

    def with_overrides(self, **overrides: object) -> ScanConfig:
        """Return a copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes)  # type: ignore[arg-type]
