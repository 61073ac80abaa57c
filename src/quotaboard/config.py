from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from typing import Mapping, Optional

from dotenv import load_dotenv

logger = logging.getLogger("quotaboard.config")

DEFAULT_URL = "http://localhost:8040/account-limits"
DEFAULT_INTERVAL = 5.0
DEFAULT_TIMEOUT = 10.0
_DOTENV_LOADED = False


def _ensure_dotenv_loaded() -> None:
    """Load environment variables from .env once per process."""
    global _DOTENV_LOADED
    if _DOTENV_LOADED:
        return
    load_dotenv()
    _DOTENV_LOADED = True


@dataclass(frozen=True)
class Settings:
    url: str = DEFAULT_URL
    interval: float = DEFAULT_INTERVAL
    timeout: float = DEFAULT_TIMEOUT
    debug: bool = False
    log_file: Optional[str] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> Settings:
        """Build settings from QUOTABOARD_* variables (and a local .env)."""
        if environ is None:
            _ensure_dotenv_loaded()
            environ = os.environ
        return cls(
            url=environ.get("QUOTABOARD_URL") or DEFAULT_URL,
            interval=_env_float(environ, "QUOTABOARD_INTERVAL", DEFAULT_INTERVAL),
            timeout=_env_float(environ, "QUOTABOARD_TIMEOUT", DEFAULT_TIMEOUT),
            log_file=environ.get("QUOTABOARD_LOG_FILE") or None,
        )

    def with_overrides(self, **overrides: object) -> Settings:
        """Return a copy with every non-None override applied."""
        values = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **values)  # type: ignore[arg-type]


def _env_float(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r; using %s", name, raw, default)
        return default
