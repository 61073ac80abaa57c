from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Optional

from .models import Snapshot


@dataclass(frozen=True)
class ErrorInfo:
    message: str
    timestamp: float
    detail: Optional[str] = None


@dataclass(frozen=True)
class StateFrame:
    """Consistent read of the shared state for one render pass."""

    snapshot: Optional[Snapshot]
    last_error: Optional[ErrorInfo]
    last_success_at: Optional[float]
    version: int


class QuotaState:
    """Process-wide holder of the current snapshot and last fetch error.

    Only the refresh scheduler writes; readers take a :class:`StateFrame`.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._snapshot: Optional[Snapshot] = None
        self._last_error: Optional[ErrorInfo] = None
        self._last_success_at: Optional[float] = None
        self._version = 0

    def read(self) -> StateFrame:
        with self._lock:
            return StateFrame(
                snapshot=self._snapshot,
                last_error=self._last_error,
                last_success_at=self._last_success_at,
                version=self._version,
            )

    @property
    def version(self) -> int:
        with self._lock:
            return self._version

    def replace_snapshot(
        self, snapshot: Snapshot, *, timestamp: Optional[float] = None
    ) -> None:
        with self._lock:
            self._snapshot = snapshot
            self._last_error = None
            self._last_success_at = timestamp if timestamp is not None else time.time()
            self._version += 1

    def record_error(
        self, message: str, *, detail: Optional[str] = None, timestamp: Optional[float] = None
    ) -> None:
        with self._lock:
            self._last_error = ErrorInfo(
                message=message,
                timestamp=timestamp if timestamp is not None else time.time(),
                detail=detail,
            )
            self._version += 1
