from __future__ import annotations

import logging
import threading
import time
from enum import Enum
from typing import Callable, Optional, Protocol

from .fetcher import FetchError
from .logging_utils import style_text
from .models import Snapshot
from .state import QuotaState

logger = logging.getLogger("quotaboard.scheduler")


class SupportsFetchSnapshot(Protocol):
    def fetch_snapshot(self) -> Snapshot: ...


class SchedulerState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    APPLYING = "applying"
    ERROR = "error"


class RefreshScheduler:
    """Fetches snapshots on a timer and on demand, one request at a time."""

    def __init__(
        self,
        fetcher: SupportsFetchSnapshot,
        state: QuotaState,
        *,
        interval: float = 5.0,
        auto_refresh: bool = True,
        time_fn: Optional[Callable[[], float]] = None,
    ) -> None:
        self._fetcher = fetcher
        self._state = state
        self.interval = max(interval, 0.0)
        self._auto_refresh = auto_refresh
        self._time_fn = time_fn or time.time
        self._lock = threading.Lock()
        self._phase = SchedulerState.IDLE
        self._trigger_event = threading.Event()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.fetch_count = 0

    @property
    def state(self) -> SchedulerState:
        with self._lock:
            return self._phase

    @property
    def auto_refresh(self) -> bool:
        with self._lock:
            return self._auto_refresh

    @property
    def timer_enabled(self) -> bool:
        return self.interval > 0

    def set_auto_refresh(self, enabled: bool) -> None:
        """Gate the timer path; manual refreshes are unaffected."""
        with self._lock:
            self._auto_refresh = enabled
        logger.info("Auto-refresh %s", "enabled" if enabled else "paused")

    def start(self) -> None:
        """Start the background thread; the first fetch runs immediately."""
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._trigger_event.set()
        self._thread = threading.Thread(
            target=self._loop, name="QuotaboardRefresher", daemon=True
        )
        self._thread.start()
        if self.timer_enabled:
            logger.info("Refreshing every %.1f seconds", self.interval)
        else:
            logger.info("Timer refresh disabled; manual refresh only")

    def stop(self) -> None:
        """Signal shutdown without waiting for an in-flight fetch."""
        self._stop_event.set()
        self._trigger_event.set()
        self._thread = None

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def request_refresh(self) -> bool:
        """Ask for a fetch now. Returns False when one is already in flight."""
        with self._lock:
            if self._phase is SchedulerState.FETCHING or self._stop_event.is_set():
                logger.debug("Refresh request coalesced with in-flight fetch")
                return False
        self._trigger_event.set()
        return True

    def refresh_now(self) -> bool:
        """Run one fetch cycle in the calling thread.

        Returns True when a new snapshot was applied, False when the fetch
        failed or another fetch was already in flight.
        """
        if not self._begin_fetch():
            return False
        return self._run_cycle()

    # ------------------------------------------------------------------

    def _loop(self) -> None:
        while not self._stop_event.is_set():
            timeout = self.interval if self.timer_enabled else None
            triggered = self._trigger_event.wait(timeout=timeout)
            if self._stop_event.is_set():
                break
            if triggered:
                self._trigger_event.clear()
            elif not self.auto_refresh:
                continue
            if self._begin_fetch():
                self._run_cycle()

    def _begin_fetch(self) -> bool:
        with self._lock:
            if self._phase is SchedulerState.FETCHING:
                return False
            self._phase = SchedulerState.FETCHING
            self.fetch_count += 1
        self._trigger_event.clear()
        return True

    def _set_phase(self, phase: SchedulerState) -> None:
        with self._lock:
            self._phase = phase

    def _run_cycle(self) -> bool:
        try:
            try:
                snapshot = self._fetcher.fetch_snapshot()
            except FetchError as exc:
                if self._stop_event.is_set():
                    return False
                self._set_phase(SchedulerState.ERROR)
                logger.warning(style_text(exc.user_message, "bold red"))
                self._state.record_error(
                    exc.user_message, detail=exc.detail, timestamp=self._time_fn()
                )
                return False
            except Exception as exc:
                if self._stop_event.is_set():
                    return False
                self._set_phase(SchedulerState.ERROR)
                logger.exception("Unexpected error while refreshing")
                self._state.record_error(
                    f"Unexpected error: {exc}", timestamp=self._time_fn()
                )
                return False

            if self._stop_event.is_set():
                logger.debug("Discarding snapshot that arrived after shutdown")
                return False
            self._set_phase(SchedulerState.APPLYING)
            self._state.replace_snapshot(snapshot, timestamp=self._time_fn())
            logger.debug(
                "Applied snapshot: %d accounts, %d models",
                len(snapshot.accounts),
                len(snapshot.models),
            )
            return True
        finally:
            self._set_phase(SchedulerState.IDLE)
