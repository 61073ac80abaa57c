from __future__ import annotations

import threading
import time
import unittest
from typing import Callable

from quotaboard.fetcher import TransportError
from quotaboard.models import Snapshot, build_snapshot, summarize
from quotaboard.scheduler import RefreshScheduler, SchedulerState
from quotaboard.state import QuotaState

URL = "http://localhost:8040/account-limits"


def make_snapshot(*account_ids: str) -> Snapshot:
    return build_snapshot(
        {
            "accounts": [
                {"id": account_id, "status": "ok", "models": {"gpt": {"percentage": 50}}}
                for account_id in account_ids
            ]
        }
    )


class StubFetcher:
    def __init__(self, results: list[object] | None = None) -> None:
        self.results = list(results or [])
        self.calls = 0

    def fetch_snapshot(self) -> Snapshot:
        self.calls += 1
        result = self.results.pop(0) if self.results else make_snapshot("a@x.com")
        if isinstance(result, Exception):
            raise result
        return result  # type: ignore[return-value]


class BlockingFetcher(StubFetcher):
    def __init__(self) -> None:
        super().__init__()
        self.entered = threading.Event()
        self.release = threading.Event()

    def fetch_snapshot(self) -> Snapshot:
        self.calls += 1
        self.entered.set()
        self.release.wait(timeout=5.0)
        return make_snapshot("slow@x.com")


def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> bool:
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class RefreshSchedulerTests(unittest.TestCase):
    def test_refresh_now_applies_snapshot(self) -> None:
        state = QuotaState()
        scheduler = RefreshScheduler(StubFetcher(), state, time_fn=lambda: 42.0)

        self.assertTrue(scheduler.refresh_now())

        frame = state.read()
        self.assertIsNotNone(frame.snapshot)
        self.assertIsNone(frame.last_error)
        self.assertEqual(frame.last_success_at, 42.0)
        self.assertEqual(scheduler.state, SchedulerState.IDLE)

    def test_transport_error_keeps_previous_snapshot(self) -> None:
        state = QuotaState()
        first = make_snapshot("a@x.com", "b@x.com")
        fetcher = StubFetcher([first, TransportError(URL, "refused")])
        scheduler = RefreshScheduler(fetcher, state)

        scheduler.refresh_now()
        before = summarize(state.read().snapshot)
        self.assertFalse(scheduler.refresh_now())

        frame = state.read()
        self.assertIs(frame.snapshot, first)
        self.assertEqual(summarize(frame.snapshot), before)
        self.assertIsNotNone(frame.last_error)
        self.assertIn("Failed to connect", frame.last_error.message)
        self.assertEqual(scheduler.state, SchedulerState.IDLE)

    def test_success_clears_last_error(self) -> None:
        state = QuotaState()
        fetcher = StubFetcher([TransportError(URL, "refused"), make_snapshot("a@x.com")])
        scheduler = RefreshScheduler(fetcher, state)

        scheduler.refresh_now()
        self.assertIsNone(state.read().snapshot)
        self.assertIsNotNone(state.read().last_error)

        scheduler.refresh_now()
        self.assertIsNone(state.read().last_error)

    def test_unexpected_exception_is_recorded_not_raised(self) -> None:
        state = QuotaState()
        scheduler = RefreshScheduler(StubFetcher([KeyError("boom")]), state)

        self.assertFalse(scheduler.refresh_now())

        self.assertIn("Unexpected error", state.read().last_error.message)

    def test_manual_refresh_while_fetching_is_coalesced(self) -> None:
        state = QuotaState()
        fetcher = BlockingFetcher()
        scheduler = RefreshScheduler(fetcher, state, interval=60.0)

        scheduler.start()
        try:
            self.assertTrue(fetcher.entered.wait(timeout=2.0))
            self.assertEqual(scheduler.state, SchedulerState.FETCHING)

            self.assertFalse(scheduler.request_refresh())
            self.assertFalse(scheduler.request_refresh())
            self.assertFalse(scheduler.refresh_now())

            fetcher.release.set()
            self.assertTrue(wait_until(lambda: state.read().snapshot is not None))
            time.sleep(0.1)
            self.assertEqual(fetcher.calls, 1)
        finally:
            scheduler.stop()

    def test_initial_fetch_runs_with_auto_refresh_off(self) -> None:
        state = QuotaState()
        fetcher = StubFetcher()
        scheduler = RefreshScheduler(fetcher, state, interval=0.05, auto_refresh=False)

        scheduler.start()
        try:
            self.assertTrue(wait_until(lambda: fetcher.calls == 1))
            time.sleep(0.25)
            self.assertEqual(fetcher.calls, 1)

            self.assertTrue(scheduler.request_refresh())
            self.assertTrue(wait_until(lambda: fetcher.calls == 2))
        finally:
            scheduler.stop()

    def test_timer_refreshes_while_enabled(self) -> None:
        state = QuotaState()
        fetcher = StubFetcher()
        scheduler = RefreshScheduler(fetcher, state, interval=0.05)

        scheduler.start()
        try:
            self.assertTrue(wait_until(lambda: fetcher.calls >= 3))
            scheduler.set_auto_refresh(False)
            self.assertFalse(scheduler.auto_refresh)
        finally:
            scheduler.stop()

    def test_zero_interval_disables_timer(self) -> None:
        state = QuotaState()
        fetcher = StubFetcher()
        scheduler = RefreshScheduler(fetcher, state, interval=0)

        scheduler.start()
        try:
            self.assertFalse(scheduler.timer_enabled)
            self.assertTrue(wait_until(lambda: fetcher.calls == 1))
            time.sleep(0.1)
            self.assertEqual(fetcher.calls, 1)
        finally:
            scheduler.stop()

    def test_result_after_stop_is_discarded(self) -> None:
        state = QuotaState()
        fetcher = BlockingFetcher()
        scheduler = RefreshScheduler(fetcher, state, interval=60.0)

        scheduler.start()
        self.assertTrue(fetcher.entered.wait(timeout=2.0))
        scheduler.stop()
        self.assertTrue(scheduler.stopped)
        self.assertFalse(scheduler.request_refresh())
        fetcher.release.set()
        time.sleep(0.1)

        self.assertIsNone(state.read().snapshot)
        self.assertEqual(state.read().version, 0)


if __name__ == "__main__":
    unittest.main()
