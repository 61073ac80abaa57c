from __future__ import annotations

import io

from rich.console import Console

from quotaboard.console import ConsoleDashboard
from quotaboard.fetcher import DecodeError, TransportError
from quotaboard.models import Snapshot, build_snapshot
from quotaboard.scheduler import RefreshScheduler
from quotaboard.state import QuotaState

URL = "http://localhost:8040/account-limits"


class _StubFetcher:
    def __init__(self, results: list[object]) -> None:
        self.results = list(results)
        self.calls = 0

    def fetch_snapshot(self) -> Snapshot:
        self.calls += 1
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result  # type: ignore[return-value]


def _snapshot() -> Snapshot:
    return build_snapshot(
        {
            "accounts": [
                {
                    "id": "alice@example.com",
                    "status": "ok",
                    "models": {"claude": {"percentage": 80}, "gemini": {"percentage": 20}},
                },
                {"id": "bob@example.com", "status": "invalid"},
            ]
        }
    )


def _dashboard(results: list[object], *, interval: float = 0.0) -> tuple[ConsoleDashboard, io.StringIO]:
    buffer = io.StringIO()
    console = Console(file=buffer, width=200, color_system=None, force_terminal=False)
    state = QuotaState()
    scheduler = RefreshScheduler(_StubFetcher(results), state, interval=interval)
    dashboard = ConsoleDashboard(scheduler, state, url=URL, console=console)
    return dashboard, buffer


def test_once_prints_tables_and_exits_zero() -> None:
    dashboard, buffer = _dashboard([_snapshot()])

    code = dashboard.run(once=True)

    output = buffer.getvalue()
    assert code == 0
    assert "Account Limits" in output
    assert "Accounts: 2 total, 1 available, 0 rate-limited, 1 invalid, 0 disabled" in output
    assert "alice" in output and "bob" in output
    assert "80%" in output and "20%" in output
    assert "never" in output
    lines = [line for line in output.splitlines() if line.startswith("gemini")]
    assert lines and "-" in lines[0]


def test_once_failure_reports_error_and_exits_nonzero() -> None:
    dashboard, buffer = _dashboard([TransportError(URL, "refused")])

    code = dashboard.run(once=True)

    output = buffer.getvalue()
    assert code == 1
    assert "Failed to connect to server" in output
    assert "Make sure the proxy is running" in output


def test_debug_detail_is_printed() -> None:
    error = DecodeError(URL, "Failed to parse JSON", detail='{"accounts": [}')
    dashboard, buffer = _dashboard([error])

    dashboard.run(once=True)

    assert '{"accounts": [}' in buffer.getvalue()


def test_loop_with_timer_disabled_runs_one_cycle() -> None:
    fetcher_results: list[object] = [_snapshot()]
    dashboard, buffer = _dashboard(fetcher_results, interval=0)

    code = dashboard.run()

    assert code == 0
    assert buffer.getvalue().count("Account Limits") == 1


def test_loop_survives_fetch_failure_until_stopped() -> None:
    dashboard, buffer = _dashboard(
        [TransportError(URL, "refused"), _snapshot(), _snapshot()], interval=0.01
    )
    printed: list[int] = []
    original = dashboard.print_frame

    def counting_print() -> None:
        original()
        printed.append(1)
        if len(printed) == 2:
            dashboard.stop()

    dashboard.print_frame = counting_print  # type: ignore[method-assign]

    code = dashboard.run()

    output = buffer.getvalue()
    assert code == 0
    assert len(printed) == 2
    assert "Failed to connect" in output
    assert "alice" in output
