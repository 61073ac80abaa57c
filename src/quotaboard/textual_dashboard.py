from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from rich.console import Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Vertical
from textual.timer import Timer
from textual.widgets import Footer, Static

from .config import Settings
from .fetcher import SnapshotFetcher
from .formatting import tone_style
from .logging_utils import configure_logging
from .models import summarize
from .render import ACCOUNT_COLUMNS, HELP_LINES, Layout, render
from .scheduler import RefreshScheduler, SchedulerState
from .state import QuotaState
from .view_state import KEY_BINDINGS, Command, InputEvent, ViewState

logger = logging.getLogger("quotaboard.textual-dashboard")

STATE_POLL_SECONDS = 0.1
COUNTDOWN_SECONDS = 1.0
# Panel border (2) plus table top edge, header, separator and bottom edge (4).
MODEL_TABLE_CHROME = 6
FOOTER_LABELS = {
    "q": "Quit",
    "r": "Refresh",
    "a": "Auto-refresh",
    "question_mark": "Help",
}

CSS = """
Screen {
    background: #0c1118;
    color: #e6edf3;
}
#summary {
    height: auto;
    padding: 0 1;
    margin: 1 1 0 1;
    border: round #7bdff2;
}
#body {
    height: 1fr;
    margin: 0 1;
}
#accounts {
    height: auto;
}
#models {
    height: 1fr;
}
#help {
    dock: right;
    width: 48;
    height: auto;
    margin: 1 1;
}
"""


class SummaryBar(Static):
    """Title, summary counts, refresh status and the last error."""

    def __init__(self) -> None:
        super().__init__(id="summary")
        self.layout_data: Optional[Layout] = None
        self.status_note: str = ""

    def set_layout(self, layout: Layout, status_note: str) -> None:
        self.layout_data = layout
        self.status_note = status_note
        self.refresh()

    def render(self) -> Text:
        layout = self.layout_data
        text = Text()
        if layout is None:
            text.append("Account Limits", style="bold cyan")
            text.append("\nWaiting for first update…", style="dim")
            return text
        text.append(layout.title, style="bold cyan")
        if layout.timestamp:
            text.append(f" ({layout.timestamp})", style="dim")
        text.append("\n")
        for segment in layout.summary_segments:
            text.append(segment.text, style=tone_style(segment.tone))
        if self.status_note:
            text.append("\n")
            text.append(self.status_note, style="dim")
        if layout.warnings:
            text.append("\n")
            text.append(
                f"{len(layout.warnings)} warning(s): {layout.warnings[0]}",
                style="yellow",
            )
        if layout.error:
            text.append("\n")
            text.append(f"Error: {layout.error}", style="bold red")
            if layout.error_detail:
                text.append("\n")
                text.append(layout.error_detail[:2000], style="dim")
        return text


class AccountsPanel(Static):
    def __init__(self) -> None:
        super().__init__(id="accounts")
        self.layout_data: Optional[Layout] = None

    def set_layout(self, layout: Layout) -> None:
        self.layout_data = layout
        self.refresh(layout=True)

    def render(self) -> Panel:
        table = Table(expand=True)
        for title in ACCOUNT_COLUMNS:
            table.add_column(title, no_wrap=True)
        layout = self.layout_data
        if layout is None or not layout.accounts:
            table.add_row("—", "—", "—", "—")
        else:
            for row in layout.accounts:
                table.add_row(
                    row.label,
                    Text(row.status.text, style=tone_style(row.status.tone)),
                    row.last_used,
                    row.reset,
                )
        return Panel(table, title="Accounts", border_style="cyan")


class ModelsPanel(Static):
    def __init__(self) -> None:
        super().__init__(id="models")
        self.layout_data: Optional[Layout] = None

    @property
    def viewport_height(self) -> int:
        return max(1, self.size.height - MODEL_TABLE_CHROME)

    def set_layout(self, layout: Layout) -> None:
        self.layout_data = layout
        self.refresh()

    def render(self) -> Panel:
        layout = self.layout_data
        table = Table(expand=True)
        columns = layout.columns if layout else ("Model",)
        table.add_column(columns[0], style="bold", no_wrap=True)
        for title in columns[1:]:
            table.add_column(title, no_wrap=True)
        if layout is None or not layout.rows:
            table.add_row(*("—" for _ in columns))
            title = "Models"
        else:
            for row in layout.rows:
                table.add_row(
                    row.model,
                    *(Text(cell.text, style=tone_style(cell.tone)) for cell in row.cells),
                )
            title = (
                f"Models {layout.first_row + 1}–{layout.last_row} of {layout.total_rows}"
            )
        return Panel(table, title=title, border_style="cyan")


class HelpPanel(Static):
    def __init__(self) -> None:
        super().__init__(id="help")

    def render(self) -> Panel:
        table = Table.grid(padding=(0, 2))
        table.add_column(style="bold cyan", no_wrap=True)
        table.add_column()
        for key, description in HELP_LINES:
            table.add_row(key, description)
        body = Group(table, Text("\nPress ? or h to close", style="dim"))
        return Panel(body, title="Keys", border_style="magenta")


class QuotaTextualApp(App):
    """Full-screen view of the account-limits snapshot."""

    CSS = CSS

    BINDINGS = [
        Binding(
            key,
            f"handle_input('{event.value}')",
            FOOTER_LABELS.get(key, event.value.replace("_", " ")),
            show=key in FOOTER_LABELS,
        )
        for key, event in KEY_BINDINGS.items()
    ]

    def __init__(
        self,
        scheduler: RefreshScheduler,
        state: QuotaState,
        *,
        url: str = "",
    ) -> None:
        super().__init__()
        self._scheduler = scheduler
        self._quota_state = state
        self._url = url
        self._view_state = ViewState(auto_refresh=scheduler.auto_refresh)
        self._seen_version = -1
        self._seen_phase: Optional[SchedulerState] = None
        self._note: Optional[str] = None
        self._poll_timer: Timer | None = None
        self._countdown_timer: Timer | None = None

    def compose(self) -> ComposeResult:
        yield SummaryBar()
        with Vertical(id="body"):
            yield AccountsPanel()
            yield ModelsPanel()
        yield HelpPanel()
        yield Footer()

    def on_mount(self) -> None:
        self.title = "quotaboard"
        self.query_one(HelpPanel).display = self._view_state.help_visible
        self._poll_timer = self.set_interval(STATE_POLL_SECONDS, self._poll_state)
        self._countdown_timer = self.set_interval(COUNTDOWN_SECONDS, self._redraw)
        self._scheduler.start()
        self._redraw()

    def on_unmount(self) -> None:
        self._scheduler.stop()

    def on_resize(self) -> None:
        self.call_after_refresh(self._redraw)

    def _poll_state(self) -> None:
        version = self._quota_state.version
        phase = self._scheduler.state
        if version != self._seen_version or phase != self._seen_phase:
            self._seen_phase = phase
            self._redraw()

    def action_handle_input(self, name: str) -> None:
        event = InputEvent(name)
        panel = self.query_one(ModelsPanel)
        frame = self._quota_state.read()
        total = frame.snapshot.total_rows if frame.snapshot else 0
        command = self._view_state.handle(
            event, total_rows=total, viewport_height=panel.viewport_height
        )
        if command is Command.QUIT:
            self._scheduler.stop()
            self.exit()
            return
        if command is Command.REFRESH:
            if self._scheduler.request_refresh():
                self._note = None
            else:
                self._note = "Refresh already in progress"
        elif command is Command.TOGGLE_AUTO_REFRESH:
            self._scheduler.set_auto_refresh(self._view_state.auto_refresh)
        self.query_one(HelpPanel).display = self._view_state.help_visible
        self._redraw()

    def _redraw(self) -> None:
        frame = self._quota_state.read()
        self._seen_version = frame.version
        models_panel = self.query_one(ModelsPanel)
        height = models_panel.viewport_height
        snapshot = frame.snapshot
        self._view_state.clamp(
            total_rows=snapshot.total_rows if snapshot else 0,
            viewport_height=height,
        )
        layout = render(
            snapshot,
            self._view_state,
            summarize(snapshot),
            viewport_height=height,
            last_error=frame.last_error,
        )
        self.query_one(SummaryBar).set_layout(
            layout, self._status_note(frame.last_success_at)
        )
        self.query_one(AccountsPanel).set_layout(layout)
        models_panel.set_layout(layout)

    def _status_note(self, last_success_at: Optional[float]) -> str:
        parts: list[str] = []
        if last_success_at:
            updated = datetime.fromtimestamp(last_success_at).strftime("%H:%M:%S")
            parts.append(f"Last update {updated}")
        else:
            parts.append("Waiting for first update…")
        if not self._scheduler.timer_enabled:
            parts.append("Auto-refresh off (manual only)")
        elif self._view_state.auto_refresh:
            parts.append(f"Auto-refresh every {self._scheduler.interval:g}s")
        else:
            parts.append("Auto-refresh paused")
        if self._scheduler.state is SchedulerState.FETCHING:
            parts.append("Refreshing…")
        if self._note:
            parts.append(self._note)
        if self._url:
            parts.append(self._url)
        return "  •  ".join(parts)


def run_textual_dashboard(settings: Settings) -> int:
    configure_logging(debug=settings.debug, log_file=settings.log_file)
    fetcher = SnapshotFetcher(
        settings.url, timeout=settings.timeout, debug=settings.debug
    )
    state = QuotaState()
    scheduler = RefreshScheduler(fetcher, state, interval=settings.interval)
    app = QuotaTextualApp(scheduler, state, url=settings.url)
    try:
        app.run()
    finally:
        scheduler.stop()
        fetcher.close()
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(run_textual_dashboard(Settings.from_env()))
