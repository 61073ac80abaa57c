from __future__ import annotations

import logging
import threading
from typing import Optional

from rich.console import Console
from rich.text import Text

from .formatting import tone_style
from .models import summarize
from .render import ACCOUNT_COLUMNS, Cell, Layout, render
from .scheduler import RefreshScheduler
from .state import QuotaState
from .view_state import ViewState

logger = logging.getLogger("quotaboard.console")

ACCOUNT_WIDTHS = (20, 15, 25, 25)
MODEL_WIDTH = 28
CELL_WIDTH = 20


class ConsoleDashboard:
    """Line-oriented printout: one block of tables per refresh cycle."""

    def __init__(
        self,
        scheduler: RefreshScheduler,
        state: QuotaState,
        *,
        url: str = "",
        console: Optional[Console] = None,
        clear_screen: Optional[bool] = None,
    ) -> None:
        self._scheduler = scheduler
        self._state = state
        self._url = url
        self._console = console or Console(highlight=False)
        self._clear_screen = (
            self._console.is_terminal if clear_screen is None else clear_screen
        )
        self._view = ViewState(auto_refresh=scheduler.timer_enabled)
        self._stop_event = threading.Event()

    def stop(self) -> None:
        self._stop_event.set()

    def run(self, *, once: bool = False) -> int:
        """Fetch and print until interrupted; ``once`` exits after one cycle."""
        if once:
            ok = self._scheduler.refresh_now()
            self.print_frame()
            return 0 if ok else 1

        interval = self._scheduler.interval
        try:
            while not self._stop_event.is_set():
                self._scheduler.refresh_now()
                if self._clear_screen:
                    self._console.clear()
                self.print_frame()
                if not self._scheduler.timer_enabled:
                    break
                self._console.print(
                    f"\nRefreshing every {interval:g}s... (Ctrl+C to exit)", style="dim"
                )
                if self._stop_event.wait(interval):
                    break
        except KeyboardInterrupt:
            pass
        return 0

    def print_frame(self) -> None:
        frame = self._state.read()
        layout = render(
            frame.snapshot,
            self._view,
            summarize(frame.snapshot),
            last_error=frame.last_error,
        )
        for line in layout_lines(layout, url=self._url):
            self._console.print(line, soft_wrap=True)


def layout_lines(layout: Layout, *, url: str = "") -> list[Text]:
    """Render a :class:`Layout` as plain aligned lines with Rich styles."""
    lines: list[Text] = []
    header = Text()
    header.append(layout.title, style="bold cyan")
    if layout.timestamp:
        header.append(f" ({layout.timestamp})", style="dim")
    lines.append(header)

    if layout.error:
        lines.append(Text(f"Error: {layout.error}", style="red"))
        if layout.error_detail:
            lines.append(Text("Response body:", style="dim"))
            lines.append(Text(layout.error_detail))
        if not layout.has_snapshot and url:
            lines.append(Text(f"\nMake sure the proxy is running at {url}"))

    lines.append(_segments(layout.summary_segments))
    for warning in layout.warnings:
        lines.append(Text(f"warning: {warning}", style="yellow dim"))
    lines.append(Text())

    account_header = Text(style="bold")
    for title, width in zip(ACCOUNT_COLUMNS, ACCOUNT_WIDTHS):
        account_header.append(_pad(title, width))
    lines.append(account_header)
    lines.append(Text("-" * (sum(ACCOUNT_WIDTHS) + len(ACCOUNT_WIDTHS) - 1)))
    for row in layout.accounts:
        line = Text()
        line.append(_pad(row.label, ACCOUNT_WIDTHS[0]))
        line.append(_pad(row.status.text, ACCOUNT_WIDTHS[1]), style=tone_style(row.status.tone))
        line.append(_pad(row.last_used, ACCOUNT_WIDTHS[2]))
        line.append(_pad(row.reset, ACCOUNT_WIDTHS[3]))
        lines.append(line)
    lines.append(Text())

    cell_width = max(
        [CELL_WIDTH]
        + [len(title) + 1 for title in layout.columns[1:]]
        + [len(cell.text) + 1 for row in layout.rows for cell in row.cells]
    )
    model_header = Text(style="bold")
    model_header.append(_pad(layout.columns[0], MODEL_WIDTH))
    for title in layout.columns[1:]:
        model_header.append(_pad(title, cell_width))
    lines.append(model_header)
    lines.append(Text("-" * (MODEL_WIDTH + cell_width * (len(layout.columns) - 1))))
    for model_row in layout.rows:
        line = Text()
        line.append(_pad(model_row.model, MODEL_WIDTH))
        for cell in model_row.cells:
            line.append(_pad(cell.text, cell_width), style=tone_style(cell.tone))
        lines.append(line)
    return lines


def _segments(cells: tuple[Cell, ...]) -> Text:
    text = Text()
    for cell in cells:
        text.append(cell.text, style=tone_style(cell.tone))
    return text


def _pad(value: str, width: int) -> str:
    if len(value) >= width:
        return value + " "
    return value.ljust(width)
