"""Front-end independent layout of one frame.

Both the console printout and the Textual screen draw from :class:`Layout`;
neither decides colours or formats numbers on its own.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from .formatting import (
    format_cell,
    format_reset,
    format_timestamp,
    short_account_id,
    status_label,
    status_tone,
    utc_now,
)
from .models import Snapshot, Summary
from .state import ErrorInfo
from .view_state import ViewState

TITLE = "Account Limits"
MODEL_COLUMN = "Model"
ACCOUNT_COLUMNS = ("Account", "Status", "Last Used", "Quota Reset")

HELP_LINES: tuple[tuple[str, str], ...] = (
    ("↑ / k", "Scroll models up one row"),
    ("↓ / j", "Scroll models down one row"),
    ("PgUp / PgDn", "Scroll ten rows"),
    ("Home / End", "Jump to first / last rows"),
    ("r", "Refresh now"),
    ("a", "Toggle auto-refresh"),
    ("? / h", "Toggle this help"),
    ("q", "Quit"),
)


@dataclass(frozen=True)
class Cell:
    text: str
    tone: str = ""


@dataclass(frozen=True)
class AccountRow:
    account_id: str
    label: str
    status: Cell
    last_used: str
    reset: str


@dataclass(frozen=True)
class ModelRow:
    model: str
    cells: tuple[Cell, ...]


@dataclass(frozen=True)
class Layout:
    title: str
    timestamp: Optional[str]
    summary: Summary
    summary_segments: tuple[Cell, ...]
    accounts: tuple[AccountRow, ...]
    columns: tuple[str, ...]
    rows: tuple[ModelRow, ...]
    total_rows: int
    first_row: int
    error: Optional[str] = None
    error_detail: Optional[str] = None
    help_visible: bool = False
    auto_refresh: bool = True
    warnings: tuple[str, ...] = field(default_factory=tuple)

    @property
    def has_snapshot(self) -> bool:
        return self.timestamp is not None

    @property
    def last_row(self) -> int:
        return self.first_row + len(self.rows)


def summary_segments(summary: Summary) -> tuple[Cell, ...]:
    return (
        Cell(f"Accounts: {summary.total} total, "),
        Cell(f"{summary.available} available", "ok"),
        Cell(", "),
        Cell(f"{summary.rate_limited} rate-limited", "limited"),
        Cell(", "),
        Cell(f"{summary.invalid} invalid", "invalid"),
        Cell(", "),
        Cell(f"{summary.disabled} disabled", "disabled"),
    )


def render(
    snapshot: Optional[Snapshot],
    view: ViewState,
    summary: Summary,
    *,
    viewport_height: Optional[int] = None,
    last_error: Optional[ErrorInfo] = None,
    now: Optional[datetime] = None,
) -> Layout:
    """Lay out one frame; ``viewport_height=None`` shows every model row."""
    now = now or utc_now()
    error = last_error.message if last_error else None
    detail = last_error.detail if last_error else None

    if snapshot is None:
        return Layout(
            title=TITLE,
            timestamp=None,
            summary=summary,
            summary_segments=summary_segments(summary),
            accounts=tuple(),
            columns=(MODEL_COLUMN,),
            rows=tuple(),
            total_rows=0,
            first_row=0,
            error=error,
            error_detail=detail,
            help_visible=view.help_visible,
            auto_refresh=view.auto_refresh,
        )

    accounts = tuple(
        AccountRow(
            account_id=account.id,
            label=short_account_id(account.id),
            status=Cell(status_label(account), status_tone(account)),
            last_used=format_timestamp(account.last_used),
            reset=format_reset(account.reset_at),
        )
        for account in snapshot.accounts
    )

    total_rows = snapshot.total_rows
    height = total_rows if viewport_height is None else max(viewport_height, 0)
    first = min(max(view.scroll_offset, 0), max(0, total_rows - height))
    window = snapshot.models[first : first + height]
    rows = tuple(
        ModelRow(
            model=model,
            cells=tuple(
                Cell(*format_cell(snapshot.quota(model, account.id), now))
                for account in snapshot.accounts
            ),
        )
        for model in window
    )

    return Layout(
        title=TITLE,
        timestamp=snapshot.timestamp or format_timestamp(snapshot.fetched_at),
        summary=summary,
        summary_segments=summary_segments(summary),
        accounts=accounts,
        columns=(MODEL_COLUMN, *(row.label for row in accounts)),
        rows=rows,
        total_rows=total_rows,
        first_row=first,
        error=error,
        error_detail=detail,
        help_visible=view.help_visible,
        auto_refresh=view.auto_refresh,
        warnings=snapshot.warnings,
    )
