from __future__ import annotations

import pytest

from quotaboard.view_state import (
    KEY_BINDINGS,
    PAGE_SIZE,
    Command,
    InputEvent,
    ViewState,
    max_offset,
)


def test_defaults() -> None:
    view = ViewState()
    assert view.scroll_offset == 0
    assert view.auto_refresh is True
    assert view.help_visible is False


def test_scroll_is_clamped_to_bounds() -> None:
    view = ViewState()

    view.handle(InputEvent.SCROLL_UP, total_rows=30, viewport_height=10)
    assert view.scroll_offset == 0

    view.handle(InputEvent.SCROLL_DOWN, total_rows=30, viewport_height=10)
    assert view.scroll_offset == 1

    view.handle(InputEvent.PAGE_DOWN, total_rows=30, viewport_height=10)
    assert view.scroll_offset == 1 + PAGE_SIZE

    view.handle(InputEvent.PAGE_DOWN, total_rows=30, viewport_height=10)
    assert view.scroll_offset == 20

    view.handle(InputEvent.PAGE_UP, total_rows=30, viewport_height=10)
    assert view.scroll_offset == 10

    view.handle(InputEvent.HOME, total_rows=30, viewport_height=10)
    assert view.scroll_offset == 0

    view.handle(InputEvent.END, total_rows=30, viewport_height=10)
    assert view.scroll_offset == 20


@pytest.mark.parametrize("event", list(InputEvent))
@pytest.mark.parametrize(("total_rows", "viewport_height"), [(0, 10), (5, 10), (50, 7), (12, 0)])
def test_every_event_leaves_offset_in_range(event, total_rows, viewport_height) -> None:
    view = ViewState(scroll_offset=999)

    view.handle(event, total_rows=total_rows, viewport_height=viewport_height)

    assert 0 <= view.scroll_offset <= max(0, total_rows - viewport_height)


def test_shrinking_row_count_reclamps_offset() -> None:
    view = ViewState()
    view.handle(InputEvent.END, total_rows=100, viewport_height=10)
    assert view.scroll_offset == 90

    view.handle(InputEvent.SCROLL_UP, total_rows=15, viewport_height=10)
    assert view.scroll_offset == 5

    view.clamp(total_rows=3, viewport_height=10)
    assert view.scroll_offset == 0


def test_commands_are_forwarded() -> None:
    view = ViewState()

    assert view.handle(InputEvent.REFRESH, total_rows=0, viewport_height=5) is Command.REFRESH
    assert view.handle(InputEvent.QUIT, total_rows=0, viewport_height=5) is Command.QUIT
    assert (
        view.handle(InputEvent.TOGGLE_AUTO_REFRESH, total_rows=0, viewport_height=5)
        is Command.TOGGLE_AUTO_REFRESH
    )
    assert view.auto_refresh is False
    assert view.handle(InputEvent.TOGGLE_HELP, total_rows=0, viewport_height=5) is Command.NONE
    assert view.help_visible is True


def test_max_offset_and_bindings() -> None:
    assert max_offset(10, 20) == 0
    assert max_offset(25, 10) == 15
    assert KEY_BINDINGS["q"] is InputEvent.QUIT
    assert KEY_BINDINGS["pagedown"] is InputEvent.PAGE_DOWN
