from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

PAGE_SIZE = 10


class InputEvent(str, Enum):
    SCROLL_UP = "scroll_up"
    SCROLL_DOWN = "scroll_down"
    PAGE_UP = "page_up"
    PAGE_DOWN = "page_down"
    HOME = "home"
    END = "end"
    TOGGLE_HELP = "toggle_help"
    TOGGLE_AUTO_REFRESH = "toggle_auto_refresh"
    REFRESH = "refresh"
    QUIT = "quit"


class Command(str, Enum):
    """Side effect the input loop must forward after a transition."""

    NONE = "none"
    REFRESH = "refresh"
    TOGGLE_AUTO_REFRESH = "toggle_auto_refresh"
    QUIT = "quit"


KEY_BINDINGS: dict[str, InputEvent] = {
    "up": InputEvent.SCROLL_UP,
    "k": InputEvent.SCROLL_UP,
    "down": InputEvent.SCROLL_DOWN,
    "j": InputEvent.SCROLL_DOWN,
    "pageup": InputEvent.PAGE_UP,
    "pagedown": InputEvent.PAGE_DOWN,
    "home": InputEvent.HOME,
    "end": InputEvent.END,
    "question_mark": InputEvent.TOGGLE_HELP,
    "h": InputEvent.TOGGLE_HELP,
    "a": InputEvent.TOGGLE_AUTO_REFRESH,
    "r": InputEvent.REFRESH,
    "q": InputEvent.QUIT,
}


def max_offset(total_rows: int, viewport_height: int) -> int:
    return max(0, total_rows - max(viewport_height, 0))


@dataclass
class ViewState:
    scroll_offset: int = 0
    auto_refresh: bool = True
    help_visible: bool = False

    def clamp(self, *, total_rows: int, viewport_height: int) -> None:
        upper = max_offset(total_rows, viewport_height)
        self.scroll_offset = min(max(self.scroll_offset, 0), upper)

    def handle(
        self, event: InputEvent, *, total_rows: int, viewport_height: int
    ) -> Command:
        """Apply one input event; never touches the snapshot."""
        command = Command.NONE
        upper = max_offset(total_rows, viewport_height)
        if event is InputEvent.SCROLL_UP:
            self.scroll_offset -= 1
        elif event is InputEvent.SCROLL_DOWN:
            self.scroll_offset += 1
        elif event is InputEvent.PAGE_UP:
            self.scroll_offset -= PAGE_SIZE
        elif event is InputEvent.PAGE_DOWN:
            self.scroll_offset += PAGE_SIZE
        elif event is InputEvent.HOME:
            self.scroll_offset = 0
        elif event is InputEvent.END:
            self.scroll_offset = upper
        elif event is InputEvent.TOGGLE_HELP:
            self.help_visible = not self.help_visible
        elif event is InputEvent.TOGGLE_AUTO_REFRESH:
            self.auto_refresh = not self.auto_refresh
            command = Command.TOGGLE_AUTO_REFRESH
        elif event is InputEvent.REFRESH:
            command = Command.REFRESH
        elif event is InputEvent.QUIT:
            command = Command.QUIT
        self.clamp(total_rows=total_rows, viewport_height=viewport_height)
        return command
