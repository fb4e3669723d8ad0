"""uilib — configurable UI strings and keyboards for dexflow replies."""

from .theme import (
    NavUI,
    DisplayUI,
    ErrorUI,
    UITheme,
    DEFAULT_THEME,
)

from .keyboard import (
    NOOP_DATA,
    build_column_grid,
    build_reply_keyboard,
    control_buttons,
)

__all__ = (
    "NavUI",
    "DisplayUI",
    "ErrorUI",
    "UITheme",
    "DEFAULT_THEME",
    "NOOP_DATA",
    "build_column_grid",
    "build_reply_keyboard",
    "control_buttons",
)
