"""UITheme — configurable UI strings for dexflow replies.

Icons, labels and apology texts live in frozen dataclasses with sensible
defaults.

    from dexflow.uilib import UITheme, ErrorUI

    # Override just what you need, everything else keeps defaults
    theme = UITheme(errors=ErrorUI(generic="Что-то пошло не так."))
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class NavUI:
    """Pagination control labels."""

    home: str = "⏮"
    prev: str = "⏴"
    next: str = "⏵"
    disabled: str = "·"


@dataclass(frozen=True, slots=True)
class DisplayUI:
    """Formatting strings."""

    empty: str = "Nothing found."
    range_format: str = "{}-{} shown"


@dataclass(frozen=True, slots=True)
class ErrorUI:
    """Apology and rejection messages.

    Static strings are used as-is. Format-string templates use ``.format()``.
    """

    generic: str = "Something went wrong handling that. Please try again."
    stale_button: str = "This button no longer works. Run the command again."
    bad_arguments: str = "Could not read the arguments. Usage: {}"
    not_found: str = "{} not found."


@dataclass(frozen=True, slots=True)
class UITheme:
    """Top-level theme container.

    Override sub-dataclasses to customize UI strings::

        theme = UITheme(nav=NavUI(home="<<"))
    """

    nav: NavUI = field(default_factory=NavUI)
    display: DisplayUI = field(default_factory=DisplayUI)
    errors: ErrorUI = field(default_factory=ErrorUI)


DEFAULT_THEME = UITheme()


__all__ = (
    "NavUI",
    "DisplayUI",
    "ErrorUI",
    "UITheme",
    "DEFAULT_THEME",
)
