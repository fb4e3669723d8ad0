"""Keyboard builders for Telegram replies."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

from telegrinder.tools.keyboard import InlineButton, InlineKeyboard

if TYPE_CHECKING:
    from dexflow.dispatch import Reply

from dexflow.paging import PageControls
from dexflow.uilib.theme import UITheme

NOOP_DATA = "noop"


def build_column_grid(
    kb: InlineKeyboard,
    items: Sequence[tuple[str, str]],
    columns: int,
) -> None:
    """Add items to keyboard in a column grid layout.

    Args:
        kb: Keyboard to add buttons to.
        items: (text, callback_data) pairs.
        columns: Buttons per row before wrapping.
    """
    col_count = 0
    for text, cb_data in items:
        kb.add(InlineButton(text=text, callback_data=cb_data))
        col_count += 1
        if col_count >= columns:
            kb.row()
            col_count = 0
    if col_count > 0:
        kb.row()


def control_buttons(controls: PageControls, *, theme: UITheme) -> list[tuple[str, str]]:
    """(text, callback_data) for home/prev/next.

    Telegram has no disabled buttons: a disabled control becomes a
    placeholder that sends ``noop``.
    """
    labels = (theme.nav.home, theme.nav.prev, theme.nav.next)
    return [
        (theme.nav.disabled, NOOP_DATA) if control.disabled else (label, control.token)
        for label, control in zip(labels, controls)
    ]


def build_reply_keyboard(reply: Reply, *, theme: UITheme, columns: int = 2) -> InlineKeyboard | None:
    """Navigation row, then follow-up buttons in a grid. None when empty."""
    if reply.controls is None and not reply.buttons:
        return None
    kb = InlineKeyboard()
    if reply.controls is not None:
        build_column_grid(kb, control_buttons(reply.controls, theme=theme), columns=3)
    build_column_grid(kb, [(b.label, b.token) for b in reply.buttons], columns=columns)
    return kb


__all__ = (
    "NOOP_DATA",
    "build_column_grid",
    "build_reply_keyboard",
    "control_buttons",
)
