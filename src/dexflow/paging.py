"""Pagination controls: home / prev / next.

    controls = derive_controls(cursor, has_next, tokens, target="learnset", home="learnset")
    if controls is not None:
        reply = replace(reply, controls=controls)

Every control carries its own token, disabled ones included (platforms
require distinct identifiers per button; the nonce keeps them apart).
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

from dexflow.state import Cursor, TokenCodec


@dataclass(frozen=True, slots=True)
class Control:
    """One navigation button: the token it sends and the cursor it encodes."""

    token: str
    disabled: bool
    cursor: Cursor[object]


@dataclass(frozen=True, slots=True)
class PageControls:
    home: Control
    prev: Control
    next: Control

    def __iter__(self) -> Iterator[Control]:
        return iter((self.home, self.prev, self.next))


def derive_controls(
    cursor: Cursor[object],
    has_next: bool,
    tokens: TokenCodec,
    *,
    target: str,
    home: str | None = None,
) -> PageControls | None:
    """Navigation for the page ``cursor`` points at.

    Returns None for a single-page result (first page, nothing after it).
    Token issuing errors (EncodeError) propagate: an un-issuable control must
    fail while rendering, not when the user clicks it.

    Args:
        cursor: Cursor of the page being rendered.
        has_next: Whether rows exist past this page.
        tokens: Token codec issuing the control tokens.
        target: Command that will handle the presses.
        home: Command the platform reports as the message origin.
    """
    offset, limit = cursor.page.offset, cursor.page.limit
    if offset == 0 and not has_next:
        return None

    def control(to: int, disabled: bool) -> Control:
        moved = cursor.at(to)
        return Control(
            token=tokens.issue(moved, target=target, home=home),
            disabled=disabled,
            cursor=moved,
        )

    back = offset - limit
    return PageControls(
        home=control(0, disabled=offset == 0),
        prev=control(max(back, 0), disabled=back < 0),
        next=control(offset + limit, disabled=not has_next),
    )


__all__ = (
    "Control",
    "PageControls",
    "derive_controls",
)
