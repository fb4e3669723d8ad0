"""Continuation state and the StateToken wire format.

A button carries everything needed to resume: no session store, no TTL.
The token survives process restarts as long as the options dataclass keeps
its layout.

    token = [route] ‖ tag ‖ payload ‖ nonce

    route    optional, b">" + codec string (1 byte length + UTF-8 name);
             present when the continuation is addressed to another command
             than the one the platform reports for the message
    tag      b"p" pagination (payload is Cursor[Opts])
             b"f" follow-up  (payload is FollowUpState[Opts])
    payload  StateCodec output
    nonce    4 random bytes; keeps otherwise identical buttons distinct

Bytes map one-to-one onto characters (Latin-1), so the character budget is
the byte budget unless a platform measures UTF-8 (see ``utf8_length``).
"""

from __future__ import annotations

import random
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

from fntypes import Error, Nothing, Ok, Option, Result, Some

from dexflow.codec import MAX_STRING_BYTES, StateCodec, type_name
from dexflow.errors import DecodeError, DexflowError, EncodeError, UnrecognizedInteractionError

OptionsT = TypeVar("OptionsT")

ROUTE_MARK = ord(">")
NONCE_SIZE = 4
DEFAULT_BUDGET = 100


# ═══════════════════════════════════════════════════════════════════════════════
# State values
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Page:
    """Window into a result list. ``limit`` rows starting at ``offset``."""

    limit: int
    offset: int = 0

    def __post_init__(self) -> None:
        if self.limit <= 0:
            raise ValueError(f"page limit must be positive, got {self.limit}")
        if self.offset < 0:
            raise ValueError(f"page offset must not be negative, got {self.offset}")


@dataclass(frozen=True)
class Cursor(Generic[OptionsT]):
    """Pagination state: the original options plus the page window."""

    options: OptionsT
    page: Page

    def at(self, offset: int) -> Cursor[OptionsT]:
        return Cursor(self.options, Page(limit=self.page.limit, offset=offset))


@dataclass(frozen=True)
class FollowUpState(Generic[OptionsT]):
    """Deferred invocation of a (possibly different) command."""

    options: OptionsT


class ActionTag(Enum):
    PAGINATE = "p"
    FOLLOW_UP = "f"

    @property
    def byte(self) -> int:
        return ord(self.value)


_TAGS = {tag.byte: tag for tag in ActionTag}
_WIDEST_NONCE = "\xff" * NONCE_SIZE


# ═══════════════════════════════════════════════════════════════════════════════
# Envelope: a token with its routing and tag split off, payload still raw
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Envelope:
    """Opened token. ``target`` is the routing prefix, when present."""

    action: ActionTag
    payload: bytes
    target: Option[str]


@dataclass(frozen=True)
class PaginationContinuation(Generic[OptionsT]):
    target: str
    cursor: Cursor[OptionsT]


@dataclass(frozen=True)
class FollowUpContinuation(Generic[OptionsT]):
    target: str
    state: FollowUpState[OptionsT]


type Continuation = PaginationContinuation[object] | FollowUpContinuation[object]


def utf8_length(token: str) -> int:
    """Token size as platforms that count UTF-8 bytes see it."""
    return len(token.encode("utf-8"))


# ═══════════════════════════════════════════════════════════════════════════════
# TokenCodec
# ═══════════════════════════════════════════════════════════════════════════════


class TokenCodec:
    """Issues and opens StateTokens.

    Args:
        codec: Binary codec for payloads (a fresh one by default).
        budget: Maximum token size, as counted by ``measure``.
        measure: Size function, ``len`` (characters) by default.
        always_route: Embed the routing prefix in every token. Needed on
            platforms that do not report which command produced a message.
        nonce: Source of nonce bytes, ``random.randbytes`` by default.
    """

    def __init__(
        self,
        codec: StateCodec | None = None,
        *,
        budget: int = DEFAULT_BUDGET,
        measure: Callable[[str], int] = len,
        always_route: bool = False,
        nonce: Callable[[int], bytes] = random.randbytes,
    ) -> None:
        self.codec = codec if codec is not None else StateCodec()
        self.budget = budget
        self.measure = measure
        self.always_route = always_route
        self._nonce = nonce

    def issue(
        self,
        state: Cursor[object] | FollowUpState[object],
        *,
        target: str,
        home: str | None = None,
    ) -> str:
        """Serialize ``state`` into a token addressed to command ``target``.

        ``home`` is the command the platform will report as the origin of
        the message carrying the button; the route is omitted when it
        equals ``target`` (unless ``always_route``).
        """
        if isinstance(state, Cursor):
            tag, layout = ActionTag.PAGINATE, Cursor[type(state.options)]  # type: ignore[misc]
        elif isinstance(state, FollowUpState):
            tag, layout = ActionTag.FOLLOW_UP, FollowUpState[type(state.options)]  # type: ignore[misc]
        else:
            raise EncodeError(f"cannot issue a token for {type(state).__name__}")

        out = bytearray()
        if self.always_route or target != home:
            name = target.encode("utf-8")
            if not name or len(name) > MAX_STRING_BYTES:
                raise EncodeError(f"invalid routing target {target!r}")
            out.append(ROUTE_MARK)
            out.append(len(name))
            out += name
        out.append(tag.byte)
        out += self.codec.encode(state, layout)

        # sized with the widest nonce, independent of the draw
        body = out.decode("latin-1")
        size = self.measure(body) + self.measure(_WIDEST_NONCE)
        if size > self.budget:
            raise EncodeError(
                f"{tag.name.lower()} token for {target!r} can be {size} long, budget is {self.budget}"
            )
        return body + self._nonce(NONCE_SIZE).decode("latin-1")

    def open(self, token: str) -> Result[Envelope, DexflowError]:
        """Split a token into routing target, action tag and raw payload."""
        try:
            data = token.encode("latin-1")
        except UnicodeEncodeError:
            return Error(DecodeError("token contains characters outside the byte range"))

        pos = 0
        target: Option[str] = Nothing()
        if data[:1] == bytes((ROUTE_MARK,)):
            if len(data) < 2:
                return Error(DecodeError("truncated routing prefix"))
            length = data[1]
            raw_name = data[2 : 2 + length]
            if len(raw_name) != length:
                return Error(DecodeError("truncated routing prefix"))
            try:
                target = Some(raw_name.decode("utf-8"))
            except UnicodeDecodeError:
                return Error(DecodeError("routing prefix is not valid UTF-8"))
            pos = 2 + length

        if len(data) - pos < 1 + NONCE_SIZE:
            return Error(DecodeError(f"token too short ({len(data)} bytes)"))
        tag = _TAGS.get(data[pos])
        if tag is None:
            return Error(UnrecognizedInteractionError(f"unknown action tag {data[pos]:#04x}"))
        payload = data[pos + 1 : len(data) - NONCE_SIZE]
        return Ok(Envelope(action=tag, payload=payload, target=target))

    def load_cursor[T](self, envelope: Envelope, options_type: type[T]) -> Cursor[T]:
        if envelope.action is not ActionTag.PAGINATE:
            raise UnrecognizedInteractionError(f"expected pagination token, got {envelope.action.name}")
        return self.codec.decode(envelope.payload, Cursor[options_type])  # type: ignore[valid-type,return-value]

    def load_follow_up[T](self, envelope: Envelope, options_type: type[T]) -> FollowUpState[T]:
        if envelope.action is not ActionTag.FOLLOW_UP:
            raise UnrecognizedInteractionError(f"expected follow-up token, got {envelope.action.name}")
        return self.codec.decode(envelope.payload, FollowUpState[options_type])  # type: ignore[valid-type,return-value]

    def load(self, envelope: Envelope, target: str, options_type: type) -> Continuation:
        """Decode the payload into the continuation matching its tag."""
        match envelope.action:
            case ActionTag.PAGINATE:
                return PaginationContinuation(target, self.load_cursor(envelope, options_type))
            case ActionTag.FOLLOW_UP:
                return FollowUpContinuation(target, self.load_follow_up(envelope, options_type))
        raise UnrecognizedInteractionError(f"no continuation for {type_name(envelope.action)}")


__all__ = (
    "ActionTag",
    "Continuation",
    "Cursor",
    "DEFAULT_BUDGET",
    "Envelope",
    "FollowUpContinuation",
    "FollowUpState",
    "NONCE_SIZE",
    "Page",
    "PaginationContinuation",
    "ROUTE_MARK",
    "TokenCodec",
    "utf8_length",
)
