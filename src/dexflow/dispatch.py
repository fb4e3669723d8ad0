"""Dispatcher — routes the three request kinds to command handlers.

    Fresh         /learnset pokemon:pikachu   → @handle, or @paginate at offset 0
    Autocomplete  user typing into an option  → @autocomplete
    Component     button press with a token   → @paginate (edit in place)
                                                or follow-up (new linked message)

The dispatcher returns an Outcome describing what the platform surface
should do; it never talks to the platform itself. Failures are logged and
turned into an apology (or silence, for autocomplete): nothing escapes
``dispatch``.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TypeVar

from fntypes import Error, Ok, Some

from dexflow.errors import DecodeError, DexflowError, EncodeError, UnrecognizedInteractionError
from dexflow.options import OptionNode, decode_options, find_focus
from dexflow.paging import PageControls, derive_controls
from dexflow.registry import CommandRegistry, CommandSpec
from dexflow.sources import Choice
from dexflow.state import (
    Cursor,
    FollowUpContinuation,
    FollowUpState,
    Page,
    PaginationContinuation,
    TokenCodec,
)
from dexflow.uilib.theme import DEFAULT_THEME, UITheme

logger = logging.getLogger(__name__)

S = TypeVar("S")

DEFAULT_AUTOCOMPLETE_LIMIT = 25


# ═══════════════════════════════════════════════════════════════════════════════
# Inbound request
# ═══════════════════════════════════════════════════════════════════════════════


class InteractionKind(Enum):
    COMMAND = "command"
    AUTOCOMPLETE = "autocomplete"
    COMPONENT = "component"


@dataclass(frozen=True, slots=True)
class Interaction:
    """One inbound request, already lifted off the platform payload.

    Attributes:
        kind: Which of the three request kinds this is.
        command: Invoked command name (COMMAND / AUTOCOMPLETE).
        options: Top-level option nodes (COMMAND / AUTOCOMPLETE).
        custom_id: StateToken of the pressed button (COMPONENT).
        origin_command: Command the platform reports as having produced
            the message the button sits on, when it reports one.
        locale: Language tag of the requesting user, empty when unknown.
        user_id: Platform id of the requesting user, when known.
    """

    kind: InteractionKind
    command: str = ""
    options: tuple[OptionNode, ...] = ()
    custom_id: str = ""
    origin_command: str | None = None
    locale: str = ""
    user_id: int | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Replies and outcomes
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class FollowUpButton:
    label: str
    token: str


@dataclass(frozen=True, slots=True)
class Reply:
    """Plain-text message body with optional paging controls and follow-ups."""

    text: str
    controls: PageControls | None = None
    buttons: tuple[FollowUpButton, ...] = ()


@dataclass(frozen=True, slots=True)
class PageResult:
    """What a @paginate handler returns: the page and whether more follows."""

    reply: Reply
    has_next: bool = False


@dataclass(frozen=True, slots=True)
class SendReply:
    """Send the reply as the response to a fresh invocation."""

    reply: Reply


@dataclass(frozen=True, slots=True)
class EditReply:
    """Replace the message the pressed button sits on."""

    reply: Reply


@dataclass(frozen=True, slots=True)
class PostFollowUp:
    """Post the reply as a new message referencing the pressed one."""

    reply: Reply


@dataclass(frozen=True, slots=True)
class Suggest:
    choices: tuple[Choice, ...]


@dataclass(frozen=True, slots=True)
class Apologize:
    """Best-effort failure notice. Text is user-safe, never an error message."""

    text: str


@dataclass(frozen=True, slots=True)
class Ignore:
    """Acknowledge without a visible response."""


type Outcome = SendReply | EditReply | PostFollowUp | Suggest | Apologize | Ignore


# ═══════════════════════════════════════════════════════════════════════════════
# RequestContext: handed to every handler
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class RequestContext:
    """Per-request view of the dispatcher for handlers.

    ``home`` is the command the platform will report as the origin of the
    message this request produces, or None when it will report none; tokens
    addressed elsewhere get a routing prefix.
    """

    interaction: Interaction
    command: CommandSpec
    home: str | None
    tokens: TokenCodec
    commands: Mapping[str, CommandSpec]
    services: Mapping[type, object] = field(default_factory=dict)

    @property
    def user_id(self) -> int | None:
        return self.interaction.user_id

    @property
    def locale(self) -> str:
        """Requesting user's language tag, for per-user lookups and wording."""
        return self.interaction.locale

    def follow_up(self, target: str, options: object, label: str) -> FollowUpButton:
        """Button that runs ``target`` with ``options`` as a new message."""
        spec = self.commands.get(target)
        if spec is None:
            raise UnrecognizedInteractionError(f"follow-up to unknown command {target!r}")
        if type(options) is not spec.options:
            raise EncodeError(
                f"/{target} takes {spec.options.__name__}, got {type(options).__name__}"
            )
        token = self.tokens.issue(FollowUpState(options), target=target, home=self.home)
        return FollowUpButton(label=label, token=token)

    def resolve(self, tp: type[S]) -> S:
        """Service registered for ``tp``. Raises LookupError when absent."""
        try:
            return self.services[tp]  # type: ignore[return-value]
        except KeyError:
            raise LookupError(f"no service registered for {tp.__name__}") from None


# ═══════════════════════════════════════════════════════════════════════════════
# Dispatcher
# ═══════════════════════════════════════════════════════════════════════════════


class Dispatcher:
    """Routes interactions to handlers of a frozen registry.

    Building a dispatcher freezes the registry. The dispatcher holds no
    mutable state, so one instance serves any number of concurrent requests.
    """

    def __init__(
        self,
        registry: CommandRegistry,
        tokens: TokenCodec | None = None,
        *,
        theme: UITheme = DEFAULT_THEME,
        autocomplete_limit: int = DEFAULT_AUTOCOMPLETE_LIMIT,
        services: Mapping[type, object] | None = None,
    ) -> None:
        self.commands = registry.freeze()
        self.tokens = tokens if tokens is not None else TokenCodec()
        self.theme = theme
        self.autocomplete_limit = autocomplete_limit
        self.services: Mapping[type, object] = dict(services or {})

    async def dispatch(self, interaction: Interaction) -> Outcome:
        """Handle one interaction. Never raises (except on cancellation)."""
        try:
            match interaction.kind:
                case InteractionKind.COMMAND:
                    return await self._fresh(interaction)
                case InteractionKind.AUTOCOMPLETE:
                    return await self._autocomplete(interaction)
                case InteractionKind.COMPONENT:
                    return await self._component(interaction)
            raise UnrecognizedInteractionError(f"unknown interaction kind {interaction.kind!r}")
        except DexflowError as exc:
            logger.warning(
                "Failed %s interaction for %s: %s: %s",
                interaction.kind.value, _describe(interaction), type(exc).__name__, exc,
            )
            return self._fail(interaction, exc)
        except Exception as exc:
            logger.exception(
                "Handler error in %s interaction for %s",
                interaction.kind.value, _describe(interaction),
            )
            return self._fail(interaction, exc)

    def _fail(self, interaction: Interaction, exc: Exception) -> Outcome:
        if interaction.kind is InteractionKind.AUTOCOMPLETE:
            return Ignore()
        if interaction.kind is InteractionKind.COMPONENT and isinstance(exc, DecodeError):
            return Apologize(self.theme.errors.stale_button)
        return Apologize(self.theme.errors.generic)

    def _lookup(self, name: str) -> CommandSpec:
        spec = self.commands.get(name)
        if spec is None:
            raise UnrecognizedInteractionError(f"no command registered as {name!r}")
        return spec

    def _context(self, interaction: Interaction, spec: CommandSpec, home: str | None) -> RequestContext:
        return RequestContext(
            interaction=interaction,
            command=spec,
            home=home,
            tokens=self.tokens,
            commands=self.commands,
            services=self.services,
        )

    # --- Fresh ---

    async def _fresh(self, interaction: Interaction) -> Outcome:
        spec = self._lookup(interaction.command)
        logger.info("Handling command %r", spec.name)
        options = decode_options(interaction.options, spec.options)
        ctx = self._context(interaction, spec, home=spec.name)
        return SendReply(await self._invoke(ctx, spec, options))

    async def _invoke(self, ctx: RequestContext, spec: CommandSpec, options: object) -> Reply:
        """Run a command from scratch: direct handler, or the first page."""
        if spec.handle is not None:
            return await spec.handle(ctx, options)  # type: ignore[misc]
        cursor = Cursor(options, Page(limit=spec.page_limit))
        return await self._page(ctx, spec, cursor)

    async def _page(self, ctx: RequestContext, spec: CommandSpec, cursor: Cursor[object]) -> Reply:
        if spec.paginate is None:
            raise UnrecognizedInteractionError(f"/{spec.name} has no paging handler")
        result: PageResult = await spec.paginate(ctx, cursor)  # type: ignore[misc]
        controls = derive_controls(
            cursor, result.has_next, self.tokens, target=spec.name, home=ctx.home,
        )
        return replace(result.reply, controls=controls)

    # --- Component ---

    async def _component(self, interaction: Interaction) -> Outcome:
        match self.tokens.open(interaction.custom_id):
            case Ok(envelope):
                pass
            case Error(err):
                raise err

        match envelope.target:
            case Some(name):
                target = name
            case _ if interaction.origin_command:
                target = interaction.origin_command
            case _:
                raise UnrecognizedInteractionError("token carries no route and the message has no origin command")

        spec = self._lookup(target)
        logger.info("Handling %s press for command %r", envelope.action.name.lower(), spec.name)

        match self.tokens.load(envelope, target, spec.options):
            case PaginationContinuation(cursor=cursor):
                # Edited in place: the message keeps whatever origin it had.
                ctx = self._context(interaction, spec, home=interaction.origin_command)
                return EditReply(await self._page(ctx, spec, cursor))
            case FollowUpContinuation(state=state):
                ctx = self._context(interaction, spec, home=None)
                if spec.follow_up is not None:
                    reply = await spec.follow_up(ctx, state)
                else:
                    reply = await self._invoke(ctx, spec, state.options)
                return PostFollowUp(reply)
        raise UnrecognizedInteractionError(f"unhandled action {envelope.action!r}")

    # --- Autocomplete ---

    async def _autocomplete(self, interaction: Interaction) -> Outcome:
        spec = self._lookup(interaction.command)
        if spec.autocomplete is None:
            raise UnrecognizedInteractionError(f"/{spec.name} has no autocomplete handler")
        options = decode_options(interaction.options, spec.options, partial=True)
        focus = find_focus(options)
        logger.debug("Autocomplete for %r on %s", spec.name, ".".join(focus.path))
        ctx = self._context(interaction, spec, home=spec.name)
        choices: Sequence[Choice] = await spec.autocomplete(ctx, options, focus)  # type: ignore[misc]
        return Suggest(tuple(choices)[: self.autocomplete_limit])


def _describe(interaction: Interaction) -> str:
    if interaction.command:
        return f"/{interaction.command}"
    if interaction.origin_command:
        return f"button on /{interaction.origin_command}"
    return "button"


__all__ = (
    "Apologize",
    "Dispatcher",
    "EditReply",
    "FollowUpButton",
    "Ignore",
    "Interaction",
    "InteractionKind",
    "Outcome",
    "PageResult",
    "PostFollowUp",
    "Reply",
    "RequestContext",
    "SendReply",
    "Suggest",
)
