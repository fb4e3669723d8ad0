"""Command registry and handler decorators.

Handlers live on the options dataclass as classmethods:

    @dataclass(frozen=True)
    class LearnsetOptions:
        pokemon: Annotated[Focusable[str], Arg(description="Pokemon name")]
        max_level: int | None = None

        @classmethod
        @paginate
        async def page(cls, ctx: RequestContext, cursor: Cursor[LearnsetOptions]) -> PageResult: ...

        @classmethod
        @autocomplete
        async def suggest(cls, ctx: RequestContext, options: LearnsetOptions, focus: Focus) -> list[Choice]: ...

Ensures no two commands claim the same name. Frozen before the dispatcher
is built; read-only afterwards.
"""

from __future__ import annotations

import inspect
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TypeVar

from dexflow.errors import SchemaError
from dexflow.options import OptionSchema, schema_of

F = TypeVar("F", bound=Callable[..., object])


HANDLE_ATTR = "__dex_handle__"
PAGINATE_ATTR = "__dex_paginate__"
AUTOCOMPLETE_ATTR = "__dex_autocomplete__"
FOLLOW_UP_ATTR = "__dex_follow_up__"

DEFAULT_PAGE_LIMIT = 15


# ═══════════════════════════════════════════════════════════════════════════════
# Decorators: @handle, @paginate, @autocomplete, @follow_up
# ═══════════════════════════════════════════════════════════════════════════════


def handle(fn: F) -> F:
    """Mark classmethod as the direct handler: ``(cls, ctx, options) -> Reply``."""
    setattr(fn, HANDLE_ATTR, True)
    return fn


def paginate(fn: F) -> F:
    """Mark classmethod as the paging handler: ``(cls, ctx, cursor) -> PageResult``.

    Called for the first page of a fresh invocation and for every
    home/prev/next press afterwards.
    """
    setattr(fn, PAGINATE_ATTR, True)
    return fn


def autocomplete(fn: F) -> F:
    """Mark classmethod as the suggestion source: ``(cls, ctx, options, focus) -> [Choice]``."""
    setattr(fn, AUTOCOMPLETE_ATTR, True)
    return fn


def follow_up(fn: F) -> F:
    """Mark classmethod as the follow-up handler: ``(cls, ctx, state) -> Reply``.

    Optional. Without it a follow-up button runs the command as a fresh
    invocation of the carried options.
    """
    setattr(fn, FOLLOW_UP_ATTR, True)
    return fn


_MARKERS = (HANDLE_ATTR, PAGINATE_ATTR, AUTOCOMPLETE_ATTR, FOLLOW_UP_ATTR)


def _iter_handler_methods(options: type) -> Sequence[tuple[str, object]]:
    """Public methods of the options class, yielding (name, unwrapped_fn)."""
    results: list[tuple[str, object]] = []
    for name in dir(options):
        if name.startswith("_"):
            continue
        raw = inspect.getattr_static(options, name, None)
        if raw is None:
            continue
        results.append((name, raw))
        fn = getattr(raw, "__func__", None)
        if fn is not None:
            results.append((name, fn))
    return results


def _find_handlers(options: type) -> dict[str, str]:
    """Map each marker attribute to the single method carrying it."""
    found: dict[str, list[str]] = {marker: [] for marker in _MARKERS}
    for name, fn in _iter_handler_methods(options):
        for marker in _MARKERS:
            if getattr(fn, marker, False) and name not in found[marker]:
                found[marker].append(name)
    handlers: dict[str, str] = {}
    for marker, names in found.items():
        if len(names) > 1:
            raise SchemaError(
                f"{options.__name__} has {len(names)} methods marked {marker.strip('_')} "
                f"({', '.join(names)}), but only one is allowed"
            )
        if names:
            handlers[marker] = names[0]
    return handlers


# ═══════════════════════════════════════════════════════════════════════════════
# CommandSpec
# ═══════════════════════════════════════════════════════════════════════════════


type Handler = Callable[..., object]


@dataclass(frozen=True, slots=True)
class CommandSpec:
    """Registered command: options type, schema and bound handlers."""

    name: str
    options: type
    schema: OptionSchema
    description: str = ""
    handle: Handler | None = None
    paginate: Handler | None = None
    autocomplete: Handler | None = None
    follow_up: Handler | None = None
    page_limit: int = DEFAULT_PAGE_LIMIT
    order: int = 100

    @property
    def paged(self) -> bool:
        """True when fresh invocations go through the paging handler."""
        return self.handle is None


def build_command_spec(
    options: type,
    name: str,
    *,
    description: str = "",
    page_limit: int = DEFAULT_PAGE_LIMIT,
    order: int = 100,
) -> CommandSpec:
    """Inspect an options dataclass and bind its marked handlers.

    Raises SchemaError when the options cannot be decoded, when a decorator
    is used twice, or when neither @handle nor @paginate is present.
    """
    schema = schema_of(options)
    handlers = _find_handlers(options)
    if HANDLE_ATTR not in handlers and PAGINATE_ATTR not in handlers:
        raise SchemaError(
            f"{options.__name__} must have a @handle or @paginate method"
        )
    if page_limit <= 0:
        raise ValueError(f"page_limit must be positive, got {page_limit}")

    def bound(marker: str) -> Handler | None:
        method = handlers.get(marker)
        return getattr(options, method) if method is not None else None

    return CommandSpec(
        name=name,
        options=options,
        schema=schema,
        description=description,
        handle=bound(HANDLE_ATTR),
        paginate=bound(PAGINATE_ATTR),
        autocomplete=bound(AUTOCOMPLETE_ATTR),
        follow_up=bound(FOLLOW_UP_ATTR),
        page_limit=page_limit,
        order=order,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# CommandRegistry
# ═══════════════════════════════════════════════════════════════════════════════


class CommandCollision(ValueError):
    """Raised when two commands claim the same name."""


class RegistryFrozen(RuntimeError):
    """Raised when registering after the dispatcher has been built."""


@dataclass
class CommandRegistry:
    """Startup-time registry: command name → CommandSpec.

    Mutable until ``freeze()``. Validates uniqueness eagerly: collision =
    immediate error.
    """

    _commands: dict[str, CommandSpec] = field(default_factory=lambda: dict[str, CommandSpec]())
    _frozen: bool = False

    def register(self, spec: CommandSpec) -> None:
        """Register a command. Raises CommandCollision on duplicate."""
        if self._frozen:
            raise RegistryFrozen(f"cannot register /{spec.name}: registry is frozen")
        if spec.name in self._commands:
            existing = self._commands[spec.name]
            raise CommandCollision(
                f"Command /{spec.name} already registered "
                f"by {existing.options.__name__}"
            )
        self._commands[spec.name] = spec

    def get(self, name: str) -> CommandSpec | None:
        return self._commands.get(name)

    def freeze(self) -> Mapping[str, CommandSpec]:
        """Stop accepting registrations and return a read-only view."""
        self._frozen = True
        return MappingProxyType(self._commands)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __contains__(self, name: object) -> bool:
        return name in self._commands

    def __len__(self) -> int:
        return len(self._commands)

    @property
    def commands(self) -> Sequence[CommandSpec]:
        """All registered commands, sorted by (order, name)."""
        return sorted(
            self._commands.values(),
            key=lambda c: (c.order, c.name),
        )


__all__ = (
    "AUTOCOMPLETE_ATTR",
    "CommandCollision",
    "CommandRegistry",
    "CommandSpec",
    "DEFAULT_PAGE_LIMIT",
    "FOLLOW_UP_ATTR",
    "HANDLE_ATTR",
    "PAGINATE_ATTR",
    "RegistryFrozen",
    "autocomplete",
    "build_command_spec",
    "follow_up",
    "handle",
    "paginate",
)
