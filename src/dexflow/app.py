"""DexApp — one object that owns config, theme and the command registry.

    app = DexApp(config=load_config("config.toml"))

    @app.command("learnset", description="Moves a Pokemon learns")
    @dataclass(frozen=True)
    class LearnsetOptions:
        pokemon: Annotated[Focusable[str], Arg(description="Pokemon name")]

        @classmethod
        @paginate
        async def page(cls, ctx, cursor): ...

    dispatcher = app.dispatcher(services={Pokedex: dex})
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import TypeVar

from dexflow.config import DexConfig
from dexflow.dispatch import Dispatcher
from dexflow.registry import CommandRegistry, CommandSpec, build_command_spec
from dexflow.state import TokenCodec
from dexflow.uilib.theme import (
    DEFAULT_THEME,
    DisplayUI,
    ErrorUI,
    NavUI,
    UITheme,
)

T = TypeVar("T")


@dataclass
class DexApp:
    """Coordinator for commands sharing one config and theme.

    Validates command uniqueness eagerly, at decoration time.

    Attributes:
        config: Limits and budgets (page limit, suggestion limit, token budget).
        theme: UITheme for replies and controls.
        registry: CommandRegistry, frozen once a dispatcher is built.
    """

    config: DexConfig = field(default_factory=DexConfig)
    theme: UITheme = field(default_factory=lambda: DEFAULT_THEME)
    registry: CommandRegistry = field(default_factory=CommandRegistry)

    def register(
        self,
        options: type,
        name: str,
        *,
        description: str = "",
        page_limit: int | None = None,
        order: int = 100,
    ) -> CommandSpec:
        """Register an options dataclass as command ``name``."""
        spec = build_command_spec(
            options,
            name,
            description=description,
            page_limit=page_limit or self.config.commands.page_limit,
            order=order,
        )
        self.registry.register(spec)
        return spec

    def command(
        self,
        name: str,
        *,
        description: str = "",
        page_limit: int | None = None,
        order: int = 100,
    ) -> Callable[[type[T]], type[T]]:
        """Class decorator form of ``register``."""

        def decorator(options: type[T]) -> type[T]:
            self.register(options, name, description=description, page_limit=page_limit, order=order)
            return options

        return decorator

    def token_codec(self) -> TokenCodec:
        """Token codec with the configured character budget."""
        return TokenCodec(budget=self.config.commands.token_budget)

    def dispatcher(
        self,
        *,
        tokens: TokenCodec | None = None,
        services: Mapping[type, object] | None = None,
    ) -> Dispatcher:
        """Freeze the registry and build a dispatcher over it."""
        return Dispatcher(
            self.registry,
            tokens if tokens is not None else self.token_codec(),
            theme=self.theme,
            autocomplete_limit=self.config.commands.autocomplete_limit,
            services=services,
        )

    @property
    def commands(self) -> Sequence[CommandSpec]:
        """All registered commands, sorted by (order, name)."""
        return self.registry.commands


__all__ = (
    "DexApp",
    # UILib (re-exported for single-import convenience)
    "UITheme",
    "DEFAULT_THEME",
    "NavUI",
    "DisplayUI",
    "ErrorUI",
)
