"""pokedex — a small in-memory Pokedex bot.

    DEXFLOW_TELEGRAM_TOKEN=... DEXFLOW_CONFIG=config.toml uv run python examples/pokedex.py

Commands:
    /learnset pikachu [max_level=N] [egg_moves=yes]   paginated, autocompleted
    /dex pokemon pikachu                              card + "Learnset" follow-up
    /weak pokemon charizard | /weak type fire [flying]
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Annotated

from dexflow.app import DexApp
from dexflow.config import configure_logging, load_config
from dexflow.dispatch import PageResult, Reply, RequestContext
from dexflow.options import Arg, Focus, Focusable
from dexflow.registry import autocomplete, handle, paginate
from dexflow.sources import Choice, LazyTable, ListPageSource, prefix_choices
from dexflow.state import Cursor

logger = logging.getLogger("pokedex")


# ── Data ─────────────────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class LearnedMove:
    name: str
    level: int  # 0 = egg move


@dataclass(frozen=True, slots=True)
class Pokemon:
    name: str
    number: int
    types: tuple[str, ...]
    moves: tuple[LearnedMove, ...]


def _moves(*pairs: tuple[str, int]) -> tuple[LearnedMove, ...]:
    return tuple(LearnedMove(name, level) for name, level in pairs)


POKEMON = {
    p.name: p
    for p in (
        Pokemon("pikachu", 25, ("electric",), _moves(
            ("thunder-shock", 1), ("growl", 1), ("quick-attack", 6), ("thunder-wave", 8),
            ("double-team", 12), ("electro-ball", 16), ("slam", 20), ("spark", 24),
            ("agility", 28), ("discharge", 32), ("light-screen", 36), ("thunder", 40),
            ("volt-tackle", 0), ("wish", 0), ("fake-out", 0),
        )),
        Pokemon("charizard", 6, ("fire", "flying"), _moves(
            ("scratch", 1), ("growl", 1), ("ember", 4), ("smokescreen", 8),
            ("dragon-breath", 12), ("fire-fang", 17), ("slash", 24), ("flamethrower", 30),
            ("scary-face", 36), ("fire-spin", 42), ("inferno", 49), ("flare-blitz", 56),
            ("dragon-dance", 0), ("ancient-power", 0),
        )),
        Pokemon("squirtle", 7, ("water",), _moves(
            ("tackle", 1), ("tail-whip", 1), ("water-gun", 3), ("withdraw", 6),
            ("rapid-spin", 9), ("bite", 12), ("water-pulse", 15), ("protect", 18),
            ("rain-dance", 21), ("aqua-tail", 24), ("shell-smash", 27), ("hydro-pump", 33),
            ("mirror-coat", 0), ("aqua-jet", 0),
        )),
    )
}

# attacking type → defending type → multiplier (1.0 when absent)
TYPE_CHART: dict[str, dict[str, float]] = {
    "normal": {"ghost": 0.0},
    "fire": {"grass": 2.0, "water": 0.5, "fire": 0.5},
    "water": {"fire": 2.0, "ground": 2.0, "water": 0.5, "grass": 0.5},
    "grass": {"water": 2.0, "ground": 2.0, "fire": 0.5, "grass": 0.5, "flying": 0.5},
    "electric": {"water": 2.0, "flying": 2.0, "grass": 0.5, "electric": 0.5, "ground": 0.0},
    "ground": {"fire": 2.0, "electric": 2.0, "grass": 0.5, "flying": 0.0},
    "flying": {"grass": 2.0, "electric": 0.5},
    "ghost": {"ghost": 2.0, "normal": 0.0},
}


class Pokedex:
    """Dataset access. A real bot would query a database here."""

    def __init__(self) -> None:
        self.chart: LazyTable[str, dict[str, float]] = LazyTable(self._load_chart)

    async def _load_chart(self) -> dict[str, dict[str, float]]:
        logger.info("Loading type chart (%d types)", len(TYPE_CHART))
        return TYPE_CHART

    def pokemon(self, name: str) -> Pokemon | None:
        return POKEMON.get(name.strip().lower())

    def learnset(self, pokemon: Pokemon, max_level: int | None, egg_moves: bool) -> ListPageSource[LearnedMove]:
        rows = [
            m for m in pokemon.moves
            if (m.level == 0) == egg_moves and (max_level is None or m.level <= max_level)
        ]
        return ListPageSource(sorted(rows, key=lambda m: (m.level, m.name)))

    async def defending(self, types: tuple[str, ...]) -> dict[str, float]:
        chart = await self.chart.get()
        result: dict[str, float] = {}
        for attacking, row in chart.items():
            multiplier = 1.0
            for defending in types:
                multiplier *= row.get(defending, 1.0)
            if multiplier != 1.0:
                result[attacking] = multiplier
        return result


app = DexApp(config=load_config(os.environ.get("DEXFLOW_CONFIG")))


# ── /learnset ────────────────────────────────────────────────────────────────


@app.command("learnset", description="Moves a Pokemon learns", order=10)
@dataclass(frozen=True)
class LearnsetOptions:
    pokemon: Annotated[Focusable[str], Arg(description="Pokemon name")]
    max_level: Annotated[int | None, Arg(description="Highest level", min_value=1, max_value=100)] = None
    egg_moves: Annotated[bool | None, Arg(description="Show egg moves instead")] = None

    @classmethod
    @paginate
    async def page(cls, ctx: RequestContext, cursor: Cursor[LearnsetOptions]) -> PageResult:
        dex = ctx.resolve(Pokedex)
        opts = cursor.options
        pokemon = dex.pokemon(opts.pokemon.value)
        if pokemon is None:
            return PageResult(Reply(_not_found(opts.pokemon.value)))
        source = dex.learnset(pokemon, opts.max_level, bool(opts.egg_moves))
        rows, has_next = await source.fetch(cursor.page.offset, cursor.page.limit)
        display = app.theme.display
        if not rows:
            return PageResult(Reply(f"{pokemon.name.title()}: {display.empty}"))
        first = cursor.page.offset + 1
        shown = display.range_format.format(first, first + len(rows) - 1)
        title = f"{pokemon.name.title()} {'egg moves' if opts.egg_moves else 'level-up moves'} ({shown})"
        lines = [f"{'egg' if m.level == 0 else f'Lv {m.level:>3}'}  {m.name}" for m in rows]
        return PageResult(Reply("\n".join([title, *lines])), has_next=has_next)

    @classmethod
    @autocomplete
    async def suggest(cls, ctx: RequestContext, options: LearnsetOptions, focus: Focus) -> list[Choice]:
        return prefix_choices(POKEMON, str(focus.value))


def _not_found(name: str) -> str:
    return app.theme.errors.not_found.format(f"Pokemon {name!r}")


# ── /dex ─────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class DexByPokemon:
    name: Annotated[Focusable[str], Arg("pokemon", "Pokemon name")]


@app.command("dex", description="Pokedex entry", order=20)
@dataclass(frozen=True)
class DexOptions:
    pokemon: Annotated[DexByPokemon | None, Arg(description="Look up a Pokemon")] = None

    @classmethod
    @handle
    async def show(cls, ctx: RequestContext, options: DexOptions) -> Reply:
        if options.pokemon is None:
            return Reply("Usage: /dex pokemon <name>")
        dex = ctx.resolve(Pokedex)
        pokemon = dex.pokemon(options.pokemon.name.value)
        if pokemon is None:
            return Reply(_not_found(options.pokemon.name.value))
        learnset = ctx.follow_up(
            "learnset",
            LearnsetOptions(pokemon=Focusable(pokemon.name)),
            label="Learnset",
        )
        text = f"#{pokemon.number:03} {pokemon.name.title()}\nType: {' / '.join(pokemon.types)}"
        return Reply(text, buttons=(learnset,))

    @classmethod
    @autocomplete
    async def suggest(cls, ctx: RequestContext, options: DexOptions, focus: Focus) -> list[Choice]:
        return prefix_choices(POKEMON, str(focus.value))


# ── /weak ────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class WeakByPokemon:
    name: Annotated[Focusable[str], Arg("pokemon", "Pokemon name")]


@dataclass(frozen=True)
class WeakByType:
    first: Annotated[Focusable[str], Arg("type_1", "First type")]
    second: Annotated[Focusable[str] | None, Arg("type_2", "Second type")] = None


@app.command("weak", description="Defensive type matchups", order=30)
@dataclass(frozen=True)
class WeakOptions:
    pokemon: Annotated[WeakByPokemon | None, Arg(description="By Pokemon")] = None
    type: Annotated[WeakByType | None, Arg(description="By type")] = None

    @classmethod
    @handle
    async def show(cls, ctx: RequestContext, options: WeakOptions) -> Reply:
        dex = ctx.resolve(Pokedex)
        if options.pokemon is not None:
            pokemon = dex.pokemon(options.pokemon.name.value)
            if pokemon is None:
                return Reply(_not_found(options.pokemon.name.value))
            title, types = pokemon.name.title(), pokemon.types
        elif options.type is not None:
            types = tuple(
                f.value.lower() for f in (options.type.first, options.type.second) if f is not None
            )
            unknown = [t for t in types if t not in TYPE_CHART]
            if unknown:
                return Reply(f"Unknown type: {', '.join(unknown)}")
            title = " / ".join(types)
        else:
            return Reply("Usage: /weak pokemon <name> | /weak type <type> [type]")

        matchups = await dex.defending(types)
        lines = [title, "Defensive type chart"]
        for label, test in (
            ("Weaknesses", lambda m: m > 1.0),
            ("Resistances", lambda m: 0.0 < m < 1.0),
            ("Immunities", lambda m: m == 0.0),
        ):
            found = [f"{t} ({m:g}x)" for t, m in sorted(matchups.items()) if test(m)]
            if found:
                lines.append(f"{label}: {', '.join(found)}")
        return Reply("\n".join(lines))

    @classmethod
    @autocomplete
    async def suggest(cls, ctx: RequestContext, options: WeakOptions, focus: Focus) -> list[Choice]:
        if focus.path[0] == "pokemon":
            return prefix_choices(POKEMON, str(focus.value))
        return prefix_choices(TYPE_CHART, str(focus.value))


# ── Run ──────────────────────────────────────────────────────────────────────


if __name__ == "__main__":
    from telegrinder import API, Telegrinder, Token

    from dexflow.telegram import TelegramSurface

    configure_logging(app.config.log_level)
    if not app.config.telegram.token:
        print("Set DEXFLOW_TELEGRAM_TOKEN=... to run")
    else:
        surface = TelegramSurface.from_app(app, services={Pokedex: Pokedex()})
        bot = Telegrinder(API(Token(app.config.telegram.token)))
        surface.bind(bot.dispatch)
        bot.run_forever()
