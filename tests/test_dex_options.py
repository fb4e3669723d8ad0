"""Tests for dexflow.options — option schemas, decoding and focus."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated

import pytest

from dexflow.errors import DecodeError, SchemaError, UnrecognizedInteractionError
from dexflow.options import (
    Arg,
    Focusable,
    NodeKind,
    OptionNode,
    OptionType,
    decode_options,
    describe_schema,
    find_focus,
    schema_of,
    zero_options,
)


@dataclass(frozen=True)
class LearnsetArgs:
    pokemon: Annotated[Focusable[str], Arg(description="Pokemon name")]
    max_level: Annotated[int | None, Arg(description="Highest level", min_value=1, max_value=100)] = None
    egg_moves: bool = False


@dataclass(frozen=True)
class ByPokemon:
    name: Annotated[Focusable[str], Arg("pokemon", "Pokemon name")]


@dataclass(frozen=True)
class ByType:
    first: Annotated[Focusable[str], Arg("type_1", "First type")]
    second: Annotated[Focusable[str] | None, Arg("type_2", "Second type")] = None


@dataclass(frozen=True)
class WeakArgs:
    pokemon: Annotated[ByPokemon | None, Arg(description="By Pokemon")] = None
    type: Annotated[ByType | None, Arg(description="By type")] = None


@dataclass(frozen=True)
class DexArgs:
    entry: ByPokemon


@dataclass(frozen=True)
class SortArgs:
    order: Annotated[str | None, Arg(choices=(("Level", "level"), ("Name", "name")))] = None


@dataclass(frozen=True)
class BoundedArgs:
    level: Annotated[int, Arg(min_value=1, max_value=100)]
    order: Annotated[str | None, Arg(choices=(("Level", "level"), ("Name", "name")))] = None


@dataclass(frozen=True)
class RoutedArgs:
    target: str = "lookup"


@dataclass(frozen=True)
class DuplicateWire:
    a: Annotated[str, Arg("x")]
    b: Annotated[str, Arg("x")]


@dataclass(frozen=True)
class FloatArgs:
    ratio: float


def _str(name: str, value: object, focused: bool = False) -> OptionNode:
    return OptionNode(name, OptionType.STRING, value, focused)


def _int(name: str, value: object, focused: bool = False) -> OptionNode:
    return OptionNode(name, OptionType.INTEGER, value, focused)


def _sub(name: str, *options: OptionNode) -> OptionNode:
    return OptionNode(name, OptionType.SUB_COMMAND, options=options)


# ═══════════════════════════════════════════════════════════════════════════════
# Schema
# ═══════════════════════════════════════════════════════════════════════════════


class TestSchema:
    def test_node_kinds(self) -> None:
        schema = schema_of(LearnsetArgs)
        kinds = [(n.name, n.kind, n.type, n.optional) for n in schema.nodes]
        assert kinds == [
            ("pokemon", NodeKind.FOCUSABLE, OptionType.STRING, False),
            ("max_level", NodeKind.SCALAR, OptionType.INTEGER, True),
            ("egg_moves", NodeKind.SCALAR, OptionType.BOOLEAN, False),
        ]

    def test_wire_name_override(self) -> None:
        schema = schema_of(ByType)
        assert [n.name for n in schema.nodes] == ["type_1", "type_2"]
        assert [n.field_name for n in schema.nodes] == ["first", "second"]

    def test_subcommands(self) -> None:
        schema = schema_of(WeakArgs)
        assert [n.name for n in schema.subcommands] == ["pokemon", "type"]
        node = schema.node("type")
        assert node is not None and node.children is not None
        assert node.children.target is ByType

    def test_duplicate_wire_name(self) -> None:
        with pytest.raises(SchemaError):
            schema_of(DuplicateWire)

    def test_unsupported_type(self) -> None:
        with pytest.raises(SchemaError):
            schema_of(FloatArgs)

    def test_not_a_dataclass(self) -> None:
        with pytest.raises(SchemaError):
            schema_of(int)

    def test_cached(self) -> None:
        assert schema_of(LearnsetArgs) is schema_of(LearnsetArgs)

    def test_zero_defaults_accepted(self) -> None:
        assert schema_of(LearnsetArgs).node("egg_moves") is not None

    def test_other_defaults_rejected(self) -> None:
        with pytest.raises(SchemaError):
            schema_of(RoutedArgs)
        with pytest.raises(DecodeError):
            decode_options([], RoutedArgs)


class TestDescribeSchema:
    def test_scalars(self) -> None:
        described = describe_schema(schema_of(LearnsetArgs))
        assert described[0] == {
            "type": 3,
            "name": "pokemon",
            "description": "Pokemon name",
            "required": True,
            "autocomplete": True,
        }
        assert described[1]["min_value"] == 1
        assert described[1]["max_value"] == 100
        assert described[1]["required"] is False
        assert described[2]["description"] == "egg_moves"

    def test_subcommands_nest(self) -> None:
        described = describe_schema(schema_of(WeakArgs))
        assert [d["type"] for d in described] == [1, 1]
        type_options = described[1]["options"]
        assert isinstance(type_options, list)
        assert [o["name"] for o in type_options] == ["type_1", "type_2"]

    def test_choices(self) -> None:
        described = describe_schema(schema_of(SortArgs))
        assert described[0]["choices"] == [
            {"name": "Level", "value": "level"},
            {"name": "Name", "value": "name"},
        ]


# ═══════════════════════════════════════════════════════════════════════════════
# Decoding
# ═══════════════════════════════════════════════════════════════════════════════


class TestDecodeOptions:
    def test_scalars(self) -> None:
        opts = decode_options([_str("pokemon", "pikachu"), _int("max_level", 30)], LearnsetArgs)
        assert opts == LearnsetArgs(Focusable("pikachu"), 30, False)

    def test_absent_fields_take_zero_values(self) -> None:
        opts = decode_options([], LearnsetArgs)
        assert opts == LearnsetArgs(Focusable(""), None, False)

    def test_bool(self) -> None:
        opts = decode_options(
            [_str("pokemon", "eevee"), OptionNode("egg_moves", OptionType.BOOLEAN, True)],
            LearnsetArgs,
        )
        assert opts.egg_moves is True

    def test_unknown_option_rejected(self) -> None:
        with pytest.raises(DecodeError):
            decode_options([_str("pokemon", "pikachu"), _str("shiny", "yes")], LearnsetArgs)

    def test_duplicate_option_rejected(self) -> None:
        with pytest.raises(DecodeError):
            decode_options([_str("pokemon", "a"), _str("pokemon", "b")], LearnsetArgs)

    def test_type_mismatch_rejected(self) -> None:
        with pytest.raises(DecodeError):
            decode_options([_str("max_level", "30")], LearnsetArgs)

    def test_value_mismatch_rejected(self) -> None:
        with pytest.raises(DecodeError):
            decode_options([_int("max_level", "30")], LearnsetArgs)

    def test_bool_is_never_an_integer(self) -> None:
        with pytest.raises(DecodeError):
            decode_options([_int("max_level", True)], LearnsetArgs)

    def test_unknown_node_type_rejected(self) -> None:
        with pytest.raises(DecodeError):
            decode_options([OptionNode("pokemon", 9, "x")], LearnsetArgs)  # type: ignore[arg-type]

    def test_subcommand(self) -> None:
        opts = decode_options([_sub("type", _str("type_1", "fire"))], WeakArgs)
        assert opts == WeakArgs(pokemon=None, type=ByType(Focusable("fire"), None))

    def test_subcommand_with_optional_focusable(self) -> None:
        opts = decode_options(
            [_sub("type", _str("type_1", "fire"), _str("type_2", "flying"))], WeakArgs,
        )
        assert opts.type is not None
        assert opts.type.second == Focusable("flying")

    def test_second_subcommand_rejected(self) -> None:
        with pytest.raises(DecodeError):
            decode_options(
                [_sub("pokemon", _str("pokemon", "pikachu")), _sub("type", _str("type_1", "fire"))],
                WeakArgs,
            )

    def test_subcommand_given_as_scalar_rejected(self) -> None:
        with pytest.raises(DecodeError):
            decode_options([_str("type", "fire")], WeakArgs)

    def test_unknown_option_inside_subcommand_rejected(self) -> None:
        with pytest.raises(DecodeError):
            decode_options([_sub("type", _str("type_3", "ice"))], WeakArgs)

    def test_required_subcommand_zero_value(self) -> None:
        assert decode_options([], DexArgs) == DexArgs(ByPokemon(Focusable("")))

    def test_zero_options(self) -> None:
        assert zero_options(WeakArgs) == WeakArgs(None, None)


class TestBounds:
    @pytest.mark.parametrize("level", [1, 100])
    def test_within_range(self, level: int) -> None:
        assert decode_options([_int("level", level)], BoundedArgs) == BoundedArgs(level)

    @pytest.mark.parametrize("level", [0, -5, 101])
    def test_out_of_range_rejected(self, level: int) -> None:
        with pytest.raises(DecodeError):
            decode_options([_int("level", level)], BoundedArgs)

    def test_declared_choice(self) -> None:
        opts = decode_options([_int("level", 5), _str("order", "name")], BoundedArgs)
        assert opts.order == "name"

    def test_undeclared_choice_rejected(self) -> None:
        with pytest.raises(DecodeError):
            decode_options([_int("level", 5), _str("order", "price")], BoundedArgs)

    def test_focused_input_not_checked_while_typing(self) -> None:
        opts = decode_options([_int("level", "0", focused=True)], BoundedArgs, partial=True)
        assert opts.level == 0
        typed = decode_options([_int("level", 5), _str("order", "na", focused=True)], BoundedArgs, partial=True)
        assert typed.order == "na"

    def test_unfocused_input_checked_while_typing(self) -> None:
        with pytest.raises(DecodeError):
            decode_options([_int("level", 500), _str("order", "na", focused=True)], BoundedArgs, partial=True)


class TestPartialDecode:
    def test_empty_focused_value(self) -> None:
        opts = decode_options([_str("pokemon", "", focused=True)], LearnsetArgs, partial=True)
        assert opts.pokemon == Focusable("", True)

    def test_missing_focused_value(self) -> None:
        opts = decode_options([_str("pokemon", None, focused=True)], LearnsetArgs, partial=True)
        assert opts.pokemon == Focusable("", True)

    def test_integer_typed_as_text(self) -> None:
        opts = decode_options([_int("max_level", "3", focused=True)], LearnsetArgs, partial=True)
        assert opts.max_level == 3

    def test_unparseable_integer_text_is_zero(self) -> None:
        opts = decode_options([_int("max_level", "3x", focused=True)], LearnsetArgs, partial=True)
        assert opts.max_level == 0

    def test_unfocused_nodes_stay_strict(self) -> None:
        with pytest.raises(DecodeError):
            decode_options([_int("max_level", "3")], LearnsetArgs, partial=True)

    def test_empty_value_rejected_outside_autocomplete(self) -> None:
        with pytest.raises(DecodeError):
            decode_options([_str("pokemon", None, focused=True)], LearnsetArgs)


# ═══════════════════════════════════════════════════════════════════════════════
# Focus
# ═══════════════════════════════════════════════════════════════════════════════


class TestFindFocus:
    def test_top_level(self) -> None:
        focus = find_focus(LearnsetArgs(Focusable("pika", True)))
        assert focus.path == ("pokemon",)
        assert focus.name == "pokemon"
        assert focus.value == "pika"

    def test_inside_subcommand(self) -> None:
        opts = decode_options(
            [_sub("type", _str("type_1", "fire"), _str("type_2", "fl", focused=True))],
            WeakArgs,
            partial=True,
        )
        focus = find_focus(opts)
        assert focus.path == ("type", "type_2")
        assert focus.value == "fl"

    def test_none_focused(self) -> None:
        with pytest.raises(UnrecognizedInteractionError):
            find_focus(LearnsetArgs(Focusable("pikachu")))

    def test_two_focused(self) -> None:
        opts = WeakArgs(type=ByType(Focusable("fi", True), Focusable("fl", True)))
        with pytest.raises(UnrecognizedInteractionError):
            find_focus(opts)
