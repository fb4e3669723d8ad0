"""Option schemas and the option-tree decoder.

An options dataclass declares a command's arguments. The field type picks
the node kind, an ``Arg`` marker in ``Annotated`` carries the wire name and
platform metadata:

    @dataclass(frozen=True)
    class WeakByType:
        first: Annotated[Focusable[str], Arg("type_1", "First type")]
        second: Annotated[Focusable[str] | None, Arg("type_2", "Second type")]

    @dataclass(frozen=True)
    class WeakOptions:
        pokemon: Annotated[WeakByPokemon | None, Arg(description="By Pokemon")]
        type: Annotated[WeakByType | None, Arg(description="By type")]

Kinds:
    str / int / bool          scalar
    T | None                  optional scalar
    Focusable[T]              scalar + "being typed" flag (autocomplete)
    dataclass                 subcommand
    dataclass | None          optional subcommand

The decoder is strict: unknown names, duplicate names and type mismatches
are DecodeErrors, and so are values outside an ``Arg``'s bounds or choices.
Absent fields get their zero value, or None when optional; a declared
default must equal that value.
"""

from __future__ import annotations

import dataclasses
import functools
import types
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import (
    Annotated,
    Generic,
    TypeVar,
    Union,
    get_args,
    get_origin,
    get_type_hints,
)

from dexflow.errors import DecodeError, SchemaError, UnrecognizedInteractionError

V = TypeVar("V")


# ═══════════════════════════════════════════════════════════════════════════════
# Inbound option tree (platform payload)
# ═══════════════════════════════════════════════════════════════════════════════


class OptionType(IntEnum):
    """Option node types, numbered as the platform numbers them."""

    SUB_COMMAND = 1
    SUB_COMMAND_GROUP = 2
    STRING = 3
    INTEGER = 4
    BOOLEAN = 5


@dataclass(frozen=True, slots=True)
class OptionNode:
    """One named, typed argument node as delivered by the platform."""

    name: str
    type: OptionType
    value: object = None
    focused: bool = False
    options: tuple[OptionNode, ...] = ()


# ═══════════════════════════════════════════════════════════════════════════════
# Declaration side: Focusable, Arg
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class Focusable(Generic[V]):
    """Scalar that also records whether the user is currently typing into it."""

    value: V
    focused: bool = False


@dataclass(frozen=True, slots=True)
class Arg:
    """Wire name and platform metadata for an options field."""

    name: str = ""
    description: str = ""
    min_value: int | None = None
    max_value: int | None = None
    choices: tuple[tuple[str, str | int], ...] = ()


# ═══════════════════════════════════════════════════════════════════════════════
# Schema
# ═══════════════════════════════════════════════════════════════════════════════


class NodeKind(Enum):
    SCALAR = "scalar"
    FOCUSABLE = "focusable"
    SUBCOMMAND = "subcommand"


_SCALAR_TYPES: dict[type, OptionType] = {
    str: OptionType.STRING,
    int: OptionType.INTEGER,
    bool: OptionType.BOOLEAN,
}
_ZERO: dict[type, object] = {str: "", int: 0, bool: False}
_SUBCOMMAND_TYPES = (OptionType.SUB_COMMAND, OptionType.SUB_COMMAND_GROUP)


@dataclass(frozen=True, slots=True)
class SchemaNode:
    """One field of an options dataclass, as seen on the wire."""

    name: str
    field_name: str
    kind: NodeKind
    type: OptionType
    optional: bool
    scalar: type | None = None
    children: OptionSchema | None = None
    arg: Arg = field(default_factory=Arg)


@dataclass(frozen=True, slots=True)
class OptionSchema:
    """Ordered option nodes derived from an options dataclass."""

    target: type
    nodes: tuple[SchemaNode, ...]

    def node(self, name: str) -> SchemaNode | None:
        for node in self.nodes:
            if node.name == name:
                return node
        return None

    @property
    def subcommands(self) -> tuple[SchemaNode, ...]:
        return tuple(n for n in self.nodes if n.kind is NodeKind.SUBCOMMAND)


def _unwrap_optional(tp: object) -> tuple[object, bool]:
    origin = get_origin(tp)
    if origin is Union or origin is types.UnionType:
        args = get_args(tp)
        present = [a for a in args if a is not type(None)]
        if len(args) == 2 and len(present) == 1:
            return present[0], True
        raise SchemaError(f"only 'T | None' unions are supported, got {tp!r}")
    return tp, False


def _split_hint(hint: object) -> tuple[object, Arg, bool]:
    """Strip Annotated/Optional layers, return (base type, Arg, optional)."""
    arg = Arg()
    optional = False
    while True:
        if get_origin(hint) is Annotated:
            base, *meta = get_args(hint)
            arg = next((m for m in meta if isinstance(m, Arg)), arg)
            hint = base
            continue
        hint, is_optional = _unwrap_optional(hint)
        if is_optional:
            optional = True
            continue
        return hint, arg, optional


@functools.cache
def schema_of(target: type) -> OptionSchema:
    """Build (and cache) the option schema of an options dataclass."""
    if not (isinstance(target, type) and dataclasses.is_dataclass(target)):
        raise SchemaError(f"{target!r} is not a dataclass")
    try:
        hints = get_type_hints(target, include_extras=True)
    except NameError as exc:
        raise SchemaError(f"cannot resolve annotations of {target.__name__}: {exc}") from exc

    nodes: list[SchemaNode] = []
    seen: set[str] = set()
    for f in dataclasses.fields(target):
        if not f.init:
            raise SchemaError(f"{target.__name__}.{f.name} cannot be set by the decoder")
        base, arg, optional = _split_hint(hints[f.name])
        wire = arg.name or f.name
        if wire in seen:
            raise SchemaError(f"{target.__name__} declares option {wire!r} twice")
        seen.add(wire)

        if isinstance(base, type) and base in _SCALAR_TYPES:
            node = SchemaNode(wire, f.name, NodeKind.SCALAR, _SCALAR_TYPES[base], optional, base, arg=arg)
        elif get_origin(base) is Focusable:
            (inner,) = get_args(base)
            if inner not in _SCALAR_TYPES:
                raise SchemaError(f"{target.__name__}.{f.name}: Focusable[{inner!r}] is not a scalar")
            node = SchemaNode(wire, f.name, NodeKind.FOCUSABLE, _SCALAR_TYPES[inner], optional, inner, arg=arg)
        elif isinstance(base, type) and dataclasses.is_dataclass(base):
            node = SchemaNode(
                wire, f.name, NodeKind.SUBCOMMAND, OptionType.SUB_COMMAND, optional,
                children=schema_of(base), arg=arg,
            )
        else:
            raise SchemaError(f"{target.__name__}.{f.name}: unsupported option type {base!r}")
        default = _declared_default(f)
        if default is not dataclasses.MISSING and default != _zero(node):
            raise SchemaError(
                f"{target.__name__}.{f.name}: default {default!r} differs from the zero value "
                f"{_zero(node)!r} that an absent option decodes to"
            )
        nodes.append(node)
    return OptionSchema(target=target, nodes=tuple(nodes))


def _declared_default(f: dataclasses.Field[object]) -> object:
    if f.default is not dataclasses.MISSING:
        return f.default
    if f.default_factory is not dataclasses.MISSING:
        return f.default_factory()
    return dataclasses.MISSING


def _zero(node: SchemaNode) -> object:
    if node.optional:
        return None
    match node.kind:
        case NodeKind.SCALAR:
            return _ZERO[node.scalar]  # type: ignore[index]
        case NodeKind.FOCUSABLE:
            return Focusable(_ZERO[node.scalar])  # type: ignore[index]
        case NodeKind.SUBCOMMAND:
            assert node.children is not None
            return zero_options(node.children.target)


def zero_options[T](target: type[T]) -> T:
    """Options value with every field at its zero value (or None)."""
    schema = schema_of(target)
    return schema.target(**{n.field_name: _zero(n) for n in schema.nodes})


# ═══════════════════════════════════════════════════════════════════════════════
# Decoder
# ═══════════════════════════════════════════════════════════════════════════════


def _matches(value: object, scalar: type) -> bool:
    if scalar is int:
        return isinstance(value, int) and not isinstance(value, bool)
    return isinstance(value, scalar)


def _check_bounds(value: object, arg: Arg, where: str) -> None:
    if isinstance(value, int) and arg.min_value is not None and value < arg.min_value:
        raise DecodeError(f"{where}: {value!r} is below the minimum {arg.min_value}")
    if isinstance(value, int) and arg.max_value is not None and value > arg.max_value:
        raise DecodeError(f"{where}: {value!r} is above the maximum {arg.max_value}")
    if arg.choices and value not in {v for _, v in arg.choices}:
        raise DecodeError(f"{where}: {value!r} is not one of the declared choices")


def _scalar_value(node: OptionNode, kind: OptionType, spec: SchemaNode, partial: bool, where: str) -> object:
    if kind is not spec.type:
        raise DecodeError(f"{where}: expected {spec.type.name}, got {kind.name}")
    assert spec.scalar is not None
    value = node.value
    if partial and node.focused:
        # In-progress input: empty, or an integer still being typed as text.
        if value is None or value == "":
            return _ZERO[spec.scalar]
        if spec.scalar is int and isinstance(value, str):
            try:
                return int(value.strip())
            except ValueError:
                return 0
    if not _matches(value, spec.scalar):
        raise DecodeError(f"{where}: {spec.type.name} option carries {type(value).__name__}")
    if not (partial and node.focused):
        _check_bounds(value, spec.arg, where)
    return value


def _decode(nodes: Sequence[OptionNode], schema: OptionSchema, partial: bool, path: str) -> object:
    values: dict[str, object] = {}
    branch: str | None = None
    for node in nodes:
        where = f"{path}.{node.name}"
        spec = schema.node(node.name)
        if spec is None:
            raise DecodeError(f"unexpected option {node.name!r} for {path}")
        if spec.field_name in values:
            raise DecodeError(f"option {where} given twice")
        try:
            kind = OptionType(node.type)
        except ValueError as exc:
            raise DecodeError(f"{where}: unsupported option type {node.type!r}") from exc

        if spec.kind is NodeKind.SUBCOMMAND:
            if kind not in _SUBCOMMAND_TYPES:
                raise DecodeError(f"{where}: expected SUB_COMMAND, got {kind.name}")
            if branch is not None:
                raise DecodeError(f"{path}: subcommands {branch!r} and {node.name!r} are exclusive")
            branch = node.name
            assert spec.children is not None
            values[spec.field_name] = _decode(node.options, spec.children, partial, where)
            continue

        value = _scalar_value(node, kind, spec, partial, where)
        if spec.kind is NodeKind.FOCUSABLE:
            value = Focusable(value, focused=node.focused)
        values[spec.field_name] = value

    for spec in schema.nodes:
        if spec.field_name not in values:
            values[spec.field_name] = _zero(spec)
    try:
        return schema.target(**values)
    except (TypeError, ValueError) as exc:
        raise DecodeError(f"{path}: {exc}") from exc


def decode_options[T](
    nodes: Sequence[OptionNode],
    target: type[T],
    *,
    partial: bool = False,
) -> T:
    """Populate an options dataclass from the platform's option tree.

    Args:
        nodes: Top-level option nodes of the request.
        target: Options dataclass of the addressed command.
        partial: Autocomplete mode, the focused node may be incomplete.
    """
    try:
        schema = schema_of(target)
    except SchemaError as exc:
        raise DecodeError(str(exc)) from exc
    return _decode(nodes, schema, partial, target.__name__)  # type: ignore[return-value]


# ═══════════════════════════════════════════════════════════════════════════════
# Focus
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Focus:
    """The single option the user is typing into.

    ``path`` holds wire names from the top level down, e.g.
    ``("type", "type_2")``.
    """

    path: tuple[str, ...]
    value: object

    @property
    def name(self) -> str:
        return self.path[-1]


def _iter_focused(value: object, schema: OptionSchema, prefix: tuple[str, ...]) -> Iterator[Focus]:
    for node in schema.nodes:
        current = getattr(value, node.field_name)
        if current is None:
            continue
        path = (*prefix, node.name)
        if node.kind is NodeKind.FOCUSABLE and current.focused:
            yield Focus(path, current.value)
        elif node.kind is NodeKind.SUBCOMMAND:
            assert node.children is not None
            yield from _iter_focused(current, node.children, path)


def find_focus(options: object) -> Focus:
    """Locate the focused field. Exactly one is required."""
    found = list(_iter_focused(options, schema_of(type(options)), ()))
    if len(found) != 1:
        raise UnrecognizedInteractionError(
            f"expected exactly one focused option, found {len(found)}"
        )
    return found[0]


# ═══════════════════════════════════════════════════════════════════════════════
# Platform description
# ═══════════════════════════════════════════════════════════════════════════════


def describe_schema(schema: OptionSchema) -> list[dict[str, object]]:
    """Render a schema as the platform's command-option declaration."""
    out: list[dict[str, object]] = []
    for node in schema.nodes:
        entry: dict[str, object] = {
            "type": int(node.type),
            "name": node.name,
            "description": node.arg.description or node.name,
        }
        if node.kind is NodeKind.SUBCOMMAND:
            assert node.children is not None
            entry["options"] = describe_schema(node.children)
        else:
            entry["required"] = not node.optional
            if node.kind is NodeKind.FOCUSABLE:
                entry["autocomplete"] = True
            if node.arg.min_value is not None:
                entry["min_value"] = node.arg.min_value
            if node.arg.max_value is not None:
                entry["max_value"] = node.arg.max_value
            if node.arg.choices:
                entry["choices"] = [{"name": n, "value": v} for n, v in node.arg.choices]
        out.append(entry)
    return out


__all__ = (
    "Arg",
    "Focus",
    "Focusable",
    "NodeKind",
    "OptionNode",
    "OptionSchema",
    "OptionType",
    "SchemaNode",
    "decode_options",
    "describe_schema",
    "find_focus",
    "schema_of",
    "zero_options",
)
