"""Binary state codec: dataclass trees to bytes and back.

The structure is the schema. Nothing but values goes on the wire, in
declared field order:

    int       4 bytes, big-endian, signed
    bool      1 byte (0 or 1)
    str       1 byte length (0-255) + UTF-8 bytes
    T | None  1 byte presence flag, then T when present
    dataclass its fields, in order

    codec = StateCodec()
    raw = codec.encode(Cursor(options, Page(limit=15)), Cursor[LearnsetOptions])
    cursor = codec.decode(raw, Cursor[LearnsetOptions])

The decoder must be given the exact type the encoder used. A different
type with the same byte length decodes into garbage; a different length
is rejected (truncated or trailing bytes).
"""

from __future__ import annotations

import dataclasses
import struct
import types
from dataclasses import dataclass
from enum import Enum
from typing import TypeVar, Union, get_args, get_origin, get_type_hints

from dexflow.errors import DecodeError, EncodeError, SchemaError

INT_MIN = -(2**31)
INT_MAX = 2**31 - 1
MAX_STRING_BYTES = 255

_INT32 = struct.Struct(">i")


# ═══════════════════════════════════════════════════════════════════════════════
# Plans: compiled per type, reused for every value of that type
# ═══════════════════════════════════════════════════════════════════════════════


class Kind(Enum):
    INT = "int"
    BOOL = "bool"
    STR = "str"
    OPTIONAL = "optional"
    STRUCT = "struct"
    DEFERRED = "deferred"  # unbound type parameter, taken from the value


@dataclass(frozen=True, slots=True)
class Plan:
    """Compiled layout of one type."""

    kind: Kind
    target: type | None = None
    inner: Plan | None = None
    fields: tuple[tuple[str, Plan], ...] = ()
    settable: bool = True


_INT_PLAN = Plan(Kind.INT)
_BOOL_PLAN = Plan(Kind.BOOL)
_STR_PLAN = Plan(Kind.STR)
_DEFERRED_PLAN = Plan(Kind.DEFERRED)


def type_name(tp: object) -> str:
    return getattr(tp, "__name__", None) or repr(tp)


def _compile(tp: object, bindings: dict[object, object]) -> Plan:
    if isinstance(tp, TypeVar):
        if tp in bindings:
            return _compile(bindings[tp], {})
        return _DEFERRED_PLAN
    # bool first: it is an int subclass
    if tp is bool:
        return _BOOL_PLAN
    if tp is int:
        return _INT_PLAN
    if tp is str:
        return _STR_PLAN

    origin = get_origin(tp)
    if origin is Union or origin is types.UnionType:
        args = get_args(tp)
        present = [a for a in args if a is not type(None)]
        if len(args) != 2 or len(present) != 1:
            raise SchemaError(f"only 'T | None' unions are supported, got {tp!r}")
        return Plan(Kind.OPTIONAL, inner=_compile(present[0], bindings))

    cls = origin if origin is not None else tp
    if isinstance(cls, type) and dataclasses.is_dataclass(cls):
        local: dict[object, object] = {}
        if origin is not None:
            params = getattr(cls, "__parameters__", ())
            for param, arg in zip(params, get_args(tp)):
                local[param] = bindings.get(arg, arg) if isinstance(arg, TypeVar) else arg
        try:
            hints = get_type_hints(cls)
        except NameError as exc:
            raise SchemaError(f"cannot resolve annotations of {cls.__name__}: {exc}") from exc
        fields = tuple(
            (f.name, _compile(hints[f.name], local))
            for f in dataclasses.fields(cls)
        )
        settable = all(f.init for f in dataclasses.fields(cls))
        return Plan(Kind.STRUCT, target=cls, fields=fields, settable=settable)

    raise SchemaError(f"unsupported field type {type_name(tp)}")


# ═══════════════════════════════════════════════════════════════════════════════
# Reader: bounds-checked cursor over the input
# ═══════════════════════════════════════════════════════════════════════════════


class _Reader:
    __slots__ = ("_data", "_pos")

    def __init__(self, data: bytes) -> None:
        self._data = data
        self._pos = 0

    @property
    def remaining(self) -> int:
        return len(self._data) - self._pos

    def take(self, n: int, path: str) -> bytes:
        if self.remaining < n:
            raise DecodeError(
                f"{path}: truncated input, need {n} bytes, have {self.remaining}"
            )
        chunk = self._data[self._pos : self._pos + n]
        self._pos += n
        return chunk


# ═══════════════════════════════════════════════════════════════════════════════
# StateCodec
# ═══════════════════════════════════════════════════════════════════════════════


class StateCodec:
    """Structural encoder/decoder with a per-instance plan cache.

    Instances share no state; a value encoded by one decodes identically
    in another as long as the types are unchanged.
    """

    def __init__(self) -> None:
        self._plans: dict[object, Plan] = {}

    def plan(self, tp: object) -> Plan:
        """Compiled plan for ``tp``. Raises SchemaError for unsupported types."""
        cached = self._plans.get(tp)
        if cached is None:
            cached = _compile(tp, {})
            self._plans[tp] = cached
        return cached

    def encode(self, value: object, tp: object = None) -> bytes:
        """Serialize ``value`` laid out as ``tp`` (defaults to its own type)."""
        try:
            plan = self.plan(tp if tp is not None else type(value))
        except SchemaError as exc:
            raise EncodeError(str(exc)) from exc
        out = bytearray()
        self._write(plan, value, out, "$")
        return bytes(out)

    def decode[T](self, data: bytes, tp: type[T]) -> T:
        """Deserialize exactly one ``tp`` from ``data``."""
        try:
            plan = self.plan(tp)
        except SchemaError as exc:
            raise DecodeError(str(exc)) from exc
        reader = _Reader(bytes(data))
        value = self._read(plan, reader, "$")
        if reader.remaining:
            raise DecodeError(
                f"{reader.remaining} trailing bytes after {type_name(tp)}"
            )
        return value  # type: ignore[return-value]

    def _write(self, plan: Plan, value: object, out: bytearray, path: str) -> None:
        match plan.kind:
            case Kind.INT:
                if isinstance(value, bool) or not isinstance(value, int):
                    raise EncodeError(f"{path}: expected int, got {type(value).__name__}")
                if not INT_MIN <= value <= INT_MAX:
                    raise EncodeError(f"{path}: {value} does not fit in 32 bits")
                out += _INT32.pack(value)
            case Kind.BOOL:
                if not isinstance(value, bool):
                    raise EncodeError(f"{path}: expected bool, got {type(value).__name__}")
                out.append(1 if value else 0)
            case Kind.STR:
                if not isinstance(value, str):
                    raise EncodeError(f"{path}: expected str, got {type(value).__name__}")
                raw = value.encode("utf-8")
                if len(raw) > MAX_STRING_BYTES:
                    raise EncodeError(
                        f"{path}: string is {len(raw)} bytes, limit is {MAX_STRING_BYTES}"
                    )
                out.append(len(raw))
                out += raw
            case Kind.OPTIONAL:
                assert plan.inner is not None
                if value is None:
                    out.append(0)
                else:
                    out.append(1)
                    self._write(plan.inner, value, out, path)
            case Kind.STRUCT:
                assert plan.target is not None
                if not isinstance(value, plan.target):
                    raise EncodeError(
                        f"{path}: expected {plan.target.__name__}, got {type(value).__name__}"
                    )
                for name, field_plan in plan.fields:
                    self._write(field_plan, getattr(value, name), out, f"{path}.{name}")
            case Kind.DEFERRED:
                try:
                    runtime = self.plan(type(value))
                except SchemaError as exc:
                    raise EncodeError(f"{path}: {exc}") from exc
                self._write(runtime, value, out, path)

    def _read(self, plan: Plan, reader: _Reader, path: str) -> object:
        match plan.kind:
            case Kind.INT:
                return _INT32.unpack(reader.take(4, path))[0]
            case Kind.BOOL:
                flag = reader.take(1, path)[0]
                if flag > 1:
                    raise DecodeError(f"{path}: invalid bool byte {flag:#04x}")
                return flag == 1
            case Kind.STR:
                length = reader.take(1, path)[0]
                raw = reader.take(length, path)
                try:
                    return raw.decode("utf-8")
                except UnicodeDecodeError as exc:
                    raise DecodeError(f"{path}: invalid UTF-8 in string") from exc
            case Kind.OPTIONAL:
                assert plan.inner is not None
                flag = reader.take(1, path)[0]
                if flag == 0:
                    return None
                if flag != 1:
                    raise DecodeError(f"{path}: invalid presence byte {flag:#04x}")
                return self._read(plan.inner, reader, path)
            case Kind.STRUCT:
                assert plan.target is not None
                if not plan.settable:
                    raise DecodeError(
                        f"{path}: {plan.target.__name__} has fields that cannot be set"
                    )
                values = {
                    name: self._read(field_plan, reader, f"{path}.{name}")
                    for name, field_plan in plan.fields
                }
                try:
                    return plan.target(**values)
                except (TypeError, ValueError) as exc:
                    raise DecodeError(f"{path}: {exc}") from exc
            case Kind.DEFERRED:
                raise DecodeError(f"{path}: unbound type parameter, decode with a concrete type")
        raise DecodeError(f"{path}: unknown plan kind {plan.kind}")


_default = StateCodec()


def encode(value: object, tp: object = None) -> bytes:
    """Encode with the process-wide default codec."""
    return _default.encode(value, tp)


def decode[T](data: bytes, tp: type[T]) -> T:
    """Decode with the process-wide default codec."""
    return _default.decode(data, tp)


__all__ = (
    "INT_MAX",
    "INT_MIN",
    "MAX_STRING_BYTES",
    "Kind",
    "Plan",
    "StateCodec",
    "decode",
    "encode",
)
