"""Tests for dexflow.codec — structural binary state codec."""

from __future__ import annotations

from dataclasses import dataclass, field

import pytest

from dexflow.codec import INT_MAX, INT_MIN, MAX_STRING_BYTES, Kind, StateCodec, decode, encode
from dexflow.errors import DecodeError, EncodeError
from dexflow.options import Focusable
from dexflow.state import Cursor, FollowUpState, Page


@dataclass(frozen=True)
class LookupOptions:
    name: str
    max_results: int | None = None


@dataclass(frozen=True)
class Flags:
    egg_moves: bool
    shiny: bool = False


@dataclass(frozen=True)
class Outer:
    inner: LookupOptions
    flags: Flags | None = None


@dataclass(frozen=True)
class Measured:
    weight: float


@dataclass
class Derived:
    base: int
    doubled: int = field(init=False, default=0)


# ═══════════════════════════════════════════════════════════════════════════════
# Wire layout
# ═══════════════════════════════════════════════════════════════════════════════


class TestLayout:
    def test_string_then_absent_optional(self) -> None:
        assert encode(LookupOptions("X")) == b"\x01X\x00"

    def test_present_optional_int(self) -> None:
        assert encode(LookupOptions("X", 7)) == b"\x01X\x01\x00\x00\x00\x07"

    def test_negative_int_is_twos_complement(self) -> None:
        assert encode(LookupOptions("", -1)) == b"\x00\x01\xff\xff\xff\xff"

    def test_bools(self) -> None:
        assert encode(Flags(True, False)) == b"\x01\x00"

    def test_utf8_length_is_bytes(self) -> None:
        assert encode(LookupOptions("é")) == b"\x02\xc3\xa9\x00"

    def test_nested_fields_in_order(self) -> None:
        value = Outer(LookupOptions("ab"), Flags(False, True))
        assert encode(value) == b"\x02ab\x00" + b"\x01" + b"\x00\x01"

    def test_focusable(self) -> None:
        assert encode(Focusable("abc", True), Focusable[str]) == b"\x03abc\x01"

    def test_cursor(self) -> None:
        cursor = Cursor(LookupOptions("X"), Page(limit=15, offset=30))
        raw = encode(cursor, Cursor[LookupOptions])
        assert raw == b"\x01X\x00" + b"\x00\x00\x00\x0f" + b"\x00\x00\x00\x1e"

    def test_plan_kinds(self) -> None:
        plan = StateCodec().plan(Cursor[LookupOptions])
        assert plan.kind is Kind.STRUCT
        assert [name for name, _ in plan.fields] == ["options", "page"]
        assert plan.fields[0][1].kind is Kind.STRUCT


# ═══════════════════════════════════════════════════════════════════════════════
# Round trips
# ═══════════════════════════════════════════════════════════════════════════════


class TestRoundTrip:
    @pytest.mark.parametrize(
        "value",
        [
            LookupOptions("X"),
            LookupOptions("pikachu", 30),
            LookupOptions("", INT_MIN),
            LookupOptions("x" * MAX_STRING_BYTES, INT_MAX),
            Outer(LookupOptions("mr. mime"), None),
            Outer(LookupOptions("ho-oh", 0), Flags(True, True)),
        ],
    )
    def test_value(self, value: object) -> None:
        assert decode(encode(value), type(value)) == value

    def test_cursor(self) -> None:
        cursor = Cursor(LookupOptions("charizard", 50), Page(limit=15, offset=45))
        raw = encode(cursor, Cursor[LookupOptions])
        assert decode(raw, Cursor[LookupOptions]) == cursor

    def test_follow_up_state(self) -> None:
        state = FollowUpState(Outer(LookupOptions("eevee")))
        raw = encode(state, FollowUpState[Outer])
        assert decode(raw, FollowUpState[Outer]) == state

    def test_unbound_parameter_resolved_from_value_on_encode(self) -> None:
        cursor = Cursor(LookupOptions("X"), Page(limit=5))
        assert encode(cursor) == encode(cursor, Cursor[LookupOptions])

    def test_independent_codecs(self) -> None:
        issuer, reader = StateCodec(), StateCodec()
        cursor = Cursor(LookupOptions("snorlax", 12), Page(limit=15, offset=15))
        raw = issuer.encode(cursor, Cursor[LookupOptions])
        assert reader.decode(raw, Cursor[LookupOptions]) == cursor


# ═══════════════════════════════════════════════════════════════════════════════
# Encode failures
# ═══════════════════════════════════════════════════════════════════════════════


class TestEncodeErrors:
    def test_string_too_long(self) -> None:
        with pytest.raises(EncodeError):
            encode(LookupOptions("x" * (MAX_STRING_BYTES + 1)))

    def test_multibyte_string_too_long(self) -> None:
        # 128 characters, 256 bytes
        with pytest.raises(EncodeError):
            encode(LookupOptions("é" * 128))

    def test_int_out_of_range(self) -> None:
        with pytest.raises(EncodeError):
            encode(LookupOptions("X", INT_MAX + 1))

    def test_bool_is_not_an_int(self) -> None:
        with pytest.raises(EncodeError):
            encode(LookupOptions("X", True))  # type: ignore[arg-type]

    def test_unsupported_field_type(self) -> None:
        with pytest.raises(EncodeError):
            encode(Measured(1.5))

    def test_wrong_value_for_layout(self) -> None:
        with pytest.raises(EncodeError):
            encode(Flags(True), LookupOptions)


# ═══════════════════════════════════════════════════════════════════════════════
# Decode failures
# ═══════════════════════════════════════════════════════════════════════════════


class TestDecodeErrors:
    def test_truncated_string(self) -> None:
        with pytest.raises(DecodeError):
            decode(b"\x05ab", LookupOptions)

    def test_truncated_int(self) -> None:
        with pytest.raises(DecodeError):
            decode(b"\x01X\x01\x00\x00", LookupOptions)

    def test_empty_input(self) -> None:
        with pytest.raises(DecodeError):
            decode(b"", Cursor[LookupOptions])

    def test_every_prefix_of_a_cursor_is_rejected(self) -> None:
        raw = encode(Cursor(LookupOptions("bulbasaur", 3), Page(15, 15)), Cursor[LookupOptions])
        for cut in range(len(raw)):
            with pytest.raises(DecodeError):
                decode(raw[:cut], Cursor[LookupOptions])

    def test_trailing_bytes(self) -> None:
        with pytest.raises(DecodeError):
            decode(b"\x01X\x00\x00", LookupOptions)

    def test_invalid_bool_byte(self) -> None:
        with pytest.raises(DecodeError):
            decode(b"\x02\x00", Flags)

    def test_invalid_presence_byte(self) -> None:
        with pytest.raises(DecodeError):
            decode(b"\x01X\x07", LookupOptions)

    def test_invalid_utf8(self) -> None:
        with pytest.raises(DecodeError):
            decode(b"\x01\xff\x00", LookupOptions)

    def test_constructor_rejects_values(self) -> None:
        with pytest.raises(DecodeError):
            decode(b"\x00\x00\x00\x00" + b"\x00\x00\x00\x00", Page)

    def test_non_settable_target(self) -> None:
        with pytest.raises(DecodeError):
            decode(b"\x00\x00\x00\x01\x00\x00\x00\x02", Derived)

    def test_unsupported_field_type(self) -> None:
        with pytest.raises(DecodeError):
            decode(b"\x00", Measured)

    def test_unbound_parameter(self) -> None:
        raw = encode(Cursor(LookupOptions("X"), Page(limit=5)))
        with pytest.raises(DecodeError):
            decode(raw, Cursor)
