"""Error taxonomy for the interaction protocol.

Every failure the dispatcher knows how to report is a DexflowError.
Handlers never see these for their own domain cases ("not found in this
version" is a reply, not an error).
"""

from __future__ import annotations


class DexflowError(Exception):
    """Base for option, token and dispatch failures."""


class DecodeError(DexflowError):
    """Malformed, truncated or schema-mismatched option tree or token payload."""


class EncodeError(DexflowError):
    """Value cannot be serialized, or the token would not fit its budget."""


class UnrecognizedInteractionError(DexflowError):
    """Unknown action tag, missing handler, or bad focus during autocomplete.

    Integration fault. Logged, never shown to the user verbatim.
    """


class SchemaError(DexflowError):
    """A dataclass cannot serve as an options or state schema."""


__all__ = (
    "DecodeError",
    "DexflowError",
    "EncodeError",
    "SchemaError",
    "UnrecognizedInteractionError",
)
