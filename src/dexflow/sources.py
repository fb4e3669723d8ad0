"""Query collaborators for handlers: page sources, suggestions, lookup tables."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from types import MappingProxyType
from typing import Generic, Protocol, TypeVar, runtime_checkable

T = TypeVar("T")
T_co = TypeVar("T_co", covariant=True)
K = TypeVar("K")
V = TypeVar("V")


# ═══════════════════════════════════════════════════════════════════════════════
# PageSource: protocol for paginated queries
# ═══════════════════════════════════════════════════════════════════════════════


@runtime_checkable
class PageSource(Protocol[T_co]):
    """Protocol for paginated query results.

    ``fetch`` returns one page of rows and whether more rows follow. SQL
    implementations typically ask for ``limit + 1`` rows and drop the last.

        class LearnsetQuery(PageSource[MoveRow]):
            async def fetch(self, offset: int, limit: int) -> tuple[Sequence[MoveRow], bool]: ...
    """

    async def fetch(self, offset: int, limit: int) -> tuple[Sequence[T_co], bool]: ...


@dataclass
class ListPageSource(Generic[T]):
    """Simple in-memory PageSource backed by a sequence."""

    items: Sequence[T]

    async def fetch(self, offset: int, limit: int) -> tuple[Sequence[T], bool]:
        window = self.items[offset : offset + limit + 1]
        return list(window[:limit]), len(window) > limit


# ═══════════════════════════════════════════════════════════════════════════════
# Suggestions
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Choice:
    """One autocomplete suggestion: label shown, value inserted."""

    name: str
    value: str | int


def prefix_choices(candidates: Iterable[str], typed: str, limit: int = 25) -> list[Choice]:
    """Case-insensitive matches for ``typed``: prefix matches first, then substrings."""
    needle = typed.strip().casefold()
    prefix: list[Choice] = []
    inner: list[Choice] = []
    for candidate in candidates:
        folded = candidate.casefold()
        if folded.startswith(needle):
            prefix.append(Choice(candidate, candidate))
        elif needle in folded:
            inner.append(Choice(candidate, candidate))
        if len(prefix) >= limit:
            break
    return (prefix + inner)[:limit]


# ═══════════════════════════════════════════════════════════════════════════════
# LazyTable: once-populated per-process cache
# ═══════════════════════════════════════════════════════════════════════════════


class LazyTable(Generic[K, V]):
    """Lookup table loaded on first use, read-only afterwards.

    Concurrent first readers wait on one load; the loader runs at most once
    per successful population.

        types = LazyTable(load_type_chart)
        chart = await types.get()
    """

    def __init__(self, loader: Callable[[], Awaitable[Mapping[K, V]]]) -> None:
        self._loader = loader
        self._lock = asyncio.Lock()
        self._data: Mapping[K, V] | None = None

    @property
    def loaded(self) -> bool:
        return self._data is not None

    async def get(self) -> Mapping[K, V]:
        if self._data is None:
            async with self._lock:
                if self._data is None:
                    self._data = MappingProxyType(dict(await self._loader()))
        return self._data


__all__ = (
    "Choice",
    "LazyTable",
    "ListPageSource",
    "PageSource",
    "prefix_choices",
)
