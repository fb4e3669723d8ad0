"""Tests for dexflow.sources — page sources, suggestions and lookup tables."""

from __future__ import annotations

import asyncio

import pytest

from dexflow.sources import Choice, LazyTable, ListPageSource, PageSource, prefix_choices


# ═══════════════════════════════════════════════════════════════════════════════
# Page sources
# ═══════════════════════════════════════════════════════════════════════════════


class TestListPageSource:
    def test_protocol(self) -> None:
        assert isinstance(ListPageSource([1, 2]), PageSource)

    @pytest.mark.parametrize(
        ("offset", "limit", "rows", "has_next"),
        [
            (0, 15, list(range(15)), True),
            (15, 15, list(range(15, 30)), True),
            (30, 15, list(range(30, 40)), False),
            (25, 15, list(range(25, 40)), False),
            (40, 15, [], False),
        ],
    )
    def test_fetch(self, offset: int, limit: int, rows: list[int], has_next: bool) -> None:
        source = ListPageSource(list(range(40)))
        assert asyncio.run(source.fetch(offset, limit)) == (rows, has_next)


class TestPrefixChoices:
    def test_prefix_before_substring(self) -> None:
        choices = prefix_choices(["raichu", "pichu", "pikachu", "charizard"], "Pi")
        assert choices == [Choice("pichu", "pichu"), Choice("pikachu", "pikachu")]

    def test_substring_matches_follow(self) -> None:
        choices = prefix_choices(["raichu", "chimchar", "pichu"], "chu")
        assert [c.name for c in choices] == ["raichu", "pichu"]

    def test_empty_input_matches_everything(self) -> None:
        assert len(prefix_choices([f"mon{i}" for i in range(40)], "")) == 25

    def test_limit(self) -> None:
        assert len(prefix_choices([f"mon{i}" for i in range(40)], "mon", limit=3)) == 3


class TestLazyTable:
    def test_loads_once(self) -> None:
        calls = 0

        async def loader() -> dict[str, int]:
            nonlocal calls
            calls += 1
            await asyncio.sleep(0)
            return {"fire": 1}

        table: LazyTable[str, int] = LazyTable(loader)

        async def run() -> list[object]:
            return await asyncio.gather(*(table.get() for _ in range(10)))

        results = asyncio.run(run())
        assert calls == 1
        assert table.loaded
        assert all(r == {"fire": 1} for r in results)

    def test_read_only(self) -> None:
        async def loader() -> dict[str, int]:
            return {"fire": 1}

        table: LazyTable[str, int] = LazyTable(loader)
        data = asyncio.run(table.get())
        with pytest.raises(TypeError):
            data["water"] = 2  # type: ignore[index]

    def test_failed_load_retried(self) -> None:
        attempts = 0

        async def loader() -> dict[str, int]:
            nonlocal attempts
            attempts += 1
            if attempts == 1:
                raise ConnectionError("db down")
            return {"fire": 1}

        table: LazyTable[str, int] = LazyTable(loader)

        async def run() -> object:
            with pytest.raises(ConnectionError):
                await table.get()
            assert not table.loaded
            return await table.get()

        assert asyncio.run(run()) == {"fire": 1}
        assert attempts == 2
