"""Configuration and logging setup.

    # config.toml
    log_level = "INFO"

    [commands]
    page_limit = 15          # rows per page for paginated commands
    autocomplete_limit = 25  # suggestions per autocomplete response
    token_budget = 100       # max StateToken length, characters

    [telegram]
    token = "..."            # or DEXFLOW_TELEGRAM_TOKEN
    token_budget = 64        # callback_data limit, UTF-8 bytes

Every key is optional. Unknown keys and wrongly typed values are rejected
with ValueError.
"""

from __future__ import annotations

import dataclasses
import logging
import os
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

ENV_TELEGRAM_TOKEN = "DEXFLOW_TELEGRAM_TOKEN"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True, slots=True)
class CommandConfig:
    page_limit: int = 15
    autocomplete_limit: int = 25
    token_budget: int = 100

    def __post_init__(self) -> None:
        for name in ("page_limit", "autocomplete_limit", "token_budget"):
            if getattr(self, name) <= 0:
                raise ValueError(f"commands.{name} must be positive")


@dataclass(frozen=True, slots=True)
class TelegramConfig:
    token: str = ""
    token_budget: int = 64

    def __post_init__(self) -> None:
        if self.token_budget <= 0:
            raise ValueError("telegram.token_budget must be positive")


@dataclass(frozen=True, slots=True)
class DexConfig:
    commands: CommandConfig = field(default_factory=CommandConfig)
    telegram: TelegramConfig = field(default_factory=TelegramConfig)
    log_level: str = "INFO"


def _section[C](cls: type[C], raw: object, where: str) -> C:
    if not isinstance(raw, Mapping):
        raise ValueError(f"[{where}] must be a table")
    known = {f.name: f for f in dataclasses.fields(cls)}  # type: ignore[arg-type]
    values: dict[str, object] = {}
    for key, value in raw.items():
        if key not in known:
            raise ValueError(f"unknown config key {where}.{key}")
        expected = type(getattr(cls(), key))
        if type(value) is not expected:
            raise ValueError(
                f"{where}.{key} must be {expected.__name__}, got {type(value).__name__}"
            )
        values[key] = value
    return cls(**values)


def load_config(
    path: str | Path | None = None,
    *,
    env: Mapping[str, str] | None = None,
) -> DexConfig:
    """Load config from a TOML file (defaults when ``path`` is None).

    The Telegram token from ``DEXFLOW_TELEGRAM_TOKEN`` wins over the file.
    """
    data: dict[str, object] = {}
    if path is not None:
        with open(path, "rb") as fp:
            data = tomllib.load(fp)

    unknown = set(data) - {"commands", "telegram", "log_level"}
    if unknown:
        raise ValueError(f"unknown config keys: {', '.join(sorted(unknown))}")

    commands = _section(CommandConfig, data.get("commands", {}), "commands")
    telegram = _section(TelegramConfig, data.get("telegram", {}), "telegram")
    log_level = data.get("log_level", "INFO")
    if not isinstance(log_level, str):
        raise ValueError("log_level must be a string")

    environ = os.environ if env is None else env
    token = environ.get(ENV_TELEGRAM_TOKEN)
    if token:
        telegram = dataclasses.replace(telegram, token=token)

    return DexConfig(commands=commands, telegram=telegram, log_level=log_level.upper())


def configure_logging(level: str | int = "INFO") -> None:
    """Root logging setup for entry points. Libraries only get loggers."""
    logging.basicConfig(level=level, format=LOG_FORMAT)


__all__ = (
    "CommandConfig",
    "DexConfig",
    "ENV_TELEGRAM_TOKEN",
    "TelegramConfig",
    "configure_logging",
    "load_config",
)
