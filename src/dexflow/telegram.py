"""Telegram surface — telegrinder events in, dispatcher outcomes out.

    Fresh           /learnset pikachu max_level=30
    Autocomplete    @bot learnset pika          (inline query, last word focused)
    Component       callback query, callback_data is the StateToken

    app = DexApp(config=load_config("config.toml"))
    surface = TelegramSurface.from_app(app)
    bot = Telegrinder(API(Token(app.config.telegram.token)))
    surface.bind(bot.dispatch)

Telegram reports no originating command for a message, so every token
carries its routing prefix, and callback_data is limited to 64 UTF-8 bytes.
"""

from __future__ import annotations

import logging
import shlex
from collections.abc import Mapping, Sequence
from dataclasses import replace
from typing import TYPE_CHECKING

from fntypes import Nothing, Option, Some

from telegrinder.bot.cute_types.callback_query import CallbackQueryCute
from telegrinder.bot.cute_types.inline_query import InlineQueryCute
from telegrinder.bot.cute_types.message import MessageCute
from telegrinder.types.objects import (
    BotCommand,
    InlineQueryResultArticle,
    InputTextMessageContent,
    ReplyParameters,
    User,
)

if TYPE_CHECKING:
    from telegrinder.api import API
    from telegrinder.bot.dispatch import Dispatch

    from dexflow.app import DexApp

from dexflow.config import TelegramConfig
from dexflow.dispatch import (
    Apologize,
    Dispatcher,
    EditReply,
    Interaction,
    InteractionKind,
    Outcome,
    PostFollowUp,
    Reply,
    SendReply,
    Suggest,
)
from dexflow.errors import DecodeError
from dexflow.options import NodeKind, OptionNode, OptionSchema, OptionType
from dexflow.registry import CommandSpec
from dexflow.state import TokenCodec, utf8_length
from dexflow.uilib.keyboard import NOOP_DATA, build_reply_keyboard
from dexflow.uilib.theme import DEFAULT_THEME, UITheme

logger = logging.getLogger(__name__)

_TRUE = frozenset({"true", "yes", "on", "1"})
_FALSE = frozenset({"false", "no", "off", "0"})


class ArgumentError(DecodeError):
    """Command text does not fit the command's options."""

    def __init__(self, message: str, spec: CommandSpec) -> None:
        super().__init__(message)
        self.spec = spec


# ═══════════════════════════════════════════════════════════════════════════════
# Argument parsing: text → option nodes
# ═══════════════════════════════════════════════════════════════════════════════


def _split(text: str) -> list[str]:
    try:
        return shlex.split(text)
    except ValueError:
        # unbalanced quote, usually mid-typing
        return text.split()


def _typed(kind: OptionType, raw: str) -> object:
    """Value typed from the schema; unparseable text stays raw for the decoder to reject."""
    match kind:
        case OptionType.INTEGER:
            try:
                return int(raw)
            except ValueError:
                return raw
        case OptionType.BOOLEAN:
            folded = raw.casefold()
            if folded in _TRUE:
                return True
            if folded in _FALSE:
                return False
            return raw
    return raw


def _bind(
    words: Sequence[str],
    schema: OptionSchema,
    spec: CommandSpec,
    focus: int | None,
    offset: int = 0,
) -> tuple[OptionNode, ...]:
    """Turn words into option nodes for one schema level.

    ``key=value`` names its option; a bare word naming a subcommand opens it
    and the rest of the words belong to it; any other word fills the next
    unfilled scalar in declaration order.
    """
    nodes: list[OptionNode] = []
    filled: set[str] = set()
    for i, word in enumerate(words):
        focused = focus == offset + i
        key, sep, raw = word.partition("=")
        if sep:
            node = schema.node(key)
        else:
            sub = schema.node(word)
            if sub is not None and sub.kind is NodeKind.SUBCOMMAND:
                assert sub.children is not None
                rest = _bind(words[i + 1 :], sub.children, spec, focus, offset + i + 1)
                nodes.append(OptionNode(word, OptionType.SUB_COMMAND, options=rest))
                return tuple(nodes)
            node = next(
                (n for n in schema.nodes if n.kind is not NodeKind.SUBCOMMAND and n.name not in filled),
                None,
            )
            if node is None:
                raise ArgumentError(f"unexpected argument {word!r}", spec)
            key, raw = node.name, word
        filled.add(key)
        if node is None or node.kind is NodeKind.SUBCOMMAND:
            # unknown name: let the decoder reject it
            nodes.append(OptionNode(key, OptionType.STRING, raw, focused))
        else:
            nodes.append(OptionNode(key, node.type, _typed(node.type, raw), focused))
    return tuple(nodes)


def parse_command(
    text: str,
    commands: Mapping[str, CommandSpec],
    *,
    bot_username: str | None = None,
) -> Interaction | None:
    """``/name[@bot] args...`` → COMMAND interaction. None if not ours.

    Raises ArgumentError when the words cannot be bound to options.
    """
    if not text.startswith("/"):
        return None
    parts = text[1:].split(maxsplit=1)
    if not parts:
        return None
    head, *rest = parts
    name, _, mention = head.partition("@")
    if mention and bot_username is not None and mention.casefold() != bot_username.casefold():
        return None
    spec = commands.get(name)
    if spec is None:
        return None
    words = _split(rest[0]) if rest else []
    return Interaction(
        kind=InteractionKind.COMMAND,
        command=name,
        options=_bind(words, spec.schema, spec, focus=None),
    )


def _inline_words(text: str) -> list[str]:
    words = _split(text)
    if len(words) == 1 or (words and text[-1].isspace()):
        # user is about to type the next argument
        words.append("")
    return words


def parse_inline(text: str, commands: Mapping[str, CommandSpec]) -> Interaction | None:
    """``name args...`` (no slash needed) → AUTOCOMPLETE interaction.

    The last word is the focused option. None if the text names no command.
    """
    words = _inline_words(text)
    if not words:
        return None
    name = words[0].removeprefix("/")
    spec = commands.get(name)
    if spec is None:
        return None
    args = words[1:]
    return Interaction(
        kind=InteractionKind.AUTOCOMPLETE,
        command=name,
        options=_bind(args, spec.schema, spec, focus=len(args) - 1),
    )


def complete_inline(text: str, value: str | int) -> str:
    """Command text with the focused (last) word replaced by ``value``."""
    words = _inline_words(text)
    name = words[0].removeprefix("/")
    key, sep, _ = words[-1].partition("=")
    last = f"{key}={value}" if sep else str(value)
    return " ".join([f"/{name}", *(shlex.quote(w) for w in [*words[1:-1], last])])


def usage(spec: CommandSpec) -> str:
    """One-line usage, e.g. ``/learnset pokemon [max_level] [egg_moves]``."""
    return " ".join([f"/{spec.name}", *_usage_parts(spec.schema)])


def _usage_parts(schema: OptionSchema) -> list[str]:
    parts = [
        f"[{n.name}]" if n.optional else n.name
        for n in schema.nodes
        if n.kind is not NodeKind.SUBCOMMAND
    ]
    subs = schema.subcommands
    if subs:
        parts.append("|".join(s.name for s in subs) + " ...")
    return parts


def bot_commands(commands: Mapping[str, CommandSpec]) -> list[tuple[str, str]]:
    """(name, description) pairs for the command menu, by (order, name)."""
    ordered = sorted(commands.values(), key=lambda c: (c.order, c.name))
    return [(c.name, c.description or usage(c)) for c in ordered]


def telegram_tokens(config: TelegramConfig) -> TokenCodec:
    """Token codec for callback_data: UTF-8 byte budget, always routed."""
    return TokenCodec(budget=config.token_budget, measure=utf8_length, always_route=True)


def _unwrap[T](value: Option[T] | T) -> T | None:
    """Plain value out of a telegrinder field that may or may not be an Option."""
    if isinstance(value, Some):
        return value.value
    if isinstance(value, Nothing):
        return None
    return value  # type: ignore[return-value]


# ═══════════════════════════════════════════════════════════════════════════════
# TelegramSurface
# ═══════════════════════════════════════════════════════════════════════════════


class TelegramSurface:
    """Runs telegrinder events through a Dispatcher and delivers the outcome.

    SendReply     → message.answer
    EditReply     → cb.edit_text on the pressed message
    PostFollowUp  → new message replying to the pressed one
    Suggest       → inline query results that complete the command text
    Apologize     → reply text, or an alert for button presses
    Ignore        → plain acknowledge
    """

    def __init__(
        self,
        dispatcher: Dispatcher,
        *,
        theme: UITheme = DEFAULT_THEME,
        bot_username: str | None = None,
    ) -> None:
        self.dispatcher = dispatcher
        self.theme = theme
        self.bot_username = bot_username

    @classmethod
    def from_app(
        cls,
        app: DexApp,
        *,
        services: Mapping[type, object] | None = None,
        bot_username: str | None = None,
    ) -> TelegramSurface:
        dispatcher = app.dispatcher(
            tokens=telegram_tokens(app.config.telegram),
            services=services,
        )
        return cls(dispatcher, theme=app.theme, bot_username=bot_username)

    def bind(self, dp: Dispatch) -> None:
        """Register message, callback and inline query handlers."""
        dp.message()(self.on_message)
        dp.callback_query()(self.on_callback)
        dp.inline_query()(self.on_inline_query)

    def _markup(self, reply: Reply) -> object | None:
        kb = build_reply_keyboard(reply, theme=self.theme)
        return kb.get_markup() if kb is not None else None

    # --- /command ---

    async def on_message(self, message: MessageCute) -> None:
        match message.text:
            case Some(text):
                pass
            case _:
                return
        try:
            interaction = parse_command(text, self.dispatcher.commands, bot_username=self.bot_username)
        except ArgumentError as exc:
            logger.info("Rejected arguments for /%s: %s", exc.spec.name, exc)
            await message.answer(self.theme.errors.bad_arguments.format(usage(exc.spec)))
            return
        if interaction is None:
            return
        user = _unwrap(message.from_user)
        if user is not None:
            interaction = _with_user(interaction, user)
        outcome = await self.dispatcher.dispatch(interaction)
        await self.deliver_message(message, outcome)

    async def deliver_message(self, message: MessageCute, outcome: Outcome) -> None:
        match outcome:
            case SendReply(reply) | EditReply(reply) | PostFollowUp(reply):
                await message.answer(reply.text, reply_markup=self._markup(reply))
            case Apologize(text):
                await message.answer(text)
            case _:
                pass

    # --- button press ---

    async def on_callback(self, cb: CallbackQueryCute) -> None:
        data = _unwrap(cb.data)
        if not data or data == NOOP_DATA:
            await cb.answer()
            return
        interaction = _with_user(Interaction(kind=InteractionKind.COMPONENT, custom_id=data), cb.from_user)
        outcome = await self.dispatcher.dispatch(interaction)
        await self.deliver_callback(cb, outcome)

    async def deliver_callback(self, cb: CallbackQueryCute, outcome: Outcome) -> None:
        match outcome:
            case EditReply(reply):
                await cb.edit_text(reply.text, reply_markup=self._markup(reply))
                await cb.answer()
            case PostFollowUp(reply) | SendReply(reply):
                chat_id = _unwrap(cb.chat_id) or cb.from_user.id
                message_id = _unwrap(cb.message_id)
                await cb.ctx_api.send_message(
                    chat_id=chat_id,
                    text=reply.text,
                    reply_markup=self._markup(reply),
                    reply_parameters=ReplyParameters(message_id=message_id) if message_id else None,
                )
                await cb.answer()
            case Apologize(text):
                await cb.answer(text, show_alert=True)
            case _:
                await cb.answer()

    # --- inline query ---

    async def on_inline_query(self, query: InlineQueryCute) -> None:
        text = query.query
        try:
            interaction = parse_inline(text, self.dispatcher.commands)
        except ArgumentError as exc:
            logger.debug("No suggestions for %r: %s", text, exc)
            return
        if interaction is None:
            return
        interaction = _with_user(interaction, query.from_user)
        match await self.dispatcher.dispatch(interaction):
            case Suggest(choices):
                results = [
                    InlineQueryResultArticle(
                        type="article",
                        id=str(index),
                        title=choice.name,
                        input_message_content=InputTextMessageContent(
                            message_text=complete_inline(text, choice.value),
                        ),
                    )
                    for index, choice in enumerate(choices)
                ]
                await query.answer(results, cache_time=0, is_personal=True)
            case _:
                pass


def _with_user(interaction: Interaction, user: User) -> Interaction:
    return replace(interaction, user_id=user.id, locale=_unwrap(user.language_code) or "")


async def publish_commands(api: API, commands: Mapping[str, CommandSpec]) -> None:
    """Push the command menu to Telegram."""
    await api.set_my_commands(
        commands=[BotCommand(command=name, description=text) for name, text in bot_commands(commands)],
    )


__all__ = (
    "ArgumentError",
    "TelegramSurface",
    "bot_commands",
    "complete_inline",
    "parse_command",
    "parse_inline",
    "publish_commands",
    "telegram_tokens",
    "usage",
)
