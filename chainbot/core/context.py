"""Per-update context and reusable context predicates.

A :class:`Context` wraps one raw update together with the API client and the
bot identity.  It is created by the dispatcher for every update, handed to
each middleware by reference, and dropped once the chain finishes.

The :data:`has` namespace builds the predicates used by the composer's
convenience combinators; they can also be used directly with
``Composer.filter``::

    bot.filter(has.chat_type("private"), greet)
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Sequence
from typing import Any, TypeAlias

from chainbot.core.errors import InvalidCommandError
from chainbot.core.models import BotInfo, MatchResult, Update
from chainbot.core.ports import ApiPort
from chainbot.filters.query import FilterQuery, match_filter

Trigger: TypeAlias = str | re.Pattern[str]
TriggerFn: TypeAlias = Callable[[str], MatchResult | None]
ContextPredicate: TypeAlias = Callable[["Context"], bool]


class Context:
    """Mutable state flowing through the middleware chain for one update.

    Attributes:
        update: The raw update payload.
        api: Client used to call the platform API.
        me: Identity of the bot handling this update.
        match: Result of the most recent successful trigger match.  Set by
            ``hears``, ``command`` and the other trigger combinators.
    """

    def __init__(self, update: Update, api: ApiPort | None, me: BotInfo) -> None:
        self.update = update
        self.api = api
        self.me = me
        self.match: MatchResult | None = None

    def __repr__(self) -> str:
        return f"Context(update_id={self.update.get('update_id')!r})"

    # ── Update kinds ─────────────────────────────────────────────────

    @property
    def message(self) -> dict[str, Any] | None:
        return self.update.get("message")

    @property
    def edited_message(self) -> dict[str, Any] | None:
        return self.update.get("edited_message")

    @property
    def channel_post(self) -> dict[str, Any] | None:
        return self.update.get("channel_post")

    @property
    def edited_channel_post(self) -> dict[str, Any] | None:
        return self.update.get("edited_channel_post")

    @property
    def business_connection(self) -> dict[str, Any] | None:
        return self.update.get("business_connection")

    @property
    def business_message(self) -> dict[str, Any] | None:
        return self.update.get("business_message")

    @property
    def edited_business_message(self) -> dict[str, Any] | None:
        return self.update.get("edited_business_message")

    @property
    def deleted_business_messages(self) -> dict[str, Any] | None:
        return self.update.get("deleted_business_messages")

    @property
    def message_reaction(self) -> dict[str, Any] | None:
        return self.update.get("message_reaction")

    @property
    def message_reaction_count(self) -> dict[str, Any] | None:
        return self.update.get("message_reaction_count")

    @property
    def inline_query(self) -> dict[str, Any] | None:
        return self.update.get("inline_query")

    @property
    def chosen_inline_result(self) -> dict[str, Any] | None:
        return self.update.get("chosen_inline_result")

    @property
    def callback_query(self) -> dict[str, Any] | None:
        return self.update.get("callback_query")

    @property
    def shipping_query(self) -> dict[str, Any] | None:
        return self.update.get("shipping_query")

    @property
    def pre_checkout_query(self) -> dict[str, Any] | None:
        return self.update.get("pre_checkout_query")

    @property
    def poll(self) -> dict[str, Any] | None:
        return self.update.get("poll")

    @property
    def poll_answer(self) -> dict[str, Any] | None:
        return self.update.get("poll_answer")

    @property
    def my_chat_member(self) -> dict[str, Any] | None:
        return self.update.get("my_chat_member")

    @property
    def chat_member(self) -> dict[str, Any] | None:
        return self.update.get("chat_member")

    @property
    def chat_join_request(self) -> dict[str, Any] | None:
        return self.update.get("chat_join_request")

    @property
    def chat_boost(self) -> dict[str, Any] | None:
        return self.update.get("chat_boost")

    @property
    def removed_chat_boost(self) -> dict[str, Any] | None:
        return self.update.get("removed_chat_boost")

    # ── Aggregates ───────────────────────────────────────────────────

    @property
    def msg(self) -> dict[str, Any] | None:
        """The message this update is about, whatever its update kind."""
        callback = self.callback_query or {}
        return _first(
            self.message,
            self.edited_message,
            self.channel_post,
            self.edited_channel_post,
            self.business_message,
            self.edited_business_message,
            callback.get("message"),
        )

    @property
    def txt(self) -> str | None:
        msg = self.msg
        if msg is None:
            return None
        return _first(msg.get("text"), msg.get("caption"))

    @property
    def msg_id(self) -> int | None:
        return _first(
            (self.msg or {}).get("message_id"),
            (self.message_reaction or {}).get("message_id"),
            (self.message_reaction_count or {}).get("message_id"),
        )

    @property
    def inline_message_id(self) -> str | None:
        return _first(
            (self.callback_query or {}).get("inline_message_id"),
            (self.chosen_inline_result or {}).get("inline_message_id"),
        )

    @property
    def chat(self) -> dict[str, Any] | None:
        source = _first(
            self.msg,
            self.deleted_business_messages,
            self.message_reaction,
            self.message_reaction_count,
            self.my_chat_member,
            self.chat_member,
            self.chat_join_request,
            self.chat_boost,
            self.removed_chat_boost,
        )
        return None if source is None else source.get("chat")

    @property
    def chat_id(self) -> int | None:
        return _first(
            (self.chat_join_request or {}).get("user_chat_id"),
            (self.chat or {}).get("id"),
            (self.business_connection or {}).get("user_chat_id"),
        )

    @property
    def from_user(self) -> dict[str, Any] | None:
        """The user who caused this update, if any."""
        boost_source = _first((self.chat_boost or {}).get("boost"), self.removed_chat_boost)
        owner = _first(
            self.business_connection,
            self.message_reaction,
            (boost_source or {}).get("source"),
        )
        if owner is not None and owner.get("user") is not None:
            return owner["user"]
        source = _first(
            self.callback_query,
            self.msg,
            self.inline_query,
            self.chosen_inline_result,
            self.shipping_query,
            self.pre_checkout_query,
            self.my_chat_member,
            self.chat_member,
            self.chat_join_request,
        )
        return None if source is None else source.get("from")

    # ── Helpers ──────────────────────────────────────────────────────

    def has(self, query: FilterQuery | Sequence[FilterQuery]) -> bool:
        """Return True if this context matches the given filter query."""
        return match_filter(query)(self)

    def entities(self, types: str | Iterable[str] | None = None) -> list[dict[str, Any]]:
        """Entities of the current message, each with its ``text`` slice added."""
        msg = self.msg
        if msg is None:
            return []
        text = _first(msg.get("text"), msg.get("caption"))
        if text is None:
            return []
        entities = _first(msg.get("entities"), msg.get("caption_entities"))
        if entities is None:
            return []
        if types is not None:
            wanted = set(_to_list(types))
            entities = [e for e in entities if e.get("type") in wanted]
        return [
            {**e, "text": text[e["offset"] : e["offset"] + e["length"]]}
            for e in entities
        ]

    def reactions(self) -> dict[str, Any]:
        """Summarize how the reactions on a message changed in this update."""
        emoji: list[str] = []
        custom: list[str] = []
        emoji_removed: list[str] = []
        custom_removed: list[str] = []
        paid = paid_added = False
        reaction = self.message_reaction
        if reaction is not None:
            for r in reaction.get("new_reaction", []):
                if r.get("type") == "emoji":
                    emoji.append(r["emoji"])
                elif r.get("type") == "custom_emoji":
                    custom.append(r["custom_emoji_id"])
                elif r.get("type") == "paid":
                    paid = paid_added = True
            for r in reaction.get("old_reaction", []):
                if r.get("type") == "emoji":
                    emoji_removed.append(r["emoji"])
                elif r.get("type") == "custom_emoji":
                    custom_removed.append(r["custom_emoji_id"])
                elif r.get("type") == "paid":
                    paid_added = False
        emoji_added, emoji_kept, emoji_removed = _diff(emoji, emoji_removed)
        custom_added, custom_kept, custom_removed = _diff(custom, custom_removed)
        return {
            "emoji": emoji,
            "emoji_added": emoji_added,
            "emoji_kept": emoji_kept,
            "emoji_removed": emoji_removed,
            "custom_emoji": custom,
            "custom_emoji_added": custom_added,
            "custom_emoji_kept": custom_kept,
            "custom_emoji_removed": custom_removed,
            "paid": paid,
            "paid_added": paid_added,
        }

    async def reply(self, text: str, **other: Any) -> Any:
        """Send *text* to the chat this update belongs to."""
        if self.api is None:
            raise RuntimeError("No API client available on this context")
        chat_id = self.chat_id
        if chat_id is None:
            raise RuntimeError("Missing chat information in this update")
        return await self.api.call("sendMessage", {"chat_id": chat_id, "text": text, **other})


# ── Triggers ─────────────────────────────────────────────────────────


def trigger_fns(trigger: Trigger | Sequence[Trigger]) -> list[TriggerFn]:
    """Turn string and pattern triggers into match functions.

    Strings match by equality and produce the string itself; patterns are
    searched anywhere in the content and produce the ``re.Match``.
    """
    fns: list[TriggerFn] = []
    for t in _to_list(trigger):
        if isinstance(t, re.Pattern):
            fns.append(t.search)
        else:
            fns.append(_equals(t))
    return fns


def match_triggers(ctx: Context, content: str, triggers: list[TriggerFn]) -> bool:
    """Store the first successful trigger result on ``ctx.match``."""
    for t in triggers:
        result = t(content)
        if result:
            ctx.match = result
            return True
    return False


def _equals(expected: str) -> TriggerFn:
    def test(content: str) -> str | None:
        return expected if content == expected else None

    return test


# ── Predicate factories ──────────────────────────────────────────────


class _Has:
    """Factories for context predicates used by the composer."""

    @staticmethod
    def filter_query(query: FilterQuery | Sequence[FilterQuery]) -> ContextPredicate:
        return match_filter(query)

    @staticmethod
    def text(trigger: Trigger | Sequence[Trigger]) -> ContextPredicate:
        has_text = match_filter([":text", ":caption"])
        triggers = trigger_fns(trigger)

        def predicate(ctx: Context) -> bool:
            if not has_text(ctx):
                return False
            msg = _first(ctx.message, ctx.channel_post)
            content = _first(msg.get("text"), msg.get("caption"))
            return match_triggers(ctx, content, triggers)

        return predicate

    @staticmethod
    def command(command: str | Sequence[str]) -> ContextPredicate:
        has_entities = match_filter(":entities:bot_command")
        at_commands: set[str] = set()
        plain_commands: set[str] = set()
        for cmd in _to_list(command):
            if cmd.startswith("/"):
                raise InvalidCommandError(
                    f"Do not include '/' when registering command handlers "
                    f"(use '{cmd[1:]}' not '{cmd}')"
                )
            (at_commands if "@" in cmd else plain_commands).add(cmd)

        def predicate(ctx: Context) -> bool:
            if not has_entities(ctx):
                return False
            msg = _first(ctx.message, ctx.channel_post)
            content = _first(msg.get("text"), msg.get("caption"))
            for entity in msg.get("entities", []):
                if entity.get("type") != "bot_command" or entity.get("offset") != 0:
                    continue
                cmd = content[1 : entity["length"]]
                if cmd in plain_commands or cmd in at_commands:
                    ctx.match = content[len(cmd) + 1 :].lstrip()
                    return True
                name, sep, target = cmd.partition("@")
                if not sep or target.lower() != ctx.me.username.lower():
                    continue
                if name in plain_commands:
                    ctx.match = content[len(cmd) + 1 :].lstrip()
                    return True
            return False

        return predicate

    @staticmethod
    def reaction(reaction: str | dict[str, Any] | Sequence[str | dict[str, Any]]) -> ContextPredicate:
        has_reaction = match_filter("message_reaction")
        wanted = [
            {"type": "emoji", "emoji": r} if isinstance(r, str) else r
            for r in ([reaction] if isinstance(reaction, (str, dict)) else reaction)
        ]
        emoji = {r["emoji"] for r in wanted if r.get("type") == "emoji"}
        custom = {r["custom_emoji_id"] for r in wanted if r.get("type") == "custom_emoji"}
        paid = any(r.get("type") == "paid" for r in wanted)

        def predicate(ctx: Context) -> bool:
            if not has_reaction(ctx):
                return False
            old = ctx.message_reaction.get("old_reaction", [])
            for r in ctx.message_reaction.get("new_reaction", []):
                kind = r.get("type")
                if any(_same_reaction(o, r) for o in old):
                    continue
                if kind == "emoji":
                    if r.get("emoji") in emoji:
                        return True
                elif kind == "custom_emoji":
                    if r.get("custom_emoji_id") in custom:
                        return True
                elif kind == "paid":
                    if paid:
                        return True
                else:
                    return True
            return False

        return predicate

    @staticmethod
    def chat_type(chat_type: str | Sequence[str]) -> ContextPredicate:
        allowed = set(_to_list(chat_type))

        def predicate(ctx: Context) -> bool:
            chat = ctx.chat
            return chat is not None and chat.get("type") in allowed

        return predicate

    @staticmethod
    def callback_query(trigger: Trigger | Sequence[Trigger]) -> ContextPredicate:
        return _field_trigger("callback_query:data", "callback_query", "data", trigger)

    @staticmethod
    def game_query(trigger: Trigger | Sequence[Trigger]) -> ContextPredicate:
        return _field_trigger(
            "callback_query:game_short_name", "callback_query", "game_short_name", trigger
        )

    @staticmethod
    def inline_query(trigger: Trigger | Sequence[Trigger]) -> ContextPredicate:
        return _field_trigger("inline_query", "inline_query", "query", trigger)

    @staticmethod
    def chosen_inline_result(trigger: Trigger | Sequence[Trigger]) -> ContextPredicate:
        return _field_trigger("chosen_inline_result", "chosen_inline_result", "result_id", trigger)

    @staticmethod
    def pre_checkout_query(trigger: Trigger | Sequence[Trigger]) -> ContextPredicate:
        return _field_trigger("pre_checkout_query", "pre_checkout_query", "invoice_payload", trigger)

    @staticmethod
    def shipping_query(trigger: Trigger | Sequence[Trigger]) -> ContextPredicate:
        return _field_trigger("shipping_query", "shipping_query", "invoice_payload", trigger)


has = _Has()


def _field_trigger(
    query: FilterQuery,
    kind: str,
    field: str,
    trigger: Trigger | Sequence[Trigger],
) -> ContextPredicate:
    present = match_filter(query)
    triggers = trigger_fns(trigger)

    def predicate(ctx: Context) -> bool:
        if not present(ctx):
            return False
        content = ctx.update[kind].get(field)
        return content is not None and match_triggers(ctx, content, triggers)

    return predicate


def _same_reaction(old: dict[str, Any], new: dict[str, Any]) -> bool:
    kind = new.get("type")
    if old.get("type") != kind:
        return False
    if kind == "emoji":
        return old.get("emoji") == new.get("emoji")
    if kind == "custom_emoji":
        return old.get("custom_emoji_id") == new.get("custom_emoji_id")
    return kind == "paid"


def _diff(added: list[str], removed: list[str]) -> tuple[list[str], list[str], list[str]]:
    """Split into (added, kept, removed), pairing each removed item once."""
    still_added = list(added)
    kept: list[str] = []
    still_removed: list[str] = []
    for item in removed:
        if item in still_added:
            still_added.remove(item)
            kept.append(item)
        else:
            still_removed.append(item)
    return still_added, kept, still_removed


def _first(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None


def _to_list(value: Any) -> list[Any]:
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    return [value]
