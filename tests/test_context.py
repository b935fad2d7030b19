import re

import pytest

from chainbot.core.context import Context, has, match_triggers, trigger_fns
from chainbot.core.models import BotInfo
from tests.conftest import text_message


def test_update_kind_accessors(make_ctx) -> None:
    ctx = make_ctx(text_message("hello"))
    assert ctx.message["text"] == "hello"
    assert ctx.edited_message is None
    assert ctx.callback_query is None
    assert ctx.match is None
    assert repr(ctx) == "Context(update_id=1)"


def test_aggregates_for_plain_message(make_ctx) -> None:
    ctx = make_ctx(text_message("hello"))
    assert ctx.msg is ctx.message
    assert ctx.txt == "hello"
    assert ctx.msg_id == 10
    assert ctx.chat == {"id": 7, "type": "private"}
    assert ctx.chat_id == 7
    assert ctx.from_user["id"] == 5


def test_aggregates_for_callback_query(make_ctx) -> None:
    message = {"message_id": 11, "chat": {"id": 8, "type": "group"}, "caption": "pick one"}
    ctx = make_ctx(
        {
            "update_id": 4,
            "callback_query": {
                "id": "cb",
                "from": {"id": 6, "first_name": "Cy"},
                "message": message,
                "data": "a",
            },
        }
    )
    assert ctx.msg is message
    assert ctx.txt == "pick one"
    assert ctx.chat_id == 8
    assert ctx.from_user["id"] == 6
    assert ctx.inline_message_id is None


def test_aggregates_for_reactions_and_boosts(make_ctx) -> None:
    reaction = make_ctx(
        {
            "update_id": 5,
            "message_reaction": {
                "chat": {"id": 9, "type": "supergroup"},
                "message_id": 77,
                "user": {"id": 3},
                "old_reaction": [],
                "new_reaction": [],
            },
        }
    )
    assert reaction.msg is None
    assert reaction.msg_id == 77
    assert reaction.chat_id == 9
    assert reaction.from_user == {"id": 3}

    boost = make_ctx(
        {
            "update_id": 6,
            "chat_boost": {
                "chat": {"id": -1, "type": "channel"},
                "boost": {"boost_id": "b", "source": {"source": "premium", "user": {"id": 12}}},
            },
        }
    )
    assert boost.chat_id == -1
    assert boost.from_user == {"id": 12}


def test_chat_join_request_prefers_user_chat_id(make_ctx) -> None:
    ctx = make_ctx(
        {
            "update_id": 7,
            "chat_join_request": {
                "chat": {"id": -3, "type": "supergroup"},
                "from": {"id": 13},
                "user_chat_id": 1313,
            },
        }
    )
    assert ctx.chat_id == 1313
    assert ctx.from_user == {"id": 13}


def test_context_has_uses_filter_queries(make_ctx) -> None:
    ctx = make_ctx(text_message("hi"))
    assert ctx.has(":text")
    assert ctx.has(["poll", "message"])
    assert not ctx.has("edited_message")


def test_entities_with_text_slices(make_ctx) -> None:
    entities = [
        {"type": "bot_command", "offset": 0, "length": 6},
        {"type": "url", "offset": 7, "length": 10},
    ]
    ctx = make_ctx(text_message("/start example.io", entities=entities))

    assert [e["text"] for e in ctx.entities()] == ["/start", "example.io"]
    assert ctx.entities("url") == [{"type": "url", "offset": 7, "length": 10, "text": "example.io"}]
    assert ctx.entities(["mention"]) == []
    assert make_ctx(text_message("plain")).entities() == []
    assert make_ctx({"update_id": 1, "poll": {"id": "p"}}).entities() == []


def test_reactions_summary(make_ctx) -> None:
    ctx = make_ctx(
        {
            "update_id": 8,
            "message_reaction": {
                "chat": {"id": 7, "type": "private"},
                "message_id": 10,
                "old_reaction": [
                    {"type": "emoji", "emoji": "👍"},
                    {"type": "emoji", "emoji": "😢"},
                ],
                "new_reaction": [
                    {"type": "emoji", "emoji": "👍"},
                    {"type": "emoji", "emoji": "🔥"},
                    {"type": "custom_emoji", "custom_emoji_id": "c1"},
                    {"type": "paid"},
                ],
            },
        }
    )
    summary = ctx.reactions()
    assert summary["emoji"] == ["👍", "🔥"]
    assert summary["emoji_added"] == ["🔥"]
    assert summary["emoji_kept"] == ["👍"]
    assert summary["emoji_removed"] == ["😢"]
    assert summary["custom_emoji_added"] == ["c1"]
    assert summary["custom_emoji_removed"] == []
    assert summary["paid"] is True
    assert summary["paid_added"] is True


def test_reactions_summary_without_reaction_update(make_ctx) -> None:
    summary = make_ctx(text_message("hi")).reactions()
    assert summary["emoji"] == []
    assert summary["paid"] is False


async def test_reply_sends_to_current_chat(make_ctx, api) -> None:
    ctx = make_ctx(text_message("hi"))
    result = await ctx.reply("hello back", parse_mode="HTML")
    assert result == {"ok": True}
    assert api.calls == [("sendMessage", {"chat_id": 7, "text": "hello back", "parse_mode": "HTML"})]


async def test_reply_without_chat_fails(make_ctx) -> None:
    ctx = make_ctx({"update_id": 1, "inline_query": {"id": "i", "query": "q"}})
    with pytest.raises(RuntimeError, match="Missing chat information"):
        await ctx.reply("nowhere")


async def test_reply_without_api_fails(me) -> None:
    ctx = Context(text_message("hi"), None, me)
    with pytest.raises(RuntimeError, match="No API client"):
        await ctx.reply("hi")


# ── Triggers and predicates ──────────────────────────────────────────


def test_first_matching_trigger_is_stored(make_ctx) -> None:
    ctx = make_ctx({})
    fns = trigger_fns(["nope", re.compile(r"(\d+)"), "12"])
    assert match_triggers(ctx, "12", fns)
    assert ctx.match.group(1) == "12"
    assert not match_triggers(ctx, "abc", fns)


def test_chat_type_predicate(make_ctx) -> None:
    is_private = has.chat_type("private")
    assert is_private(make_ctx(text_message("hi")))
    assert not is_private(make_ctx({"update_id": 1, "poll": {"id": "p"}}))


def test_command_predicate_ignores_other_bots(api) -> None:
    entity = {"type": "bot_command", "offset": 0, "length": 14}
    update = text_message("/stop@some_bot", entities=[entity])
    is_stop = has.command("stop")
    assert is_stop(Context(update, api, BotInfo(id=1, username="some_bot")))
    assert not is_stop(Context(update, api, BotInfo(id=2, username="helper_bot")))


def test_chosen_inline_and_payment_predicates(make_ctx) -> None:
    chosen = make_ctx({"update_id": 1, "chosen_inline_result": {"result_id": "r1", "query": "x"}})
    assert has.chosen_inline_result("r1")(chosen)
    assert chosen.match == "r1"

    checkout = make_ctx({"update_id": 2, "pre_checkout_query": {"id": "p", "invoice_payload": "order-7"}})
    assert has.pre_checkout_query("order-7")(checkout)
    assert not has.shipping_query("order-7")(checkout)
