import pytest

from chainbot.core.errors import FilterQueryError
from chainbot.filters.query import expand, match_filter, parse, preprocess
from tests.conftest import text_message


def channel_post(**fields) -> dict:
    return {
        "update_id": 2,
        "channel_post": {"message_id": 3, "chat": {"id": -100, "type": "channel"}, **fields},
    }


def service_message(**fields) -> dict:
    return {
        "update_id": 3,
        "message": {"message_id": 4, "chat": {"id": -5, "type": "group"}, **fields},
    }


# ── Matching ─────────────────────────────────────────────────────────


def test_l1_query_matches_update_kind(make_ctx) -> None:
    update = text_message("hello")
    assert match_filter("message")(make_ctx(update))
    assert not match_filter("edited_message")(make_ctx(update))


def test_text_shortcut_matches_messages_and_channel_posts(make_ctx) -> None:
    has_text = match_filter(":text")
    assert has_text(make_ctx(text_message("hello")))
    assert has_text(make_ctx(channel_post(text="news")))
    assert not has_text(make_ctx(channel_post(caption="photo caption")))
    assert match_filter(":caption")(make_ctx(channel_post(caption="photo caption")))


def test_msg_shortcut_covers_channel_posts(make_ctx) -> None:
    assert match_filter("msg")(make_ctx(channel_post(text="news")))
    assert not match_filter("edit")(make_ctx(channel_post(text="news")))


def test_entity_queries(make_ctx) -> None:
    url = {"type": "url", "offset": 0, "length": 10}
    ctx = make_ctx(text_message("example.io", entities=[url]))

    assert match_filter(":entities")(ctx)
    assert match_filter("message::url")(ctx)
    assert match_filter("::url")(ctx)
    assert match_filter("message:entities:url")(ctx)
    assert not match_filter("message:entities:bold")(ctx)
    assert not match_filter(":entities")(make_ctx(text_message("plain")))


def test_caption_entities_reached_through_empty_l2(make_ctx) -> None:
    bold = {"type": "bold", "offset": 0, "length": 4}
    ctx = make_ctx(channel_post(caption="look here", caption_entities=[bold]))
    assert match_filter("::bold")(ctx)
    assert not match_filter("::url")(ctx)


def test_me_discriminator_compares_bot_id(make_ctx) -> None:
    left_me = make_ctx(service_message(left_chat_member={"id": 42, "is_bot": True, "first_name": "Helper"}))
    left_other = make_ctx(service_message(left_chat_member={"id": 9, "is_bot": False, "first_name": "Bo"}))

    assert match_filter(":left_chat_member:me")(left_me)
    assert not match_filter(":left_chat_member:me")(left_other)
    assert match_filter(":left_chat_member:is_bot")(left_me)
    assert not match_filter(":left_chat_member:is_bot")(left_other)


def test_array_fields_match_if_any_item_matches(make_ctx) -> None:
    joined = make_ctx(
        service_message(
            new_chat_members=[
                {"id": 9, "is_bot": False, "first_name": "Bo"},
                {"id": 42, "is_bot": True, "first_name": "Helper"},
            ]
        )
    )
    assert match_filter("message:new_chat_members:me")(joined)
    assert match_filter("message:new_chat_members:is_bot")(joined)
    assert not match_filter("message:new_chat_members:is_premium")(joined)


def test_boolean_l3_fields(make_ctx) -> None:
    video = make_ctx(service_message(sticker={"file_id": "x", "is_video": True, "is_animated": False}))
    assert match_filter("message:sticker:is_video")(video)
    assert not match_filter("message:sticker:is_animated")(video)


def test_query_list_is_or_combined(make_ctx) -> None:
    either = match_filter(["callback_query:data", "message:text"])
    assert either(make_ctx(text_message("hi")))
    assert either(make_ctx({"update_id": 1, "callback_query": {"id": "q", "data": "x"}}))
    assert not either(make_ctx({"update_id": 1, "callback_query": {"id": "q", "game_short_name": "g"}}))


def test_empty_text_message(make_ctx) -> None:
    ctx = make_ctx(text_message(""))
    assert match_filter("message")(ctx)
    assert match_filter("message:text")(ctx)
    assert match_filter(":text")(ctx)
    assert not match_filter(":entities")(ctx)
    assert not match_filter("edited_message")(ctx)


def test_compiled_predicates_are_cached() -> None:
    assert match_filter("message:text") is match_filter("message:text")
    assert match_filter(["message", "poll"]) is match_filter(["message", "poll"])
    assert match_filter("message") is not match_filter("poll")


def test_query_list_and_comma_string_are_cached_apart() -> None:
    match_filter(["message", "edited_message"])
    with pytest.raises(FilterQueryError, match="Invalid L1 filter 'message,edited_message'"):
        match_filter("message,edited_message")


# ── Expansion ────────────────────────────────────────────────────────


def test_parse_splits_levels() -> None:
    assert parse("message:entities:url") == [["message", "entities", "url"]]
    assert parse([":text", "poll"]) == [["", "text"], ["poll"]]


def test_expand_shortcuts() -> None:
    assert expand(":text") == ["message:text", "channel_post:text"]
    assert expand(":media") == [
        "message:photo",
        "message:video",
        "channel_post:photo",
        "channel_post:video",
    ]
    assert expand("::url") == [
        "message:entities:url",
        "message:caption_entities:url",
        "channel_post:entities:url",
        "channel_post:caption_entities:url",
    ]
    assert expand("edit:file")[:2] == ["edited_message:photo", "edited_message:animation"]


def test_expand_drops_shortcut_targets_without_the_field() -> None:
    assert expand(":left_chat_member") == ["message:left_chat_member"]
    assert expand("msg:channel_chat_created") == ["channel_post:channel_chat_created"]


def test_preprocess_keeps_plain_queries() -> None:
    assert preprocess(["poll"]) == [["poll"]]
    assert preprocess(["message", "text"]) == [["message", "text"]]


# ── Validation ───────────────────────────────────────────────────────


@pytest.mark.parametrize(
    ("query", "message"),
    [
        ("foo", "Invalid L1 filter 'foo'"),
        ("", "Invalid L1 filter ''"),
        (":", "Invalid L1 filter ''"),
        ("::", "Invalid L1 filter ''"),
        (" ", "Invalid L1 filter ' '"),
        ("poll::url", "do not expand to any valid filter query"),
        ("message:foo", "Invalid L2 filter 'foo' given in 'message:foo'"),
        ("message:text:url", "No further filtering is possible after 'message:text'"),
        ("message:entities:nope", "Invalid L3 filter 'nope'"),
        ("message:entities:url:x", "Cannot filter further than three levels, ':x' is invalid!"),
        (":data", "do not expand to any valid filter query"),
        ("edit:text:bold", "There are 2 errors"),
    ],
)
def test_invalid_queries_are_rejected(query: str, message: str) -> None:
    with pytest.raises(FilterQueryError, match=message):
        match_filter(query)


def test_invalid_query_in_list_rejects_whole_list() -> None:
    with pytest.raises(FilterQueryError):
        match_filter(["message", "messages"])


def test_filter_query_error_is_value_error() -> None:
    with pytest.raises(ValueError):
        expand("nope")
