"""Known update shapes used to validate filter queries.

Each table maps a field name to the table of the next level.  An empty table
means no further filtering is possible below that field.
"""

from __future__ import annotations

from typing import Final, TypeAlias

KeyTable: TypeAlias = dict[str, "KeyTable"]

ENTITY_KEYS: Final[KeyTable] = {
    name: {}
    for name in (
        "mention",
        "hashtag",
        "cashtag",
        "bot_command",
        "url",
        "email",
        "phone_number",
        "bold",
        "italic",
        "underline",
        "strikethrough",
        "spoiler",
        "blockquote",
        "expandable_blockquote",
        "code",
        "pre",
        "text_link",
        "text_mention",
        "custom_emoji",
    )
}

USER_KEYS: Final[KeyTable] = {
    "me": {},
    "is_bot": {},
    "is_premium": {},
    "added_to_attachment_menu": {},
}

FORWARD_ORIGIN_KEYS: Final[KeyTable] = {
    "user": {},
    "hidden_user": {},
    "chat": {},
    "channel": {},
}

STICKER_KEYS: Final[KeyTable] = {
    "is_video": {},
    "is_animated": {},
    "premium_animation": {},
}

REACTION_KEYS: Final[KeyTable] = {
    "emoji": {},
    "custom_emoji": {},
}

_PLAIN_MESSAGE_FIELDS = (
    "is_topic_message",
    "is_automatic_forward",
    "business_connection_id",
    "text",
    "animation",
    "audio",
    "document",
    "photo",
    "story",
    "video",
    "video_note",
    "voice",
    "contact",
    "dice",
    "game",
    "poll",
    "venue",
    "location",
    "paid_media",
    "caption",
    "effect_id",
    "has_media_spoiler",
    "new_chat_title",
    "new_chat_photo",
    "delete_chat_photo",
    "message_auto_delete_timer_changed",
    "pinned_message",
    "chat_background_set",
    "invoice",
    "proximity_alert_triggered",
    "video_chat_scheduled",
    "video_chat_started",
    "video_chat_ended",
    "video_chat_participants_invited",
    "web_app_data",
)

COMMON_MESSAGE_KEYS: Final[KeyTable] = {
    **{name: {} for name in _PLAIN_MESSAGE_FIELDS},
    "forward_origin": FORWARD_ORIGIN_KEYS,
    "sticker": STICKER_KEYS,
    "entities": ENTITY_KEYS,
    "caption_entities": ENTITY_KEYS,
}

MESSAGE_KEYS: Final[KeyTable] = {
    **COMMON_MESSAGE_KEYS,
    "sender_boost_count": {},
    "new_chat_members": USER_KEYS,
    "left_chat_member": USER_KEYS,
    "group_chat_created": {},
    "supergroup_chat_created": {},
    "migrate_to_chat_id": {},
    "migrate_from_chat_id": {},
    "successful_payment": {},
    "refunded_payment": {},
    "boost_added": {},
    "users_shared": {},
    "chat_shared": {},
    "connected_website": {},
    "write_access_allowed": {},
    "passport_data": {},
    "forum_topic_created": {},
    "forum_topic_edited": {"name": {}, "icon_custom_emoji_id": {}},
    "forum_topic_closed": {},
    "forum_topic_reopened": {},
    "general_forum_topic_hidden": {},
    "general_forum_topic_unhidden": {},
}

CHANNEL_POST_KEYS: Final[KeyTable] = {
    **COMMON_MESSAGE_KEYS,
    "channel_chat_created": {},
}

CHAT_MEMBER_UPDATED_KEYS: Final[KeyTable] = {"from": USER_KEYS}

UPDATE_KEYS: Final[KeyTable] = {
    "message": MESSAGE_KEYS,
    "edited_message": MESSAGE_KEYS,
    "channel_post": CHANNEL_POST_KEYS,
    "edited_channel_post": CHANNEL_POST_KEYS,
    "business_connection": {"can_reply": {}, "is_enabled": {}},
    "business_message": MESSAGE_KEYS,
    "edited_business_message": MESSAGE_KEYS,
    "deleted_business_messages": {},
    "inline_query": {},
    "chosen_inline_result": {},
    "callback_query": {"data": {}, "game_short_name": {}},
    "shipping_query": {},
    "pre_checkout_query": {},
    "poll": {},
    "poll_answer": {},
    "my_chat_member": CHAT_MEMBER_UPDATED_KEYS,
    "chat_member": CHAT_MEMBER_UPDATED_KEYS,
    "chat_join_request": {},
    "message_reaction": {"old_reaction": REACTION_KEYS, "new_reaction": REACTION_KEYS},
    "message_reaction_count": {"reactions": REACTION_KEYS},
    "chat_boost": {},
    "removed_chat_boost": {},
}

# Shortcut tokens and the concrete fields they expand to, in evaluation order.
L1_SHORTCUTS: Final[dict[str, tuple[str, ...]]] = {
    "": ("message", "channel_post"),
    "msg": ("message", "channel_post"),
    "edit": ("edited_message", "edited_channel_post"),
}

L2_SHORTCUTS: Final[dict[str, tuple[str, ...]]] = {
    "": ("entities", "caption_entities"),
    "media": ("photo", "video"),
    "file": (
        "photo",
        "animation",
        "audio",
        "document",
        "video",
        "video_note",
        "voice",
        "sticker",
    ),
}

# Update kinds delivered when no explicit allow-list is requested.
DEFAULT_UPDATE_TYPES: Final[tuple[str, ...]] = (
    "message",
    "edited_message",
    "channel_post",
    "edited_channel_post",
    "business_connection",
    "business_message",
    "edited_business_message",
    "deleted_business_messages",
    "inline_query",
    "chosen_inline_result",
    "callback_query",
    "shipping_query",
    "pre_checkout_query",
    "poll",
    "poll_answer",
    "my_chat_member",
    "chat_join_request",
    "chat_boost",
    "removed_chat_boost",
)
