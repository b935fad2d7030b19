"""Domain models shared by the dispatch core."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, TypeAlias

Update: TypeAlias = dict[str, Any]
UpdateId: TypeAlias = int
MatchResult: TypeAlias = str | re.Match[str]


@dataclass(frozen=True, slots=True, kw_only=True)
class BotInfo:
    """Identity of the bot account the dispatcher acts as."""

    id: int
    is_bot: bool = True
    first_name: str = ""
    username: str = ""
    last_name: str | None = None
    can_join_groups: bool = False
    can_read_all_group_messages: bool = False
    supports_inline_queries: bool = False
