"""Port interfaces for collaborators living outside the dispatch core."""

from __future__ import annotations

from typing import Any, Protocol

from chainbot.core.models import BotInfo


class ApiPort(Protocol):
    """Outbound platform API client.

    The core only stores this object on each context and forwards calls made
    by middleware; transport and retry behaviour belong to the implementation.
    """

    async def get_me(self) -> BotInfo | dict[str, Any]:
        """Return the identity of the bot account."""

    async def call(self, method: str, payload: dict[str, Any] | None = None) -> Any:
        """Invoke one remote API method and return its decoded result."""
