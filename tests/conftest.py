import asyncio
from collections.abc import Callable
from typing import Any

import pytest

from chainbot.core.context import Context
from chainbot.core.models import BotInfo


class FakeApi:
    """In-memory stand-in for the platform API client."""

    def __init__(self, me: dict[str, Any] | None = None) -> None:
        self.me = me or {
            "id": 42,
            "is_bot": True,
            "first_name": "Helper",
            "username": "helper_bot",
            "can_join_groups": True,
        }
        self.get_me_calls = 0
        self.calls: list[tuple[str, dict[str, Any] | None]] = []

    async def get_me(self) -> dict[str, Any]:
        self.get_me_calls += 1
        await asyncio.sleep(0)
        return self.me

    async def call(self, method: str, payload: dict[str, Any] | None = None) -> Any:
        self.calls.append((method, payload))
        return {"ok": True}


@pytest.fixture
def api() -> FakeApi:
    return FakeApi()


@pytest.fixture
def me() -> BotInfo:
    return BotInfo(id=42, first_name="Helper", username="helper_bot")


@pytest.fixture
def make_ctx(api: FakeApi, me: BotInfo) -> Callable[[dict[str, Any]], Context]:
    def factory(update: dict[str, Any]) -> Context:
        return Context(update, api, me)

    return factory


def text_message(text: str, *, update_id: int = 1, entities: list[dict] | None = None) -> dict[str, Any]:
    message: dict[str, Any] = {
        "message_id": 10,
        "date": 0,
        "chat": {"id": 7, "type": "private"},
        "from": {"id": 5, "is_bot": False, "first_name": "Ann"},
        "text": text,
    }
    if entities is not None:
        message["entities"] = entities
    return {"update_id": update_id, "message": message}
