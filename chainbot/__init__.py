"""chainbot - middleware dispatch for chat-bot updates."""

__version__ = "0.1.0"
__logo__ = "⛓"

from chainbot.app.bot import Bot  # noqa: E402
from chainbot.core.composer import Composer  # noqa: E402
from chainbot.core.context import Context, has  # noqa: E402
from chainbot.core.errors import (  # noqa: E402
    BotError,
    BotNotInitializedError,
    FilterQueryError,
    InvalidCommandError,
    NextCalledTwiceError,
)
from chainbot.core.middleware import (  # noqa: E402
    Middleware,
    MiddlewareFn,
    MiddlewareObj,
    NextFn,
    concat,
    flatten,
    leaf,
    pass_through,
    run,
)
from chainbot.core.models import BotInfo  # noqa: E402
from chainbot.filters.query import match_filter  # noqa: E402

__all__ = [
    "Bot",
    "BotError",
    "BotInfo",
    "BotNotInitializedError",
    "Composer",
    "Context",
    "FilterQueryError",
    "InvalidCommandError",
    "Middleware",
    "MiddlewareFn",
    "MiddlewareObj",
    "NextCalledTwiceError",
    "NextFn",
    "concat",
    "flatten",
    "has",
    "leaf",
    "match_filter",
    "pass_through",
    "run",
]
