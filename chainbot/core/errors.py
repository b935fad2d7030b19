"""Error types raised by the middleware core and the filter-query compiler."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from chainbot.core.context import Context


class NextCalledTwiceError(RuntimeError):
    """A middleware invoked its ``next`` continuation more than once."""

    def __init__(self) -> None:
        super().__init__("`next` already called before!")


class FilterQueryError(ValueError):
    """A filter query is malformed or names unknown update fields."""


class InvalidCommandError(ValueError):
    """A command handler was registered with an illegal command name."""


class BotNotInitializedError(RuntimeError):
    """The bot identity is required but has not been fetched or set yet."""


class BotError(Exception):
    """Failure raised inside middleware, paired with the context it happened for.

    Attributes:
        error: The original exception (or any other raised value).
        ctx: The context whose traversal failed.
    """

    def __init__(self, error: Any, ctx: "Context") -> None:
        super().__init__(_describe(error))
        self.error = error
        self.ctx = ctx

    def __repr__(self) -> str:
        return f"BotError({self.error!r})"


def _describe(error: Any) -> str:
    if isinstance(error, BaseException):
        return f"{type(error).__name__} in middleware: {error}"
    msg = f"Non-error value of type {type(error).__name__} thrown in middleware"
    if isinstance(error, (bool, int, float)):
        return f"{msg}: {error}"
    if isinstance(error, str):
        return f"{msg}: {error[:50]}"
    return f"{msg}!"
