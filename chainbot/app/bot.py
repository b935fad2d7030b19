"""Dispatch root: turns raw updates into contexts and runs the middleware chain."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable, Sequence
from typing import TYPE_CHECKING, Any, TypeAlias

from loguru import logger
from pydantic import TypeAdapter

from chainbot.core.composer import Composer
from chainbot.core.context import Context
from chainbot.core.errors import BotError, BotNotInitializedError
from chainbot.core.middleware import Middleware, maybe_await, run
from chainbot.core.models import BotInfo, Update
from chainbot.core.ports import ApiPort
from chainbot.filters.query import FilterQuery, expand
from chainbot.filters.schema import DEFAULT_UPDATE_TYPES

if TYPE_CHECKING:
    from chainbot.config.schema import BotSettings

ErrorHandler: TypeAlias = Callable[[BotError], Awaitable[Any] | Any]
ContextFactory: TypeAlias = Callable[[Update, ApiPort | None, BotInfo], Context]

_bot_info_adapter = TypeAdapter(BotInfo)


class Bot(Composer):
    """Root composer that owns the API client and the bot identity.

    Usage::

        bot = Bot(api, bot_info=BotInfo(id=42, username="helper_bot"))
        bot.command("start", greet)
        bot.catch(report_error)
        await bot.handle_update(update)
    """

    def __init__(
        self,
        api: ApiPort | None = None,
        *,
        bot_info: BotInfo | None = None,
        context_factory: ContextFactory = Context,
    ) -> None:
        super().__init__()
        self.api = api
        self._me = bot_info
        self._me_task: asyncio.Future[Any] | None = None
        self._context_factory = context_factory
        self._observed_update_types: set[str] = set()
        self.allowed_updates: list[str] | None = None
        self.error_handler: ErrorHandler = self._default_error_handler

    @classmethod
    def from_settings(cls, settings: "BotSettings", api: ApiPort | None = None) -> Bot:
        """Build a bot from loaded settings."""
        bot = cls(api, bot_info=settings.bot_info)
        if settings.allowed_updates is not None:
            bot.allowed_updates = list(settings.allowed_updates)
        return bot

    # ── Identity ─────────────────────────────────────────────────────

    @property
    def bot_info(self) -> BotInfo:
        if self._me is None:
            raise BotNotInitializedError(
                "Bot information unavailable! Make sure to call `await bot.init()` "
                "before accessing `bot.bot_info`!"
            )
        return self._me

    @bot_info.setter
    def bot_info(self, value: BotInfo) -> None:
        self._me = value

    def is_inited(self) -> bool:
        return self._me is not None

    async def init(self) -> None:
        """Fetch the bot identity from the API unless it is already known."""
        if not self.is_inited():
            if self.api is None:
                raise BotNotInitializedError("Cannot fetch bot information without an API client")
            logger.debug("Initializing bot")
            if self._me_task is None:
                self._me_task = asyncio.ensure_future(self.api.get_me())
            task = self._me_task
            try:
                raw = await task
            finally:
                if self._me_task is task:
                    self._me_task = None
            me = raw if isinstance(raw, BotInfo) else _bot_info_adapter.validate_python(raw)
            if self._me is None:
                self._me = me
            else:
                logger.debug("Bot info was set by now, will not overwrite")
        logger.debug("I am {}!", self.bot_info.username)

    # ── Registration ─────────────────────────────────────────────────

    def on(self, query: FilterQuery | Sequence[FilterQuery], *middleware: Middleware) -> Composer:
        for concrete in expand(query):
            self._observed_update_types.add(concrete.split(":", 1)[0])
        return super().on(query, *middleware)

    def reaction(self, reaction: Any, *middleware: Middleware) -> Composer:
        self._observed_update_types.add("message_reaction")
        return super().reaction(reaction, *middleware)

    @property
    def observed_update_types(self) -> frozenset[str]:
        """Update kinds that listeners registered via ``on``/``reaction`` wait for."""
        return frozenset(self._observed_update_types)

    def validate_allowed_updates(self, allowed: Iterable[str] | None = None) -> list[str]:
        """Warn about listeners for update kinds that will never be delivered.

        Returns the offending update kinds.
        """
        if allowed is None:
            allowed = self.allowed_updates if self.allowed_updates is not None else DEFAULT_UPDATE_TYPES
        allowed_set = set(allowed)
        impossible = sorted(u for u in self._observed_update_types if u not in allowed_set)
        if impossible:
            logger.warning(
                "Listeners registered for update types not in allowed_updates, "
                "they may not be received: {}",
                ", ".join(f"'{u}'" for u in impossible),
            )
        return impossible

    # ── Error handling ───────────────────────────────────────────────

    def catch(self, handler: ErrorHandler) -> None:
        """Install the handler receiving unhandled middleware failures."""
        self.error_handler = handler

    @staticmethod
    async def _default_error_handler(err: BotError) -> None:
        logger.error(
            "Error in middleware while handling update {}: {!r}",
            err.ctx.update.get("update_id"),
            err.error,
        )
        logger.error("No error handler was set! Set your own with `bot.catch(...)`")
        raise err

    # ── Dispatch ─────────────────────────────────────────────────────

    async def handle_update(self, update: Update) -> Context:
        """Run the middleware chain for one update.

        Raises:
            BotError: If middleware raised; wraps the failure and the context.
        """
        if self._me is None:
            raise BotNotInitializedError(
                "Bot not initialized! Either call `await bot.init()`, or pass "
                "`bot_info` to the `Bot` constructor."
            )
        update_id = update.get("update_id")
        logger.debug("Processing update {}", update_id)
        ctx = self._context_factory(update, self.api, self._me)
        try:
            await run(self.middleware(), ctx)
        except Exception as e:
            logger.opt(exception=True).debug("Error in middleware for update {}", update_id)
            raise BotError(e, ctx) from e
        return ctx

    async def handle_updates(self, updates: Iterable[Update]) -> None:
        """Process a batch of updates in order, reporting failures centrally."""
        for update in updates:
            try:
                await self.handle_update(update)
            except BotError as err:
                await maybe_await(self.error_handler(err))
            except Exception:
                logger.critical("Unable to handle update {}", update.get("update_id"))
                raise
