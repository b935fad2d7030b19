"""Composer: accumulates middleware into one chain and offers combinators.

Every combinator appends a new link to this composer's chain and returns a
child composer for the new branch, so further registrations on the child
only run when the branch is taken::

    bot = Composer()
    bot.use(log_updates)
    admin = bot.filter(is_admin)
    admin.command("ban", ban_user)
    bot.on("message:text", echo)

Registration order is execution order within one update.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any, TypeAlias, TypeVar

from loguru import logger

from chainbot.core.context import Context, Trigger, has
from chainbot.core.errors import BotError
from chainbot.core.middleware import (
    Middleware,
    MiddlewareFn,
    NextFn,
    concat,
    flatten,
    maybe_await,
    pass_through,
    run,
)
from chainbot.filters.query import FilterQuery

T = TypeVar("T")

MaybeAwaitable: TypeAlias = T | Awaitable[T]
Predicate: TypeAlias = Callable[[Context], MaybeAwaitable[bool]]
MiddlewareSpec: TypeAlias = Middleware | Sequence[Middleware]
ErrorHandler: TypeAlias = Callable[[BotError, NextFn], MaybeAwaitable[Any]]


class Composer:
    """Container holding one composed middleware chain."""

    __slots__ = ("_handler",)

    def __init__(self, *middleware: Middleware) -> None:
        self._handler: MiddlewareFn = _compose(middleware)

    def middleware(self) -> MiddlewareFn:
        """Return a function running every middleware registered so far.

        The returned function always runs the current chain, including
        middleware registered after this call.
        """
        return self._dispatch

    async def _dispatch(self, ctx: Context, next: NextFn) -> None:
        await maybe_await(self._handler(ctx, next))

    # ── Core combinators ─────────────────────────────────────────────

    def use(self, *middleware: Middleware) -> Composer:
        """Append *middleware* to the chain, in order."""
        composer = Composer(*middleware)
        self._handler = concat(self._handler, flatten(composer))
        return composer

    def filter(self, predicate: Predicate, *middleware: Middleware) -> Composer:
        """Run *middleware* only for contexts where *predicate* holds."""
        composer = Composer(*middleware)
        self.branch(predicate, composer, pass_through)
        return composer

    def drop(self, predicate: Predicate, *middleware: Middleware) -> Composer:
        """Run *middleware* only for contexts where *predicate* does not hold."""

        async def negated(ctx: Context) -> bool:
            return not await maybe_await(predicate(ctx))

        return self.filter(negated, *middleware)

    def branch(
        self,
        predicate: Predicate,
        true_middleware: MiddlewareSpec,
        false_middleware: MiddlewareSpec,
    ) -> Composer:
        """Pick one of two middleware sets per context."""

        async def choose(ctx: Context) -> MiddlewareSpec:
            return true_middleware if await maybe_await(predicate(ctx)) else false_middleware

        return self.lazy(choose)

    def lazy(self, factory: Callable[[Context], MaybeAwaitable[MiddlewareSpec]]) -> Composer:
        """Build the middleware to run from each context, once per context.

        An empty sequence means nothing runs and the chain continues.
        """

        async def build_and_run(ctx: Context, next: NextFn) -> None:
            middleware = await maybe_await(factory(ctx))
            if isinstance(middleware, (list, tuple)):
                chain = Composer(*middleware)
            else:
                chain = Composer(middleware)
            await flatten(chain)(ctx, next)

        return self.use(build_and_run)

    def route(
        self,
        router: Callable[[Context], MaybeAwaitable[Any]],
        handlers: Mapping[Any, MiddlewareSpec],
        fallback: MiddlewareSpec | None = pass_through,
    ) -> Composer:
        """Dispatch each context to the handler registered under its route key."""

        async def select(ctx: Context) -> MiddlewareSpec:
            key = await maybe_await(router(ctx))
            if key is None or handlers.get(key) is None:
                return fallback if fallback is not None else []
            return handlers[key]

        return self.lazy(select)

    def fork(self, *middleware: Middleware) -> Composer:
        """Run *middleware* concurrently with the rest of the chain.

        Both sides share the context and are awaited jointly.  If one side
        fails the first failure is raised once both sides have settled.
        """
        composer = Composer(*middleware)
        forked = flatten(composer)

        async def join(ctx: Context, next: NextFn) -> None:
            failures: list[Exception] = []

            async def settle(step: Awaitable[Any]) -> None:
                try:
                    await step
                except Exception as e:
                    failures.append(e)

            await asyncio.gather(settle(next()), settle(run(forked, ctx)))
            if failures:
                for extra in failures[1:]:
                    logger.debug("Fork branch also failed: {!r}", extra)
                raise failures[0]

        self.use(join)
        return composer

    def error_boundary(self, handler: ErrorHandler, *middleware: Middleware) -> Composer:
        """Catch failures of *middleware* locally and hand them to *handler*.

        The chain resumes past the boundary only if the protected middleware
        (or *handler*, after a failure) calls its continuation.
        """
        composer = Composer(*middleware)
        bound = flatten(composer)

        async def guard(ctx: Context, next: NextFn) -> None:
            resume = False

            async def cont() -> None:
                nonlocal resume
                resume = True

            try:
                await bound(ctx, cont)
            except Exception as e:
                resume = False
                logger.debug("Error boundary caught {!r}", e)
                await maybe_await(handler(BotError(e, ctx), cont))
            if resume:
                await next()

        self.use(guard)
        return composer

    # ── Filter shortcuts ─────────────────────────────────────────────

    def on(self, query: FilterQuery | Sequence[FilterQuery], *middleware: Middleware) -> Composer:
        """Run *middleware* for updates matching the filter query (or any of them)."""
        return self.filter(has.filter_query(query), *middleware)

    def hears(self, trigger: Trigger | Sequence[Trigger], *middleware: Middleware) -> Composer:
        """Run *middleware* for messages whose text or caption matches *trigger*."""
        return self.filter(has.text(trigger), *middleware)

    def command(self, command: str | Sequence[str], *middleware: Middleware) -> Composer:
        """Run *middleware* for messages starting with one of the given commands."""
        return self.filter(has.command(command), *middleware)

    def reaction(self, reaction: Any, *middleware: Middleware) -> Composer:
        """Run *middleware* when one of the given reactions is newly added."""
        return self.filter(has.reaction(reaction), *middleware)

    def chat_type(self, chat_type: str | Sequence[str], *middleware: Middleware) -> Composer:
        return self.filter(has.chat_type(chat_type), *middleware)

    def callback_query(self, trigger: Trigger | Sequence[Trigger], *middleware: Middleware) -> Composer:
        return self.filter(has.callback_query(trigger), *middleware)

    def game_query(self, trigger: Trigger | Sequence[Trigger], *middleware: Middleware) -> Composer:
        return self.filter(has.game_query(trigger), *middleware)

    def inline_query(self, trigger: Trigger | Sequence[Trigger], *middleware: Middleware) -> Composer:
        return self.filter(has.inline_query(trigger), *middleware)

    def chosen_inline_result(
        self, result_id: Trigger | Sequence[Trigger], *middleware: Middleware
    ) -> Composer:
        return self.filter(has.chosen_inline_result(result_id), *middleware)

    def pre_checkout_query(self, trigger: Trigger | Sequence[Trigger], *middleware: Middleware) -> Composer:
        return self.filter(has.pre_checkout_query(trigger), *middleware)

    def shipping_query(self, trigger: Trigger | Sequence[Trigger], *middleware: Middleware) -> Composer:
        return self.filter(has.shipping_query(trigger), *middleware)


def _compose(middleware: Sequence[Middleware]) -> MiddlewareFn:
    if not middleware:
        return pass_through
    handler = flatten(middleware[0])
    for mw in middleware[1:]:
        handler = concat(handler, flatten(mw))
    return handler
