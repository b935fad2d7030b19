"""Middleware chain primitives.

A middleware is a callable taking ``(ctx, next)``, usually async.  A plain
function works too; its return value is awaited only if it is awaitable.
It may:

1. Modify ``ctx`` and ``await next()`` -- **pass through**.
2. Return without calling ``next`` -- **handle and stop**.
3. ``await next()`` and then inspect ``ctx`` -- **post-process**.

Containers (anything with a ``middleware()`` accessor, such as
:class:`~chainbot.core.composer.Composer`) are accepted wherever a middleware
function is, and :func:`flatten` normalizes both forms.  :func:`concat` is the
only way two links are joined; it guards the continuation so that a middleware
cannot run the rest of the chain twice.

Usage::

    chain = concat(flatten(logger_mw), flatten(handler_mw))
    await run(chain, ctx)
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable
from typing import Any, Protocol, TypeAlias, TypeVar, runtime_checkable

from chainbot.core.errors import NextCalledTwiceError

T = TypeVar("T")

NextFn = Callable[[], Awaitable[None]]
"""Signature for the ``next`` continuation passed to each middleware."""

MiddlewareFn = Callable[[Any, NextFn], Awaitable[Any] | Any]
"""Middleware in plain function form."""


@runtime_checkable
class MiddlewareObj(Protocol):
    """Container exposing a middleware function through an accessor."""

    def middleware(self) -> MiddlewareFn: ...


Middleware: TypeAlias = MiddlewareFn | MiddlewareObj


def flatten(mw: Middleware) -> MiddlewareFn:
    """Normalize *mw* to plain function form.

    For containers the accessor is called once, here, so containers can
    precompute their chain.
    """
    if isinstance(mw, MiddlewareObj):
        return mw.middleware()
    if not callable(mw):
        raise TypeError(f"Expected middleware, got {type(mw).__name__}")
    return mw


def concat(first: MiddlewareFn, second: MiddlewareFn) -> MiddlewareFn:
    """Join two links: *second* becomes the continuation of *first*."""

    async def composed(ctx: Any, next: NextFn) -> None:
        called = False

        def proceed() -> Awaitable[Any]:
            nonlocal called
            # Check-and-set happens before any suspension point.
            if called:
                raise NextCalledTwiceError()
            called = True
            return maybe_await(second(ctx, next))

        await maybe_await(first(ctx, proceed))

    return composed


def pass_through(ctx: Any, next: NextFn) -> Awaitable[None]:
    """Middleware that always continues; identity of :func:`concat`."""
    return next()


async def leaf() -> None:
    """Terminal continuation at the bottom of every chain."""
    return None


async def run(middleware: MiddlewareFn, ctx: Any) -> None:
    """Drive *middleware* to completion for one context."""
    await maybe_await(middleware(ctx, leaf))


async def maybe_await(value: T | Awaitable[T]) -> T:
    """Resolve *value* if it is awaitable, otherwise return it unchanged."""
    if inspect.isawaitable(value):
        return await value
    return value
