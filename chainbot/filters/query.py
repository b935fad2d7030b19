"""Filter-query compiler.

A filter query has the form ``L1[:L2[:L3]]``, for example ``message``,
``message:text`` or ``message:entities:url``.  Empty levels and a few
shortcut tokens expand to several concrete queries::

    ":text"      -> message:text, channel_post:text
    "::url"      -> message:entities:url, message:caption_entities:url, ...
    "edit:media" -> edited_message:photo, edited_message:video, ...

All parsing and validation happens once, in :func:`match_filter`; the
returned predicate only performs key lookups on the update.

Usage::

    is_url_message = match_filter(["message::url", "channel_post::url"])
    if is_url_message(ctx):
        ...
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from functools import reduce
from typing import TYPE_CHECKING, Any, TypeAlias

from chainbot.core.errors import FilterQueryError
from chainbot.filters.schema import L1_SHORTCUTS, L2_SHORTCUTS, UPDATE_KEYS

if TYPE_CHECKING:
    from chainbot.core.context import Context

FilterQuery: TypeAlias = str
Parts: TypeAlias = list[str | None]
Predicate: TypeAlias = Callable[["Context"], bool]
_Test: TypeAlias = Callable[[Any, "Context"], Any]

_cache: dict[tuple[str, ...], Predicate] = {}


def match_filter(query: FilterQuery | Sequence[FilterQuery]) -> Predicate:
    """Compile *query* (or a list of queries, OR-combined) into a predicate.

    Compiled predicates are cached by the exact query list.

    Raises:
        FilterQueryError: If any query is malformed or unknown.
    """
    queries = _as_list(query)
    key = tuple(queries)
    predicate = _cache.get(key)
    if predicate is None:
        predicate = compile_query(parse(queries))
        _cache[key] = predicate
    return predicate


def parse(query: FilterQuery | Sequence[FilterQuery]) -> list[list[str]]:
    """Split each query into its level tokens."""
    return [q.split(":") for q in _as_list(query)]


def expand(query: FilterQuery | Sequence[FilterQuery]) -> list[str]:
    """Return the validated concrete queries that *query* stands for."""
    return [_join(parts) for q in parse(query) for parts in check(q, preprocess(q))]


def compile_query(parsed: list[list[str]]) -> Predicate:
    """Validate parsed queries and build one predicate over a context."""
    concrete = [parts for q in parsed for parts in check(q, preprocess(q))]
    test = _arborist(_treeify(concrete))

    def predicate(ctx: "Context") -> bool:
        return bool(test(ctx.update, ctx))

    return predicate


def preprocess(query: Sequence[str]) -> list[Parts]:
    """Expand shortcut tokens in one parsed query.

    The result may still contain invalid queries; :func:`check` rejects them.
    """
    parts: Parts = list(query)
    l1, l2, l3, rest = _split(parts)
    if l1 not in L1_SHORTCUTS or (not l1 and not l2 and not l3):
        l1_expanded = [parts]
    else:
        candidates: list[Parts] = [[target, l2, l3, *rest] for target in L1_SHORTCUTS[l1]]
        if l2 is None or (l2 in L2_SHORTCUTS and (l2 or l3)):
            l1_expanded = candidates
        else:
            l1_expanded = [c for c in candidates if l2 in UPDATE_KEYS.get(c[0] or "", {})]

    expanded: list[Parts] = []
    for parts in l1_expanded:
        l1, l2, l3, rest = _split(parts)
        if l2 not in L2_SHORTCUTS or (not l2 and not l3):
            expanded.append(parts)
            continue
        candidates = [[l1, target, l3, *rest] for target in L2_SHORTCUTS[l2]]
        if l3 is None:
            expanded.extend(candidates)
        else:
            expanded.extend(
                c for c in candidates if l3 in UPDATE_KEYS.get(l1 or "", {}).get(c[1], {})
            )

    if not expanded:
        raise FilterQueryError(
            f"Shortcuts in '{':'.join(query)}' do not expand to any valid filter query"
        )
    return [_trim(parts) for parts in expanded]


def check(original: Sequence[str], preprocessed: list[Parts]) -> list[Parts]:
    """Validate expanded queries against the known update shapes."""
    if not preprocessed:
        raise FilterQueryError("Empty filter query given")
    errors = [err for err in map(_check_one, preprocessed) if err is not None]
    if not errors:
        return preprocessed
    if len(errors) == 1:
        raise FilterQueryError(errors[0])
    raise FilterQueryError(
        f"Invalid filter query '{':'.join(original)}'. There are {len(errors)} errors "
        f"after expanding the contained shortcuts: {'; '.join(errors)}"
    )


def _check_one(parts: Parts) -> str | None:
    if not parts or parts[0] is None:
        return "Empty filter query given"
    l1, l2, l3, rest = _split(parts)
    query = _join(parts)
    if l1 not in UPDATE_KEYS:
        return f"Invalid L1 filter '{l1}' given in '{query}'. Permitted values are: {_quoted(UPDATE_KEYS)}."
    if l2 is None:
        return None
    l1_keys = UPDATE_KEYS[l1]
    if l2 not in l1_keys:
        return f"Invalid L2 filter '{l2}' given in '{query}'. Permitted values are: {_quoted(l1_keys)}."
    if l3 is None:
        return None
    l2_keys = l1_keys[l2]
    if l3 not in l2_keys:
        if not l2_keys:
            hint = f"No further filtering is possible after '{l1}:{l2}'."
        else:
            hint = f"Permitted values are: {_quoted(l2_keys)}."
        return f"Invalid L3 filter '{l3}' given in '{query}'. {hint}"
    if not rest:
        return None
    return f"Cannot filter further than three levels, ':{':'.join(rest)}' is invalid!"


# ── Predicate construction ───────────────────────────────────────────


def _treeify(paths: list[Parts]) -> dict[str, dict[str, dict[str, None]]]:
    tree: dict[str, dict[str, dict[str, None]]] = {}
    for parts in paths:
        l1, l2, l3, _ = _split(parts)
        subtree = tree.setdefault(l1 or "", {})
        if l2 is not None:
            names = subtree.setdefault(l2, {})
            if l3 is not None:
                names[l3] = None
    return tree


def _arborist(tree: dict[str, dict[str, dict[str, None]]]) -> _Test:
    l1_tests = []
    for l1, subtree in tree.items():
        l2_tests = []
        for l2, names in subtree.items():
            l3_tests = [_discriminator(l3) for l3 in names]
            if l3_tests:
                l2_tests.append(_then(_field(l2), reduce(_or, l3_tests)))
            else:
                l2_tests.append(_present(_field(l2)))
        if l2_tests:
            l1_tests.append(_then(_field(l1), reduce(_or, l2_tests)))
        else:
            l1_tests.append(_present(_field(l1)))
    if not l1_tests:
        raise FilterQueryError("Cannot create filter function for empty query")
    return reduce(_or, l1_tests)


def _field(name: str) -> _Test:
    def get(obj: Any, ctx: "Context") -> Any:
        return _get(obj, name)

    return get


def _discriminator(name: str) -> _Test:
    if name == "me":

        def is_me(obj: Any, ctx: "Context") -> bool:
            me = ctx.me.id
            return _any(obj, lambda user: _get(user, "id") == me)

        return is_me

    def has_tag(obj: Any, ctx: "Context") -> bool:
        return _any(obj, lambda item: bool(_get(item, name)) or _get(item, "type") == name)

    return has_tag


def _or(left: _Test, right: _Test) -> _Test:
    def either(obj: Any, ctx: "Context") -> Any:
        return left(obj, ctx) or right(obj, ctx)

    return either


def _then(get: _Test, test: _Test) -> _Test:
    def chained(obj: Any, ctx: "Context") -> Any:
        value = get(obj, ctx)
        return value and test(value, ctx)

    return chained


def _present(get: _Test) -> _Test:
    def present(obj: Any, ctx: "Context") -> bool:
        return get(obj, ctx) is not None

    return present


def _any(value: Any, test: Callable[[Any], bool]) -> bool:
    if isinstance(value, (list, tuple)):
        return any(item is not None and test(item) for item in value)
    return value is not None and test(value)


def _get(obj: Any, key: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(key)
    return getattr(obj, key, None)


# ── Token helpers ────────────────────────────────────────────────────


def _as_list(query: FilterQuery | Sequence[FilterQuery]) -> list[str]:
    if isinstance(query, str):
        return [query]
    return list(query)


def _split(parts: Parts) -> tuple[str | None, str | None, str | None, list[str]]:
    padded = list(parts) + [None] * (3 - len(parts))
    rest = [p for p in padded[3:] if p is not None]
    return padded[0], padded[1], padded[2], rest


def _trim(parts: Parts) -> Parts:
    trimmed = list(parts)
    while trimmed and trimmed[-1] is None:
        trimmed.pop()
    return trimmed


def _join(parts: Parts) -> str:
    return ":".join(p for p in _trim(parts) if p is not None)


def _quoted(keys: Mapping[str, Any]) -> str:
    return ", ".join(f"'{k}'" for k in keys)
