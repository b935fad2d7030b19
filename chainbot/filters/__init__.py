"""Filter-query language: schema tables and the predicate compiler."""

from chainbot.filters.query import FilterQuery, expand, match_filter, parse, preprocess

__all__ = ["FilterQuery", "expand", "match_filter", "parse", "preprocess"]
