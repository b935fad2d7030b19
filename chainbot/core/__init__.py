"""Middleware chain, composer and per-update context."""
