"""Dispatch root wiring the composer to incoming updates."""
