# src/pipeline/__init__.py — v1
"""Step registry, state machine, executor and runner."""
