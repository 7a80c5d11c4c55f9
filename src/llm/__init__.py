# src/llm/__init__.py — v1
"""Generation backend interface, error kinds and retry policy."""
