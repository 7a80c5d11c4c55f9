# src/tracking/__init__.py — v1
"""Per-step execution records."""
