# src/api/__init__.py — v1
"""Public API facade."""
