# src/cache/__init__.py — v1
"""Two-tier response cache."""
