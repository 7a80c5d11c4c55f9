# src/quality/__init__.py — v1
"""Quality gate and review/fix loops."""
