# src/logging/__init__.py — v1
"""Logger setup, formatters and log context."""
