# src/storage/__init__.py — v1
"""Checkpoint persistence and project state layout."""
