# src/__init__.py — v1
"""genflow: resumable multi-step content generation engine."""
