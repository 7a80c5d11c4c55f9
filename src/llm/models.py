# src/llm/models.py — v1
"""Generation request options passed to every backend call."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class GenerationOptions(BaseModel):
    """Per-call generation options. Backends ignore fields they do not support."""

    system: str | None = None
    max_tokens: int = 4096
    temperature: float = 0.7
    step_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
