# src/llm/base_client.py — v1
"""Abstract generation backend interface.

The engine only needs ``async generate(prompt, options) -> str``. Concrete
backends (model, credentials, streaming) live outside this package.
"""

from __future__ import annotations

import inspect
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Union

from genflow.llm.models import GenerationOptions

GenerateFn = Callable[[str, GenerationOptions], Awaitable[str]]


class BaseGenerator(ABC):
    """Unified interface for text generation backends."""

    @abstractmethod
    async def generate(self, prompt: str, options: GenerationOptions) -> str:
        """Generate text for ``prompt``.

        Raises:
            GenerationError: With an explicit kind where the backend knows it.
        """

    @property
    def name(self) -> str:
        """Backend identifier used in logs."""
        return type(self).__name__


class CallableGenerator(BaseGenerator):
    """Adapt a plain coroutine function to the BaseGenerator interface."""

    def __init__(self, fn: GenerateFn, name: str | None = None) -> None:
        if not callable(fn):
            raise TypeError("generator function must be callable")
        self._fn = fn
        self._name = name or getattr(fn, "__name__", "callable")

    async def generate(self, prompt: str, options: GenerationOptions) -> str:
        result = self._fn(prompt, options)
        if inspect.isawaitable(result):
            result = await result
        return result

    @property
    def name(self) -> str:
        return self._name


GeneratorLike = Union[BaseGenerator, GenerateFn]


def as_generator(generator: GeneratorLike) -> BaseGenerator:
    """Return ``generator`` as a BaseGenerator, wrapping plain callables."""
    if isinstance(generator, BaseGenerator):
        return generator
    if hasattr(generator, "generate") and callable(generator.generate):
        return CallableGenerator(generator.generate, name=type(generator).__name__)
    return CallableGenerator(generator)
