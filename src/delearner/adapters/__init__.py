"""Concrete implementations of provider interfaces."""

from .llm.anthropic import AnthropicBackend

__all__ = [
    "AnthropicBackend",
]
