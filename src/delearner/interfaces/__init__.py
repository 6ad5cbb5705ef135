"""Abstract interfaces for pluggable adapters."""

from .llm import GenerationBackend

__all__ = ["GenerationBackend"]
