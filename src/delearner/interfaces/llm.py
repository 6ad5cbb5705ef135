"""Abstract interface for generation backends."""

from typing import Protocol

from ..models.requests import GenerationRequest


class GenerationBackend(Protocol):
    """Abstract interface for schema-constrained text generation.

    This protocol defines the contract that every provider adapter must
    implement. The analysis client owns prompt construction, parsing and
    validation; a backend only moves a prompt to the provider and hands the
    reply back as text.
    """

    @property
    def name(self) -> str:
        """Short provider name used in logs and metrics (e.g. ``"anthropic"``)."""
        ...

    async def generate(self, request: GenerationRequest) -> str:
        """
        Run one generation call.

        The reply must be a single JSON document satisfying
        ``request.response_schema``. The backend does not parse or validate it.

        Args:
            request: Model, prompt text and response schema

        Returns:
            The raw textual payload

        Raises:
            Exception: Any transport or provider failure. The analysis client
                maps every exception to AnalysisFailure.
        """
        ...
