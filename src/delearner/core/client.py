"""Analysis client: one request in, one validated result out.

The client builds the prompt and schema for a request, hands them to a
generation backend, parses the reply and validates it into typed models.
Every way this can go wrong surfaces as the same ``AnalysisFailure`` with a
fixed, user-presentable message; the real cause is chained and logged.

The client never retries. Callers that want retries opt in with
``delearner.utils.async_helpers.create_retry``.
"""

from __future__ import annotations

import json
from typing import overload

import structlog
from pydantic import ValidationError

from delearner.interfaces.llm import GenerationBackend
from delearner.models.analysis import AnalysisResult, SimpleResult
from delearner.models.requests import (
    AnalysisRequest,
    ProjectRequest,
    QuickRunRequest,
    SingleFileRequest,
)
from delearner.utils.async_helpers import AnalysisFailure
from delearner.utils.logging import LogEventNames
from delearner.utils.metrics import Timer, get_metrics
from delearner.utils.security import sanitize_for_logging

from .prompts import build_generation_request

log = structlog.get_logger()


class AnalysisClient:
    """Sends analysis requests to a generation backend.

    Example:
        client = AnalysisClient(AnthropicBackend(config, api_key))
        result = await client.run(SingleFileRequest(code, "app.js", "javascript", model))
        for error in result.review.errors:
            print(error.line_number, error.error_description)
    """

    def __init__(self, backend: GenerationBackend) -> None:
        """Initialize the client.

        Args:
            backend: Generation backend that performs the actual call
        """
        self._backend = backend

    @property
    def backend(self) -> GenerationBackend:
        return self._backend

    @overload
    async def run(self, request: QuickRunRequest) -> SimpleResult: ...

    @overload
    async def run(self, request: SingleFileRequest | ProjectRequest) -> AnalysisResult: ...

    async def run(self, request: AnalysisRequest) -> AnalysisResult | SimpleResult:
        """Run one analysis.

        Args:
            request: Single-file, project, or quick-run request

        Returns:
            AnalysisResult for the full modes, SimpleResult for quick-run.
            Every finding in an AnalysisResult carries a file path naming a
            file that was part of the request.

        Raises:
            AnalysisFailure: If the backend call fails or its reply is not a
                valid document for the request's schema
        """
        metrics = get_metrics()
        mode = str(request.mode)
        generation_request = build_generation_request(request)

        metrics.analysis_requests.inc(labels={"mode": mode, "backend": self._backend.name})
        log.info(
            LogEventNames.ANALYSIS_REQUEST_START,
            mode=mode,
            model=request.model,
            language=request.language,
            backend=self._backend.name,
        )

        timer = Timer(metrics.analysis_duration, labels={"mode": mode})
        try:
            with timer:
                payload = await self._backend.generate(generation_request)
            result = self._parse(request, payload)
        except AnalysisFailure:
            metrics.analysis_failures.inc(labels={"mode": mode, "stage": "response"})
            raise
        except Exception as e:
            metrics.analysis_failures.inc(labels={"mode": mode, "stage": "backend"})
            log.error(
                LogEventNames.BACKEND_CALL_ERROR,
                mode=mode,
                backend=self._backend.name,
                error_type=type(e).__name__,
                error=sanitize_for_logging(str(e)),
            )
            raise AnalysisFailure() from e

        log.info(
            LogEventNames.ANALYSIS_REQUEST_COMPLETE,
            mode=mode,
            duration_seconds=timer.elapsed,
        )
        return result

    def _parse(self, request: AnalysisRequest, payload: str) -> AnalysisResult | SimpleResult:
        """Parse and validate a reply for ``request``'s mode."""
        mode = str(request.mode)
        text = payload.strip()

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            log.error(
                LogEventNames.RESPONSE_PARSE_ERROR,
                mode=mode,
                error=str(e),
                payload_chars=len(text),
            )
            raise AnalysisFailure() from e

        try:
            if isinstance(request, QuickRunRequest):
                return SimpleResult.from_response(data)
            result = AnalysisResult.from_response(data)
        except ValidationError as e:
            log.error(
                LogEventNames.RESPONSE_VALIDATION_ERROR,
                mode=mode,
                error_count=e.error_count(),
                errors=[
                    {"loc": ".".join(str(p) for p in err["loc"]), "type": err["type"]}
                    for err in e.errors()[:10]
                ],
            )
            raise AnalysisFailure() from e

        return self._resolve_paths(request, result)

    def _resolve_paths(self, request: AnalysisRequest, result: AnalysisResult) -> AnalysisResult:
        """Pin every finding to a file that was part of the request."""
        if isinstance(request, SingleFileRequest):
            resolved, dropped = result.resolve_file_paths(
                [request.file_name], sole_file=request.file_name
            )
        else:
            assert isinstance(request, ProjectRequest)
            resolved, dropped = result.resolve_file_paths(request.file_names)

        if dropped:
            get_metrics().findings_dropped.inc(dropped)
            log.warning(
                LogEventNames.FINDING_DROPPED,
                mode=str(request.mode),
                dropped=dropped,
                known_files=len(request.file_names) if isinstance(request, ProjectRequest) else 1,
            )
        return resolved
