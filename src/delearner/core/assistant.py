"""Headless surface of the code assistant.

CodeAssistant bundles the pre-flight checks, the analysis client and the
patch engine behind the five operations a front end needs. It holds no
session state; SessionCoordinator builds on it for that.
"""

from __future__ import annotations

from collections.abc import Iterable

import structlog

from delearner.config.loader import load_settings
from delearner.config.schema import DEFAULT_MODEL, AssistantConfig, Settings
from delearner.models.analysis import AnalysisResult, SimpleResult
from delearner.models.files import CodeFile, FileStore
from delearner.models.requests import (
    AnalysisRequest,
    ProjectRequest,
    QuickRunRequest,
    SingleFileRequest,
)
from delearner.utils.async_helpers import AssistantError
from delearner.utils.logging import LogEventNames
from delearner.utils.metrics import get_metrics

from . import languages
from .client import AnalysisClient
from .languages import LanguageMismatchError, check_language_match
from .patching import PatchTarget, apply_patch

log = structlog.get_logger()

EMPTY_FILE_MESSAGE = "The active file is empty."
NO_FILES_MESSAGE = "No files to analyze. Please upload a folder."


class EmptyInputError(AssistantError):
    """An action was requested with no file, or only blank content."""


def _reject(error: AssistantError, reason: str, **context: object) -> AssistantError:
    get_metrics().preflight_rejections.inc(labels={"reason": reason})
    log.info(LogEventNames.ANALYSIS_PREFLIGHT_REJECTED, reason=reason, message=str(error), **context)
    return error


class CodeAssistant:
    """Analysis and patching without session state.

    Pre-flight checks (empty input, language mismatch) run before any backend
    call and raise immediately. Backend problems raise AnalysisFailure.

    Example:
        assistant = create_assistant()
        result = await assistant.analyze_file(CodeFile("app.js", code), "javascript")
        store = assistant.apply_patch(store, "app.js", 3, result.review.errors[0].suggested_fix)
    """

    def __init__(self, client: AnalysisClient, default_model: str = DEFAULT_MODEL) -> None:
        """Initialize the assistant.

        Args:
            client: Analysis client bound to a generation backend
            default_model: Model used when a call does not name one
        """
        self._client = client
        self._default_model = default_model

    @property
    def client(self) -> AnalysisClient:
        return self._client

    @property
    def default_model(self) -> str:
        return self._default_model

    # ------------------------------------------------------------------
    # Request construction (pre-flight)
    # ------------------------------------------------------------------

    def file_request(
        self, file: CodeFile | None, language: str, model: str | None = None
    ) -> SingleFileRequest:
        """Validate a single-file analysis and build its request.

        Raises:
            EmptyInputError: If there is no file or it is blank
            LanguageMismatchError: If ``language`` contradicts the file name
        """
        if file is None or file.is_blank:
            raise _reject(EmptyInputError(EMPTY_FILE_MESSAGE), "empty_input")
        self._check_language(language, file.name)
        return SingleFileRequest(
            content=file.content,
            file_name=file.name,
            language=language,
            model=model or self._default_model,
        )

    def project_request(
        self, files: Iterable[CodeFile], language: str, model: str | None = None
    ) -> ProjectRequest:
        """Validate a project analysis and build its request.

        Raises:
            EmptyInputError: If there are no files
        """
        files = tuple(files)
        if not files:
            raise _reject(EmptyInputError(NO_FILES_MESSAGE), "no_files")
        return ProjectRequest(files=files, language=language, model=model or self._default_model)

    def quick_run_request(
        self,
        content: str,
        language: str,
        model: str | None = None,
        file_name: str | None = None,
    ) -> QuickRunRequest:
        """Validate a quick run and build its request.

        ``file_name`` is only used for the language check.

        Raises:
            EmptyInputError: If ``content`` is blank
            LanguageMismatchError: If ``language`` contradicts ``file_name``
        """
        if not content.strip():
            raise _reject(EmptyInputError(EMPTY_FILE_MESSAGE), "empty_input")
        self._check_language(language, file_name)
        return QuickRunRequest(content=content, language=language, model=model or self._default_model)

    def _check_language(self, language: str, file_name: str | None) -> None:
        try:
            check_language_match(language, file_name)
        except LanguageMismatchError as e:
            _reject(e, "language_mismatch", selected=e.selected, detected=e.detected)
            raise

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def run(self, request: AnalysisRequest) -> AnalysisResult | SimpleResult:
        """Send an already validated request to the backend."""
        return await self._client.run(request)

    async def analyze_file(
        self, file: CodeFile, language: str, model: str | None = None
    ) -> AnalysisResult:
        """Full analysis of one file.

        Raises:
            EmptyInputError: If the file is blank
            LanguageMismatchError: If ``language`` contradicts the file name
            AnalysisFailure: If the backend call fails
        """
        return await self._client.run(self.file_request(file, language, model))

    async def analyze_project(
        self, files: Iterable[CodeFile], language: str, model: str | None = None
    ) -> AnalysisResult:
        """Full analysis across several files.

        Raises:
            EmptyInputError: If there are no files
            AnalysisFailure: If the backend call fails
        """
        return await self._client.run(self.project_request(files, language, model))

    async def quick_run(
        self,
        content: str,
        language: str,
        model: str | None = None,
        file_name: str | None = None,
    ) -> SimpleResult:
        """Predicted output and complexity of a snippet.

        Raises:
            EmptyInputError: If ``content`` is blank
            LanguageMismatchError: If ``language`` contradicts ``file_name``
            AnalysisFailure: If the backend call fails
        """
        return await self._client.run(self.quick_run_request(content, language, model, file_name))

    def apply_patch(
        self, store: FileStore, file_name: str, line_number: int, snippet: str
    ) -> FileStore:
        """Replace one line of ``file_name`` with ``snippet``.

        Raises:
            TargetNotFoundError: If the file is not in the store
            LineOutOfRangeError: If the line does not exist
        """
        return apply_patch(store, PatchTarget(file_name, line_number, snippet))

    def rename_for_language(
        self, store: FileStore, active_file: str | None, new_language: str
    ) -> tuple[FileStore, str | None]:
        """Rename the active file to match ``new_language``'s extension."""
        return languages.rename_for_language(store, active_file, new_language)


def create_assistant(
    config: AssistantConfig | None = None,
    settings: Settings | None = None,
) -> CodeAssistant:
    """Factory function to create a CodeAssistant with its backend.

    The API key is read here, so a missing key fails at start-up rather than
    on the first analysis.

    Args:
        config: Application configuration (defaults when None)
        settings: Secrets; read from the environment when None

    Returns:
        Configured CodeAssistant

    Raises:
        ConfigurationError: If the API key is not set
        ValueError: If the backend provider is not supported
    """
    config = config or AssistantConfig()
    settings = settings or load_settings()

    provider = config.backend.provider
    if provider == "anthropic":
        from delearner.adapters.llm.anthropic import AnthropicBackend

        backend = AnthropicBackend(config.backend.anthropic, settings.api_key.get_secret_value())
    else:
        raise ValueError(f"Unsupported backend provider: {provider}")

    return CodeAssistant(AnalysisClient(backend), default_model=config.session.default_model)
