"""Core business logic components.

This module exports the main business logic classes:
- SessionCoordinator: Owns view state for one editing session
- CodeAssistant: Stateless analysis and patching surface
- AnalysisClient: Sends requests to a generation backend and validates replies
- Language resolution, prompt building, patching and folder ingestion helpers
"""

from delearner.core.assistant import (
    CodeAssistant,
    EmptyInputError,
    create_assistant,
)
from delearner.core.client import AnalysisClient
from delearner.core.coordinator import SessionCoordinator, create_session
from delearner.core.ingestion import PathFileHandle, load_directory, read_files
from delearner.core.languages import (
    SUPPORTED_LANGUAGES,
    LanguageMismatchError,
    check_language_match,
    detect_language,
    display_name,
    extension_for,
    rename_for_language,
    unique_name_for_language,
)
from delearner.core.patching import (
    LineOutOfRangeError,
    PatchError,
    PatchTarget,
    TargetNotFoundError,
    apply_patch,
    sanitize_snippet,
)
from delearner.core.prompts import (
    ANALYSIS_SCHEMA,
    SIMPLE_ANALYSIS_SCHEMA,
    build_generation_request,
)

__all__ = [
    "ANALYSIS_SCHEMA",
    "AnalysisClient",
    "CodeAssistant",
    "EmptyInputError",
    "LanguageMismatchError",
    "LineOutOfRangeError",
    "PatchError",
    "PatchTarget",
    "PathFileHandle",
    "SIMPLE_ANALYSIS_SCHEMA",
    "SUPPORTED_LANGUAGES",
    "SessionCoordinator",
    "TargetNotFoundError",
    "apply_patch",
    "build_generation_request",
    "check_language_match",
    "create_assistant",
    "create_session",
    "detect_language",
    "display_name",
    "extension_for",
    "load_directory",
    "read_files",
    "rename_for_language",
    "sanitize_snippet",
    "unique_name_for_language",
]
