"""Language resolution from file names, and back.

This module maps file extensions to language ids, checks a declared
language against the one a file name implies, and generates file names
when the user switches the declared language of the active file.
"""

from __future__ import annotations

import structlog

from delearner.models.files import FileStore
from delearner.models.requests import AUTO_DETECT
from delearner.utils.async_helpers import AssistantError
from delearner.utils.logging import LogEventNames

log = structlog.get_logger()

# Language ids offered to the user, with display names, in menu order
SUPPORTED_LANGUAGES: dict[str, str] = {
    AUTO_DETECT: "All Languages",
    "javascript": "JavaScript",
    "python": "Python",
    "typescript": "TypeScript",
    "java": "Java",
    "csharp": "C#",
    "go": "Go",
    "rust": "Rust",
    "cpp": "C++",
}

EXTENSION_TO_LANGUAGE: dict[str, str] = {
    "js": "javascript",
    "jsx": "javascript",
    "py": "python",
    "ts": "typescript",
    "tsx": "typescript",
    "java": "java",
    "cs": "csharp",
    "go": "go",
    "rs": "rust",
    "cpp": "cpp",
    "cxx": "cpp",
    "h": "cpp",
    "hpp": "cpp",
}

# Canonical extension used when a file is renamed to match a language
LANGUAGE_TO_EXTENSION: dict[str, str] = {
    "javascript": "js",
    "python": "py",
    "typescript": "ts",
    "java": "java",
    "csharp": "cs",
    "go": "go",
    "rust": "rs",
    "cpp": "cpp",
}

RENAME_STEM = "main"


class LanguageMismatchError(AssistantError):
    """The declared language disagrees with the active file's extension.

    Attributes:
        selected: Declared language id.
        detected: Language id implied by the file name.
    """

    def __init__(self, selected: str, detected: str) -> None:
        self.selected = selected
        self.detected = detected
        super().__init__(
            f"Language Mismatch: Selected language is '{display_name(selected)}', "
            f"but this appears to be a '{display_name(detected)}' file. "
            "Please switch the language or select 'All Languages'."
        )


def detect_language(file_name: str | None) -> str | None:
    """Return the language id for ``file_name``'s extension, or None.

    The extension is whatever follows the last dot, compared
    case-insensitively. Names without a dot have no extension.
    """
    if not file_name or "." not in file_name:
        return None
    extension = file_name.rsplit(".", 1)[1].lower()
    return EXTENSION_TO_LANGUAGE.get(extension)


def extension_for(language_id: str) -> str | None:
    """Return the canonical extension for a language id, or None."""
    return LANGUAGE_TO_EXTENSION.get(language_id)


def display_name(language_id: str) -> str:
    """Human-readable name for a language id; unknown ids are returned as-is."""
    return SUPPORTED_LANGUAGES.get(language_id, language_id)


def check_language_match(selected: str, file_name: str | None) -> None:
    """Refuse to proceed when the declared language contradicts the file name.

    Auto-detect never blocks, and neither does a file whose extension is
    unknown.

    Raises:
        LanguageMismatchError: If both languages are known and they differ.
    """
    if selected == AUTO_DETECT:
        return
    detected = detect_language(file_name)
    if detected is not None and detected != selected:
        raise LanguageMismatchError(selected, detected)


def unique_name_for_language(store: FileStore, active_name: str, language_id: str) -> str | None:
    """Pick ``main.<ext>``, then ``main-1.<ext>``, ``main-2.<ext>`` ... until free.

    Only names used by files other than ``active_name`` count as taken.

    Returns:
        The new name, or None if the language has no extension.
    """
    extension = extension_for(language_id)
    if extension is None:
        return None

    taken = {name for name in store.names if name != active_name}
    candidate = f"{RENAME_STEM}.{extension}"
    counter = 1
    while candidate in taken:
        candidate = f"{RENAME_STEM}-{counter}.{extension}"
        counter += 1
    return candidate


def rename_for_language(
    store: FileStore,
    active_name: str | None,
    language_id: str,
) -> tuple[FileStore, str | None]:
    """Rename the active file so its extension matches ``language_id``.

    Nothing changes for auto-detect, for a language without an extension, or
    when there is no active file.

    Returns:
        The (possibly new) store and the active file's (possibly new) name.
    """
    if language_id == AUTO_DETECT or active_name is None or active_name not in store:
        return store, active_name

    new_name = unique_name_for_language(store, active_name, language_id)
    if new_name is None:
        log.warning("rename_skipped_unknown_language", language=language_id, file_name=active_name)
        return store, active_name

    if new_name == active_name:
        return store, active_name

    log.info(LogEventNames.FILE_RENAMED, old_name=active_name, new_name=new_name, language=language_id)
    return store.rename(active_name, new_name), new_name
