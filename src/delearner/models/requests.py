"""Data models for analysis requests and the generation call they become."""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from .files import CodeFile

# Sentinel language id: let the backend detect the language itself
AUTO_DETECT = "all"


class AnalysisMode(StrEnum):
    """Which of the three analyses a request asks for."""

    SINGLE_FILE = "single_file"
    PROJECT = "project"
    QUICK_RUN = "quick_run"


@dataclass(frozen=True)
class SingleFileRequest:
    """Full five-section analysis of one file."""

    content: str
    file_name: str
    language: str
    model: str

    mode = AnalysisMode.SINGLE_FILE


@dataclass(frozen=True)
class ProjectRequest:
    """Full analysis across every file of a project, in upload order."""

    files: tuple[CodeFile, ...]
    language: str
    model: str

    mode = AnalysisMode.PROJECT

    @property
    def file_names(self) -> list[str]:
        return [f.name for f in self.files]


@dataclass(frozen=True)
class QuickRunRequest:
    """Predicted output and Big-O complexity of one snippet."""

    content: str
    language: str
    model: str

    mode = AnalysisMode.QUICK_RUN


AnalysisRequest = SingleFileRequest | ProjectRequest | QuickRunRequest


@dataclass(frozen=True)
class GenerationRequest:
    """What a generation backend receives: prompt plus the schema its reply must satisfy."""

    model: str
    prompt_text: str
    response_schema: dict[str, Any]
    mode: AnalysisMode
    response_format: str = "json"
    # Filled in by the client for logging; backends may ignore it
    metadata: dict[str, Any] = field(default_factory=dict)
