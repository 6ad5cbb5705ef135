"""Data models and transfer objects."""

from .analysis import (
    AlternativeSolutions,
    AnalysisResult,
    Bottleneck,
    CodeError,
    CodeSuggestion,
    Complexity,
    DebuggerState,
    DebuggerStep,
    DebuggerTrace,
    DebuggerVariable,
    Optimization,
    PerformanceProfile,
    Review,
    SimpleResult,
    Solution,
    TestCase,
    TestCases,
)
from .files import CodeFile, DuplicateFileError, FileStore
from .requests import (
    AUTO_DETECT,
    AnalysisMode,
    AnalysisRequest,
    GenerationRequest,
    ProjectRequest,
    QuickRunRequest,
    SingleFileRequest,
)
from .session import AnalysisStatus, Highlight, RunStatus, SessionState, Tab

__all__ = [
    # File models
    "CodeFile",
    "FileStore",
    "DuplicateFileError",
    # Request models
    "AUTO_DETECT",
    "AnalysisMode",
    "AnalysisRequest",
    "SingleFileRequest",
    "ProjectRequest",
    "QuickRunRequest",
    "GenerationRequest",
    # Result models
    "AnalysisResult",
    "Review",
    "CodeError",
    "CodeSuggestion",
    "DebuggerTrace",
    "DebuggerStep",
    "DebuggerState",
    "DebuggerVariable",
    "PerformanceProfile",
    "Bottleneck",
    "Optimization",
    "TestCases",
    "TestCase",
    "AlternativeSolutions",
    "Solution",
    "Complexity",
    "SimpleResult",
    # Session models
    "SessionState",
    "AnalysisStatus",
    "RunStatus",
    "Tab",
    "Highlight",
]
