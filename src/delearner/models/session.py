"""Data models for the state of one editing session."""

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from .analysis import AnalysisResult, DebuggerStep, SimpleResult
from .files import CodeFile, FileStore


class AnalysisStatus(StrEnum):
    """Lifecycle of a full analysis."""

    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


class RunStatus(StrEnum):
    """Lifecycle of a quick run."""

    IDLE = "idle"
    RUNNING = "running"
    READY = "ready"
    FAILED = "failed"


class Tab(StrEnum):
    """Result tabs, in display order."""

    REVIEW = "review"
    DEBUGGER = "debugger"
    PERFORMANCE = "performance"
    TEST_CASES = "test_cases"
    SOLUTIONS = "solutions"


@dataclass(frozen=True)
class Highlight:
    """A line to draw attention to in the editor."""

    file_name: str
    line_number: int


def tab_is_enabled(tab: Tab, result: AnalysisResult | None) -> bool:
    """A tab is selectable only when its section of the result has content."""
    if result is None:
        return False
    section = {
        Tab.REVIEW: result.review,
        Tab.DEBUGGER: result.debugger_trace,
        Tab.PERFORMANCE: result.performance_profile,
        Tab.TEST_CASES: result.test_cases,
        Tab.SOLUTIONS: result.alternative_solutions,
    }[tab]
    return not section.is_empty


@dataclass(frozen=True)
class SessionState:
    """Snapshot of everything the view renders.

    The coordinator replaces its state wholesale on every change; a snapshot
    handed out earlier never changes underneath its holder.
    """

    files: FileStore
    active_file: str | None
    language: str
    model: str
    status: AnalysisStatus = AnalysisStatus.IDLE
    result: AnalysisResult | None = None
    analysis_title: str | None = None
    error: str | None = None
    active_tab: Tab = Tab.REVIEW
    debugger_step: int = 0
    highlight: Highlight | None = None
    run_status: RunStatus = RunStatus.IDLE
    run_result: SimpleResult | None = None
    run_error: str | None = None

    @property
    def active(self) -> CodeFile | None:
        """The active file, if any."""
        if self.active_file is None:
            return None
        return self.files.get(self.active_file)

    @property
    def enabled_tabs(self) -> list[Tab]:
        return [tab for tab in Tab if tab_is_enabled(tab, self.result)]

    @property
    def current_step(self) -> DebuggerStep | None:
        """The debugger step under the cursor."""
        if self.result is None or not self.result.debugger_trace.steps:
            return None
        return self.result.debugger_trace.steps[self.debugger_step]

    @property
    def debugger_location(self) -> Highlight | None:
        """Where the editor should point while the debugger tab is open."""
        step = self.current_step
        if self.active_tab is not Tab.DEBUGGER or step is None:
            return None
        return Highlight(step.file_path or self.active_file or "", step.line_number)

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready view of the session, camelCase like the wire format."""

        def location(h: Highlight | None) -> dict[str, Any] | None:
            if h is None:
                return None
            return {"fileName": h.file_name, "lineNumber": h.line_number}

        return {
            "files": [{"name": f.name, "content": f.content} for f in self.files],
            "activeFile": self.active_file,
            "language": self.language,
            "model": self.model,
            "status": str(self.status),
            "result": (
                self.result.model_dump(mode="json", by_alias=True) if self.result else None
            ),
            "analysisTitle": self.analysis_title,
            "error": self.error,
            "activeTab": str(self.active_tab),
            "enabledTabs": [str(t) for t in self.enabled_tabs],
            "debuggerStep": self.debugger_step,
            "debuggerLocation": location(self.debugger_location),
            "highlight": location(self.highlight),
            "quickRun": {
                "status": str(self.run_status),
                "result": (
                    self.run_result.model_dump(mode="json", by_alias=True)
                    if self.run_result
                    else None
                ),
                "error": self.run_error,
            },
        }
