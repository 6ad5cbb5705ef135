"""Session coordinator: the single owner of view state.

The coordinator holds one immutable SessionState and replaces it on every
change. It runs pre-flight checks, moves analyses through
idle -> loading -> ready/failed, applies patches to the file store and the
result together, drives the debugger cursor and tab selection, and owns the
timer that clears a patch highlight.

Responses are single-flight per action family: each analysis (and each
quick run) takes a token, and a reply whose token is no longer the latest
is dropped instead of overwriting newer state.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import replace
from typing import Any

import structlog

from delearner.config.schema import AssistantConfig, RetryConfig, SessionConfig, Settings
from delearner.models.analysis import AnalysisResult, SimpleResult
from delearner.models.files import CodeFile, FileStore
from delearner.models.requests import AUTO_DETECT, AnalysisRequest
from delearner.models.session import (
    AnalysisStatus,
    Highlight,
    RunStatus,
    SessionState,
    Tab,
    tab_is_enabled,
)
from delearner.utils.async_helpers import (
    AnalysisFailure,
    DelayedCall,
    RequestSequencer,
    create_retry,
)
from delearner.utils.logging import LogEventNames
from delearner.utils.metrics import get_metrics

from .assistant import CodeAssistant, EmptyInputError, create_assistant
from .ingestion import FileHandle, read_files
from .languages import SUPPORTED_LANGUAGES, LanguageMismatchError, detect_language
from .patching import PatchError, PatchTarget, apply_patch

log = structlog.get_logger()

DEFAULT_FILE_NAME = "fibonacci.js"
DEFAULT_FILE_CONTENT = """\
function fibonacci(n) {
  if (n <= 1) return n;
  return fibonacci(n - 1) + fibonacci(n - 2);
}

// Analyze for n=4 for a shorter trace
console.log(fibonacci(4));"""

PROJECT_TITLE = "Project-Wide Analysis"

StateListener = Callable[[SessionState], Any]


def default_store() -> FileStore:
    """The store a new session starts with."""
    return FileStore([CodeFile(DEFAULT_FILE_NAME, DEFAULT_FILE_CONTENT)])


def file_title(file_name: str) -> str:
    return f"Analysis for: {file_name}"


class SessionCoordinator:
    """Owns the state of one editing session.

    Every public method leaves ``state`` consistent; listeners see each new
    snapshot. Patch and highlight methods schedule a timer and must be called
    from inside the running event loop.

    Example:
        session = SessionCoordinator(assistant)
        await session.analyze_file()
        if session.state.result:
            error = session.state.result.review.errors[0]
            session.apply_fix(error.line_number, error.suggested_fix, error.file_path)
    """

    def __init__(
        self,
        assistant: CodeAssistant,
        config: SessionConfig | None = None,
        retry: RetryConfig | None = None,
        files: FileStore | None = None,
    ) -> None:
        """Initialize the coordinator.

        Args:
            assistant: Pre-flight checks and backend access
            config: Session defaults (model, language, highlight duration)
            retry: Opt-in retry for failed backend calls; one attempt by default
            files: Initial store; the fibonacci.js sample when None
        """
        self._assistant = assistant
        self._config = config or SessionConfig()
        self._retry = retry or RetryConfig()

        store = files if files is not None else default_store()
        first = store.first
        self._state = SessionState(
            files=store,
            active_file=first.name if first else None,
            language=self._config.default_language,
            model=self._config.default_model,
        )

        self._analysis_tokens = RequestSequencer()
        self._run_tokens = RequestSequencer()
        self._pending_clear: DelayedCall | None = None
        self._listeners: list[StateListener] = []

    @property
    def state(self) -> SessionState:
        """Current snapshot."""
        return self._state

    @property
    def highlight_pending(self) -> bool:
        """True while a highlight is waiting to be auto-cleared."""
        return self._pending_clear is not None and self._pending_clear.pending

    def add_listener(self, listener: StateListener) -> Callable[[], None]:
        """Call ``listener`` with every new state. Returns a function that unsubscribes."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _update(self, **changes: Any) -> SessionState:
        self._state = replace(self._state, **changes)
        for listener in list(self._listeners):
            listener(self._state)
        return self._state

    @staticmethod
    def _cleared_analysis() -> dict[str, Any]:
        return {
            "status": AnalysisStatus.IDLE,
            "result": None,
            "analysis_title": None,
            "error": None,
            "highlight": None,
            "debugger_step": 0,
            "active_tab": Tab.REVIEW,
        }

    def _cancel_highlight_timer(self) -> None:
        if self._pending_clear is not None:
            self._pending_clear.cancel()
            self._pending_clear = None

    # ------------------------------------------------------------------
    # Files and settings
    # ------------------------------------------------------------------

    def select_file(self, name: str) -> SessionState:
        """Make ``name`` active, discard analysis state and re-detect the language.

        Raises:
            KeyError: If no file has that name
        """
        if name not in self._state.files:
            raise KeyError(name)

        self._analysis_tokens.invalidate()
        self._run_tokens.invalidate()
        self._cancel_highlight_timer()

        log.info(LogEventNames.FILE_SELECTED, file_name=name)
        return self._update(
            **self._cleared_analysis(),
            active_file=name,
            language=detect_language(name) or AUTO_DETECT,
            run_status=RunStatus.IDLE,
            run_result=None,
            run_error=None,
        )

    def update_content(self, content: str) -> SessionState:
        """Replace the active file's content (an editor keystroke). No-op without an active file."""
        active = self._state.active_file
        if active is None or active not in self._state.files:
            return self._state
        return self._update(files=self._state.files.with_content(active, content))

    def change_language(self, language: str) -> SessionState:
        """Declare a new language and rename the active file to match it.

        Raises:
            ValueError: If the language id is not supported
        """
        if language not in SUPPORTED_LANGUAGES:
            raise ValueError(f"Unsupported language: {language}")

        files, active = self._assistant.rename_for_language(
            self._state.files, self._state.active_file, language
        )
        return self._update(language=language, files=files, active_file=active)

    def change_model(self, model: str) -> SessionState:
        return self._update(model=model)

    async def replace_files(self, handles: Iterable[FileHandle]) -> SessionState:
        """Swap in an uploaded folder.

        All files are read before anything changes. If any read fails the
        current store stays and IngestionError propagates. An empty upload is
        ignored. On success the first file becomes active, analysis state is
        cleared and the language switches to auto-detect.

        Raises:
            IngestionError: If any file could not be read
        """
        handles = list(handles)
        if not handles:
            return self._state

        store = await read_files(handles)

        self._analysis_tokens.invalidate()
        self._run_tokens.invalidate()
        self._cancel_highlight_timer()

        first = store.first
        return self._update(
            **self._cleared_analysis(),
            files=store,
            active_file=first.name if first else None,
            language=AUTO_DETECT,
            run_status=RunStatus.IDLE,
            run_result=None,
            run_error=None,
        )

    def reset(self) -> SessionState:
        """Discard the analysis result and every piece of state derived from it."""
        self._analysis_tokens.invalidate()
        self._cancel_highlight_timer()
        log.debug(LogEventNames.SESSION_RESET)
        return self._update(**self._cleared_analysis())

    def _clear_view(self) -> SessionState:
        """Drop the displayed analysis without superseding one still in flight."""
        self._cancel_highlight_timer()
        cleared = self._cleared_analysis()
        if self._state.status is AnalysisStatus.LOADING:
            del cleared["status"]
        return self._update(**cleared)

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    async def _call(self, request: AnalysisRequest) -> AnalysisResult | SimpleResult:
        if self._retry.max_attempts <= 1:
            return await self._assistant.run(request)

        retrying = create_retry(
            max_attempts=self._retry.max_attempts,
            min_wait=self._retry.initial_delay,
            max_wait=self._retry.max_delay,
        )
        return await retrying(self._assistant.run)(request)

    def _discard_stale(self, family: str, token: int, latest: int) -> None:
        get_metrics().stale_responses.inc(labels={"family": family})
        log.info(LogEventNames.ANALYSIS_STALE_DISCARDED, family=family, token=token, latest=latest)

    async def _run_analysis(self, request: AnalysisRequest, title: str) -> SessionState:
        token = self._analysis_tokens.issue()
        self._cancel_highlight_timer()
        loading = self._cleared_analysis() | {"status": AnalysisStatus.LOADING, "analysis_title": title}
        self._update(**loading)

        try:
            result = await self._call(request)
        except AnalysisFailure as e:
            if not self._analysis_tokens.is_current(token):
                self._discard_stale("analysis", token, self._analysis_tokens.latest)
                return self._state
            return self._update(status=AnalysisStatus.FAILED, error=str(e))

        if not self._analysis_tokens.is_current(token):
            self._discard_stale("analysis", token, self._analysis_tokens.latest)
            return self._state

        assert isinstance(result, AnalysisResult)
        return self._update(status=AnalysisStatus.READY, result=result, debugger_step=0)

    async def analyze_file(self) -> SessionState:
        """Analyse the active file with the declared language and model.

        Pre-flight problems (no or blank file, language mismatch) only set
        ``error``; the backend is not called and the status does not change.
        """
        state = self._state
        try:
            request = self._assistant.file_request(state.active, state.language, state.model)
        except (EmptyInputError, LanguageMismatchError) as e:
            return self._update(error=str(e))

        return await self._run_analysis(request, file_title(request.file_name))

    async def analyze_project(self) -> SessionState:
        """Analyse every file in the store together."""
        state = self._state
        try:
            request = self._assistant.project_request(state.files, state.language, state.model)
        except EmptyInputError as e:
            return self._update(error=str(e))

        return await self._run_analysis(request, PROJECT_TITLE)

    async def quick_run(self) -> SessionState:
        """Predict the active file's output and complexity.

        Starting a run clears the displayed analysis; an analysis already in
        flight still lands. Pre-flight problems only set ``run_error``.
        """
        state = self._state
        active = state.active
        try:
            request = self._assistant.quick_run_request(
                active.content if active else "",
                state.language,
                state.model,
                file_name=active.name if active else None,
            )
        except (EmptyInputError, LanguageMismatchError) as e:
            return self._update(run_status=RunStatus.IDLE, run_result=None, run_error=str(e))

        self._clear_view()
        token = self._run_tokens.issue()
        log.info(LogEventNames.QUICK_RUN_START, file_name=active.name if active else None)
        self._update(run_status=RunStatus.RUNNING, run_result=None, run_error=None)

        try:
            result = await self._call(request)
        except AnalysisFailure as e:
            if not self._run_tokens.is_current(token):
                self._discard_stale("quick_run", token, self._run_tokens.latest)
                return self._state
            log.info(LogEventNames.QUICK_RUN_FAILED)
            return self._update(run_status=RunStatus.FAILED, run_error=str(e))

        if not self._run_tokens.is_current(token):
            self._discard_stale("quick_run", token, self._run_tokens.latest)
            return self._state

        assert isinstance(result, SimpleResult)
        log.info(LogEventNames.QUICK_RUN_COMPLETE)
        return self._update(run_status=RunStatus.READY, run_result=result)

    # ------------------------------------------------------------------
    # Patching
    # ------------------------------------------------------------------

    def _patch(self, line_number: int, snippet: str, file_path: str | None, kind: str) -> SessionState:
        state = self._state
        target = file_path or state.active_file
        if target is None:
            raise PatchError("No file to patch: no file is active and the finding names none")

        files = apply_patch(state.files, PatchTarget(target, line_number, snippet))

        result = state.result
        if result is not None:
            if kind == "fix":
                result = result.mark_errors_fixed(line_number, target, state.active_file)
            else:
                result = result.mark_suggestions_applied(line_number, target, state.active_file)

        highlight = Highlight(target, line_number)
        self._schedule_highlight_clear(highlight)
        get_metrics().patches_applied.inc(labels={"kind": kind})
        log.info(LogEventNames.PATCH_APPLIED, kind=kind, file_name=target, line_number=line_number)
        return self._update(files=files, result=result, highlight=highlight)

    def apply_fix(self, line_number: int, snippet: str, file_path: str | None = None) -> SessionState:
        """Apply an error's suggested fix and mark matching errors fixed.

        ``file_path`` defaults to the active file.

        Raises:
            PatchError: If the target file or line does not exist (state unchanged)
        """
        return self._patch(line_number, snippet, file_path, "fix")

    def apply_suggestion(
        self, line_number: int, snippet: str, file_path: str | None = None
    ) -> SessionState:
        """Apply a suggestion and mark matching suggestions applied.

        Raises:
            PatchError: If the target file or line does not exist (state unchanged)
        """
        return self._patch(line_number, snippet, file_path, "suggestion")

    # ------------------------------------------------------------------
    # Highlight
    # ------------------------------------------------------------------

    def _schedule_highlight_clear(self, highlight: Highlight) -> None:
        self._cancel_highlight_timer()
        self._pending_clear = DelayedCall(
            self._config.highlight_duration,
            lambda: self._expire_highlight(highlight),
        )

    def _expire_highlight(self, highlight: Highlight) -> None:
        self._pending_clear = None
        if self._state.highlight == highlight:
            log.debug(LogEventNames.HIGHLIGHT_CLEARED, file_name=highlight.file_name)
            self._update(highlight=None)

    def highlight(self, file_name: str, line_number: int) -> SessionState:
        """Highlight a line until the highlight duration elapses.

        Any earlier pending clear is cancelled first.
        """
        highlight = Highlight(file_name, line_number)
        self._schedule_highlight_clear(highlight)
        log.debug(LogEventNames.HIGHLIGHT_SET, file_name=file_name, line_number=line_number)
        return self._update(highlight=highlight)

    def clear_highlight(self) -> SessionState:
        self._cancel_highlight_timer()
        return self._update(highlight=None)

    # ------------------------------------------------------------------
    # Tabs and debugger
    # ------------------------------------------------------------------

    def select_tab(self, tab: Tab | str) -> bool:
        """Switch tabs. Returns False, changing nothing, if the tab is disabled.

        Raises:
            ValueError: If ``tab`` is not a tab name
        """
        tab = Tab(tab)
        if not tab_is_enabled(tab, self._state.result):
            return False
        self._update(active_tab=tab)
        return True

    def set_debugger_step(self, index: int) -> SessionState:
        """Move the debugger cursor, clamped to the available steps."""
        result = self._state.result
        count = len(result.debugger_trace.steps) if result else 0
        clamped = max(0, min(index, count - 1)) if count else 0
        return self._update(debugger_step=clamped)

    def next_step(self) -> SessionState:
        return self.set_debugger_step(self._state.debugger_step + 1)

    def previous_step(self) -> SessionState:
        return self.set_debugger_step(self._state.debugger_step - 1)

    def close(self) -> None:
        """Cancel the pending highlight timer and drop listeners."""
        self._cancel_highlight_timer()
        self._listeners.clear()


def create_session(
    config: AssistantConfig | None = None,
    settings: Settings | None = None,
    files: FileStore | None = None,
) -> SessionCoordinator:
    """Factory function to create a SessionCoordinator with a live backend.

    Raises:
        ConfigurationError: If the API key is not set
    """
    config = config or AssistantConfig()
    assistant = create_assistant(config, settings)
    return SessionCoordinator(assistant, config=config.session, retry=config.retry, files=files)
