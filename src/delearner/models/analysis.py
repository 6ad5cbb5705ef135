"""Data models for analysis results returned by the generation backend.

Models validate the backend's camelCase JSON directly (``filePath``,
``lineNumber`` ...) and expose snake_case attributes. All models are frozen;
updates go through ``model_copy``.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Collection
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationInfo, field_validator, model_validator
from pydantic.alias_generators import to_camel

# Passed as validation context when parsing a backend payload
RESPONSE_CONTEXT = {"from_response": True}

_F = TypeVar("_F", bound="_Finding")


def normalize_path(path: str) -> str:
    """Normalise a model-reported file path for comparison with store names."""
    path = path.strip().replace("\\", "/")
    while path.startswith("./"):
        path = path[2:]
    return path


class _ResponseModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    @model_validator(mode="before")
    @classmethod
    def _null_arrays_as_empty(cls, data: Any) -> Any:
        # The contract says arrays, never null; read a null array as empty.
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for name, field in cls.model_fields.items():
            if field.default != ():
                continue
            for key in {field.alias or name, name}:
                if key in data and data[key] is None:
                    data[key] = ()
        return data


def _client_managed(value: Any, info: ValidationInfo) -> Any:
    if info.context and info.context.get("from_response"):
        return False
    return value


# --- Review ---------------------------------------------------------------


class _Finding(_ResponseModel):
    file_path: str | None = None
    line_number: int

    def matches(self, line_number: int, file_path: str, default_path: str | None = None) -> bool:
        """True if this finding sits at ``line_number`` of ``file_path``.

        A finding without a path belongs to ``default_path``.
        """
        return self.line_number == line_number and (self.file_path or default_path) == file_path


class CodeError(_Finding):
    """A bug the backend found, with a replacement snippet for its line."""

    error_description: str
    suggested_fix: str
    fix_explanation: str
    is_fixed: bool = False

    @field_validator("is_fixed", mode="before")
    @classmethod
    def _force_unfixed(cls, v: Any, info: ValidationInfo) -> Any:
        return _client_managed(v, info)


class CodeSuggestion(_Finding):
    """An improvement the backend proposes, with a replacement snippet."""

    suggestion: str
    explanation: str
    is_applied: bool = False

    @field_validator("is_applied", mode="before")
    @classmethod
    def _force_unapplied(cls, v: Any, info: ValidationInfo) -> Any:
        return _client_managed(v, info)


class Review(_ResponseModel):
    overall_explanation: str
    errors: tuple[CodeError, ...] = ()
    suggestions: tuple[CodeSuggestion, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.overall_explanation.strip() and not self.errors and not self.suggestions


# --- Debugger -------------------------------------------------------------


class DebuggerVariable(_ResponseModel):
    """A variable in scope. ``value`` is literal-syntax display text, never evaluated."""

    name: str
    value: str

    @field_validator("value", mode="before")
    @classmethod
    def _encode_literal(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v
        return json.dumps(v)


class DebuggerState(_ResponseModel):
    execution: str
    variables: tuple[DebuggerVariable, ...] = ()
    call_stack: tuple[str, ...] = ()


class DebuggerStep(_Finding):
    state: DebuggerState


class DebuggerTrace(_ResponseModel):
    steps: tuple[DebuggerStep, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.steps


# --- Performance ----------------------------------------------------------


class Bottleneck(_Finding):
    function_name: str
    calls: int
    reason: str


class Optimization(_ResponseModel):
    title: str
    description: str


class PerformanceProfile(_ResponseModel):
    summary: str
    bottlenecks: tuple[Bottleneck, ...] = ()
    optimizations: tuple[Optimization, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.summary.strip() and not self.bottlenecks and not self.optimizations


# --- Tests ----------------------------------------------------------------


class TestCase(_ResponseModel):
    __test__ = False

    input: str
    expected_output: str
    description: str


class TestCases(_ResponseModel):
    __test__ = False

    generated: tuple[TestCase, ...] = ()
    edge_cases: tuple[TestCase, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.generated and not self.edge_cases


# --- Alternative solutions ------------------------------------------------


class Complexity(_ResponseModel):
    time: str
    space: str


class Solution(_ResponseModel):
    title: str
    complexity: Complexity
    explanation: str
    code: str


class AlternativeSolutions(_ResponseModel):
    solutions: tuple[Solution, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.solutions


# --- Top level ------------------------------------------------------------


class AnalysisResult(_ResponseModel):
    """Full analysis. All five sections are always present, possibly empty."""

    review: Review
    debugger_trace: DebuggerTrace
    performance_profile: PerformanceProfile
    test_cases: TestCases
    alternative_solutions: AlternativeSolutions

    @classmethod
    def from_response(cls, data: Any) -> AnalysisResult:
        """Validate a backend payload; client-managed flags start out false."""
        return cls.model_validate(data, context=RESPONSE_CONTEXT)

    @property
    def is_empty(self) -> bool:
        return (
            self.review.is_empty
            and self.debugger_trace.is_empty
            and self.performance_profile.is_empty
            and self.test_cases.is_empty
            and self.alternative_solutions.is_empty
        )

    def resolve_file_paths(
        self,
        known_files: Collection[str],
        sole_file: str | None = None,
    ) -> tuple[AnalysisResult, int]:
        """Give every finding a concrete file path.

        With ``sole_file`` (single-file analysis) every finding belongs to that
        file. Otherwise a finding keeps its path only if it names one of
        ``known_files`` (after normalisation); findings that do not are dropped.

        Returns:
            The resolved result and the number of findings dropped.
        """
        by_normalized = {normalize_path(name): name for name in known_files}
        dropped = 0

        def resolve(items: tuple[_F, ...]) -> tuple[_F, ...]:
            nonlocal dropped
            kept: list[_F] = []
            for item in items:
                if sole_file is not None:
                    path: str | None = sole_file
                elif item.file_path is None:
                    path = None
                else:
                    path = by_normalized.get(normalize_path(item.file_path))
                if path is None:
                    dropped += 1
                    continue
                kept.append(item if item.file_path == path else item.model_copy(update={"file_path": path}))
            return tuple(kept)

        resolved = self.model_copy(
            update={
                "review": self.review.model_copy(
                    update={
                        "errors": resolve(self.review.errors),
                        "suggestions": resolve(self.review.suggestions),
                    }
                ),
                "debugger_trace": self.debugger_trace.model_copy(
                    update={"steps": resolve(self.debugger_trace.steps)}
                ),
                "performance_profile": self.performance_profile.model_copy(
                    update={"bottlenecks": resolve(self.performance_profile.bottlenecks)}
                ),
            }
        )
        return resolved, dropped

    def mark_errors_fixed(
        self, line_number: int, file_path: str, default_path: str | None = None
    ) -> AnalysisResult:
        """Return a copy with every error at (line, file) flagged as fixed."""
        errors = _flag(
            self.review.errors,
            lambda e: e.matches(line_number, file_path, default_path),
            "is_fixed",
        )
        return self.model_copy(update={"review": self.review.model_copy(update={"errors": errors})})

    def mark_suggestions_applied(
        self, line_number: int, file_path: str, default_path: str | None = None
    ) -> AnalysisResult:
        """Return a copy with every suggestion at (line, file) flagged as applied."""
        suggestions = _flag(
            self.review.suggestions,
            lambda s: s.matches(line_number, file_path, default_path),
            "is_applied",
        )
        return self.model_copy(
            update={"review": self.review.model_copy(update={"suggestions": suggestions})}
        )

    def unfixed_errors_for(self, file_path: str) -> list[CodeError]:
        """Errors still open in ``file_path`` (what an editor marks in red)."""
        return [e for e in self.review.errors if not e.is_fixed and e.file_path == file_path]


def _flag(items: tuple[_F, ...], predicate: Callable[[_F], bool], flag: str) -> tuple[_F, ...]:
    return tuple(item.model_copy(update={flag: True}) if predicate(item) else item for item in items)


class SimpleResult(_ResponseModel):
    """Quick-run result: predicted output plus Big-O estimates."""

    output: str
    time_complexity: str
    space_complexity: str

    @classmethod
    def from_response(cls, data: Any) -> SimpleResult:
        return cls.model_validate(data, context=RESPONSE_CONTEXT)
