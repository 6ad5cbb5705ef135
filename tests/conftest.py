"""Shared test fixtures for DeLearner."""

from __future__ import annotations

import copy
import json
from collections.abc import Iterator
from typing import Any

import pytest

from delearner.core.assistant import CodeAssistant
from delearner.core.client import AnalysisClient
from delearner.models.files import CodeFile, FileStore
from delearner.models.requests import GenerationRequest
from delearner.utils.metrics import MetricsRegistry

FIBONACCI_JS = """\
function fibonacci(n) {
  if (n <= 1) return n;
  return fibonacci(n - 1) + fibonacci(n - 2);
}

// Analyze for n=4 for a shorter trace
console.log(fibonacci(4));"""

EMPTY_ANALYSIS: dict[str, Any] = {
    "review": {"overallExplanation": "", "errors": [], "suggestions": []},
    "debuggerTrace": {"steps": []},
    "performanceProfile": {"summary": "", "bottlenecks": [], "optimizations": []},
    "testCases": {"generated": [], "edgeCases": []},
    "alternativeSolutions": {"solutions": []},
}

FULL_ANALYSIS: dict[str, Any] = {
    "review": {
        "overallExplanation": "Computes Fibonacci numbers recursively.",
        "errors": [
            {
                "filePath": "fibonacci.js",
                "lineNumber": 2,
                "errorDescription": "Negative input recurses forever.",
                "suggestedFix": "if (n <= 1) return Math.max(n, 0);",
                "fixExplanation": "Clamp negative input.",
            }
        ],
        "suggestions": [
            {
                "filePath": "fibonacci.js",
                "lineNumber": 3,
                "suggestion": "```js\nreturn memo(n - 1) + memo(n - 2);\n```",
                "explanation": "Memoise to avoid exponential time.",
            }
        ],
    },
    "debuggerTrace": {
        "steps": [
            {
                "filePath": "fibonacci.js",
                "lineNumber": 7,
                "state": {
                    "execution": "Call fibonacci(4)",
                    "variables": [],
                    "callStack": ["<main>"],
                },
            },
            {
                "filePath": "fibonacci.js",
                "lineNumber": 2,
                "state": {
                    "execution": "Check base case",
                    "variables": [{"name": "n", "value": "4"}],
                    "callStack": ["<main>", "fibonacci"],
                },
            },
            {
                "filePath": "fibonacci.js",
                "lineNumber": 3,
                "state": {
                    "execution": "Recurse",
                    "variables": [{"name": "n", "value": "4"}],
                    "callStack": ["<main>", "fibonacci"],
                },
            },
        ]
    },
    "performanceProfile": {
        "summary": "Exponential time.",
        "bottlenecks": [
            {
                "filePath": "fibonacci.js",
                "lineNumber": 3,
                "functionName": "fibonacci",
                "calls": 9,
                "reason": "Overlapping subproblems.",
            }
        ],
        "optimizations": [{"title": "Memoise", "description": "Cache results."}],
    },
    "testCases": {
        "generated": [{"input": "fibonacci(4)", "expectedOutput": "3", "description": "Example"}],
        "edgeCases": [{"input": "fibonacci(0)", "expectedOutput": "0", "description": "Base"}],
    },
    "alternativeSolutions": {
        "solutions": [
            {
                "title": "Iterative",
                "complexity": {"time": "O(n)", "space": "O(1)"},
                "explanation": "Loop with two accumulators.",
                "code": "function fib(n) { let a = 0, b = 1; ... }",
            }
        ]
    },
}


class FakeBackend:
    """Generation backend that replays queued payloads and records requests."""

    name = "fake"

    def __init__(self, *payloads: str | Exception) -> None:
        self.payloads: list[str | Exception] = list(payloads)
        self.requests: list[GenerationRequest] = []

    def queue(self, payload: str | Exception) -> None:
        self.payloads.append(payload)

    @property
    def calls(self) -> int:
        return len(self.requests)

    async def generate(self, request: GenerationRequest) -> str:
        self.requests.append(request)
        payload = self.payloads.pop(0)
        if isinstance(payload, Exception):
            raise payload
        return payload


def as_payload(data: dict[str, Any]) -> str:
    return json.dumps(data)


@pytest.fixture(autouse=True)
def fresh_metrics() -> Iterator[None]:
    """Give each test its own metrics registry."""
    MetricsRegistry.reset_instance()
    yield
    MetricsRegistry.reset_instance()


@pytest.fixture
def empty_analysis() -> dict[str, Any]:
    """A response with all five sections present and empty."""
    return copy.deepcopy(EMPTY_ANALYSIS)


@pytest.fixture
def full_analysis() -> dict[str, Any]:
    """A response with content in every section, all on fibonacci.js."""
    return copy.deepcopy(FULL_ANALYSIS)


@pytest.fixture
def fibonacci_file() -> CodeFile:
    """The sample file a new session starts with."""
    return CodeFile("fibonacci.js", FIBONACCI_JS)


@pytest.fixture
def project_store() -> FileStore:
    """A small two-file project."""
    return FileStore(
        [
            CodeFile("src/app.py", "from util import add\n\nprint(add(1, 2))\n"),
            CodeFile("src/util.py", "def add(a, b):\n    return a - b\n"),
        ]
    )


@pytest.fixture
def fake_backend() -> FakeBackend:
    """A backend with nothing queued."""
    return FakeBackend()


@pytest.fixture
def assistant(fake_backend: FakeBackend) -> CodeAssistant:
    """An assistant wired to the fake backend."""
    return CodeAssistant(AnalysisClient(fake_backend), default_model="test-model")
