"""Tests for prompt and schema construction."""

from typing import Any

import pytest

from delearner.core.prompts import (
    ANALYSIS_SCHEMA,
    SIMPLE_ANALYSIS_SCHEMA,
    build_generation_request,
    format_project_files,
)
from delearner.models.files import CodeFile
from delearner.models.requests import (
    AnalysisMode,
    ProjectRequest,
    QuickRunRequest,
    SingleFileRequest,
)


def _objects(schema: dict[str, Any]) -> list[dict[str, Any]]:
    """Collect every object node in a schema tree."""
    found = []
    if schema.get("type") == "object":
        found.append(schema)
        for child in schema["properties"].values():
            found.extend(_objects(child))
    elif schema.get("type") == "array":
        found.extend(_objects(schema["items"]))
    return found


class TestSchemas:
    """Tests for the two response schemas."""

    @pytest.mark.parametrize("schema", [ANALYSIS_SCHEMA, SIMPLE_ANALYSIS_SCHEMA])
    def test_every_key_is_required(self, schema: dict[str, Any]) -> None:
        """Test that no object in the schema has optional keys."""
        for node in _objects(schema):
            assert sorted(node["required"]) == sorted(node["properties"])

    def test_analysis_top_level_sections(self) -> None:
        """Test the five top-level sections."""
        assert ANALYSIS_SCHEMA["required"] == [
            "review",
            "debuggerTrace",
            "performanceProfile",
            "testCases",
            "alternativeSolutions",
        ]

    def test_simple_schema_fields(self) -> None:
        """Test the quick-run fields."""
        assert SIMPLE_ANALYSIS_SCHEMA["required"] == ["output", "timeComplexity", "spaceComplexity"]

    def test_debugger_values_are_strings(self) -> None:
        """Test that variable values are declared as strings."""
        step = ANALYSIS_SCHEMA["properties"]["debuggerTrace"]["properties"]["steps"]["items"]
        variable = step["properties"]["state"]["properties"]["variables"]["items"]
        assert variable["properties"]["value"]["type"] == "string"


class TestSingleFilePrompt:
    """Tests for single-file requests."""

    def test_declared_language(self) -> None:
        """Test that a declared language asks for verification and fences the code."""
        request = SingleFileRequest("print(1)", "main.py", "python", "m")
        generation = build_generation_request(request)

        assert generation.mode is AnalysisMode.SINGLE_FILE
        assert generation.response_schema is ANALYSIS_SCHEMA
        assert generation.model == "m"
        assert generation.response_format == "json"
        assert "The programming language is python" in generation.prompt_text
        assert "```python\nprint(1)\n```" in generation.prompt_text
        assert "'filePath' field to 'main.py'" in generation.prompt_text

    def test_auto_detect(self) -> None:
        """Test that 'all' asks the backend to detect the language."""
        request = SingleFileRequest("print(1)", "script", "all", "m")
        prompt = build_generation_request(request).prompt_text

        assert "auto-detected" in prompt
        assert "```\nprint(1)\n```" in prompt
        assert "The programming language is" not in prompt

    def test_mentions_empty_trace_rule(self) -> None:
        """Test that the prompt forbids a null debugger trace."""
        prompt = build_generation_request(SingleFileRequest("x", "a.js", "javascript", "m")).prompt_text
        assert '"debuggerTrace": { "steps": [] }' in prompt


class TestProjectPrompt:
    """Tests for project requests."""

    @pytest.fixture
    def request_(self) -> ProjectRequest:
        """A two-file project request."""
        return ProjectRequest(
            (CodeFile("src/a.py", "import b"), CodeFile("src/b.py", "X = 1")),
            "python",
            "m",
        )

    def test_file_markers_in_order(self, request_: ProjectRequest) -> None:
        """Test that every file appears behind its marker in upload order."""
        text = format_project_files(request_)
        first = text.index("--- FILE: src/a.py ---")
        second = text.index("--- FILE: src/b.py ---")
        assert first < second
        assert "```python\nimport b\n```" in text

    def test_generation_request(self, request_: ProjectRequest) -> None:
        """Test mode, schema and language wording."""
        generation = build_generation_request(request_)
        assert generation.mode is AnalysisMode.PROJECT
        assert generation.response_schema is ANALYSIS_SCHEMA
        assert "primarily python" in generation.prompt_text
        assert "--- FILE: src/b.py ---" in generation.prompt_text

    def test_auto_detect(self) -> None:
        """Test multi-language wording."""
        request = ProjectRequest((CodeFile("a.js", "x"),), "all", "m")
        assert "multi-language project" in build_generation_request(request).prompt_text

    def test_file_names(self, request_: ProjectRequest) -> None:
        """Test the file_names helper."""
        assert request_.file_names == ["src/a.py", "src/b.py"]


class TestQuickRunPrompt:
    """Tests for quick-run requests."""

    def test_generation_request(self) -> None:
        """Test mode, schema and wording."""
        generation = build_generation_request(QuickRunRequest("console.log(1)", "javascript", "m"))

        assert generation.mode is AnalysisMode.QUICK_RUN
        assert generation.response_schema is SIMPLE_ANALYSIS_SCHEMA
        assert "valid javascript code" in generation.prompt_text
        assert "```javascript\nconsole.log(1)\n```" in generation.prompt_text

    def test_auto_detect(self) -> None:
        """Test auto-detect wording."""
        prompt = build_generation_request(QuickRunRequest("x", "all", "m")).prompt_text
        assert "auto-detecting its programming language" in prompt


class TestUnknownRequest:
    """Tests for unsupported request objects."""

    def test_raises_type_error(self) -> None:
        """Test that unknown request types are rejected."""
        with pytest.raises(TypeError):
            build_generation_request("not a request")  # type: ignore[arg-type]
