"""Tests for CodeAssistant and its factory."""

from pathlib import Path
from typing import Any

import pytest
from conftest import FakeBackend, as_payload

from delearner.adapters.llm.anthropic import AnthropicBackend
from delearner.config.loader import ConfigurationError
from delearner.config.schema import AssistantConfig, SessionConfig, Settings
from delearner.core.assistant import (
    EMPTY_FILE_MESSAGE,
    NO_FILES_MESSAGE,
    CodeAssistant,
    EmptyInputError,
    create_assistant,
)
from delearner.core.languages import LanguageMismatchError
from delearner.core.patching import LineOutOfRangeError
from delearner.models.files import CodeFile, FileStore
from delearner.utils.metrics import get_metrics


class TestPreflight:
    """Tests for checks that run before any backend call."""

    async def test_language_mismatch_makes_no_backend_call(
        self, assistant: CodeAssistant, fake_backend: FakeBackend
    ) -> None:
        """Test that Python selected for app.js is rejected locally."""
        with pytest.raises(LanguageMismatchError) as exc_info:
            await assistant.analyze_file(CodeFile("app.js", "console.log(1)"), "python")

        assert "'Python'" in str(exc_info.value)
        assert "'JavaScript'" in str(exc_info.value)
        assert fake_backend.calls == 0
        assert get_metrics().preflight_rejections.get({"reason": "language_mismatch"}) == 1

    async def test_blank_file(self, assistant: CodeAssistant, fake_backend: FakeBackend) -> None:
        """Test that a blank file is rejected."""
        with pytest.raises(EmptyInputError, match=EMPTY_FILE_MESSAGE):
            await assistant.analyze_file(CodeFile("app.js", "   \n"), "javascript")
        assert fake_backend.calls == 0

    async def test_empty_project(self, assistant: CodeAssistant, fake_backend: FakeBackend) -> None:
        """Test that a project with no files is rejected."""
        with pytest.raises(EmptyInputError, match=NO_FILES_MESSAGE):
            await assistant.analyze_project([], "all")
        assert fake_backend.calls == 0

    async def test_blank_quick_run(self, assistant: CodeAssistant, fake_backend: FakeBackend) -> None:
        """Test that blank quick-run content is rejected."""
        with pytest.raises(EmptyInputError):
            await assistant.quick_run("", "javascript")
        assert fake_backend.calls == 0

    async def test_quick_run_mismatch(self, assistant: CodeAssistant, fake_backend: FakeBackend) -> None:
        """Test that the quick-run language check uses the file name."""
        with pytest.raises(LanguageMismatchError):
            await assistant.quick_run("print(1)", "javascript", file_name="main.py")
        assert fake_backend.calls == 0

    def test_file_request_defaults_model(self, assistant: CodeAssistant) -> None:
        """Test that the default model is filled in."""
        request = assistant.file_request(CodeFile("a.js", "x"), "all")
        assert request.model == "test-model"
        assert assistant.file_request(CodeFile("a.js", "x"), "all", "other").model == "other"


class TestOperations:
    """Tests for the backend-backed operations."""

    async def test_analyze_file(
        self,
        assistant: CodeAssistant,
        fake_backend: FakeBackend,
        full_analysis: dict[str, Any],
        fibonacci_file: CodeFile,
    ) -> None:
        """Test a successful single-file analysis."""
        fake_backend.queue(as_payload(full_analysis))

        result = await assistant.analyze_file(fibonacci_file, "javascript")

        assert result.review.errors[0].line_number == 2
        assert fake_backend.requests[0].model == "test-model"

    async def test_analyze_project(
        self,
        assistant: CodeAssistant,
        fake_backend: FakeBackend,
        empty_analysis: dict[str, Any],
        project_store: FileStore,
    ) -> None:
        """Test that every project file is sent."""
        fake_backend.queue(as_payload(empty_analysis))

        await assistant.analyze_project(project_store, "python")

        prompt = fake_backend.requests[0].prompt_text
        assert "--- FILE: src/app.py ---" in prompt
        assert "--- FILE: src/util.py ---" in prompt

    async def test_quick_run(self, assistant: CodeAssistant, fake_backend: FakeBackend) -> None:
        """Test a quick run."""
        fake_backend.queue(as_payload({"output": "3", "timeComplexity": "O(2^n)", "spaceComplexity": "O(n)"}))
        result = await assistant.quick_run("console.log(3)", "javascript", file_name="a.js")
        assert result.output == "3"

    def test_apply_patch(self, assistant: CodeAssistant, project_store: FileStore) -> None:
        """Test patching through the assistant."""
        patched = assistant.apply_patch(project_store, "src/util.py", 2, "return a + b")
        assert patched.get("src/util.py").lines[1] == "    return a + b"  # type: ignore[union-attr]

    def test_apply_patch_out_of_range(self, assistant: CodeAssistant, project_store: FileStore) -> None:
        """Test that patch errors propagate."""
        with pytest.raises(LineOutOfRangeError):
            assistant.apply_patch(project_store, "src/util.py", 99, "x")

    def test_rename_for_language(self, assistant: CodeAssistant) -> None:
        """Test the rename helper."""
        store = FileStore([CodeFile("fibonacci.js", "x")])
        new_store, name = assistant.rename_for_language(store, "fibonacci.js", "python")
        assert name == "main.py"
        assert new_store.names == ["main.py"]


class TestCreateAssistant:
    """Tests for create_assistant."""

    def test_missing_key(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """Test that a missing API key fails at start-up."""
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("API_KEY", raising=False)
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)

        with pytest.raises(ConfigurationError, match="API_KEY"):
            create_assistant(AssistantConfig())

    def test_key_from_environment(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """Test that API_KEY is picked up from the environment."""
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("API_KEY", "sk-test-key")

        assistant = create_assistant(AssistantConfig())

        assert isinstance(assistant.client.backend, AnthropicBackend)

    def test_explicit_settings_and_default_model(self) -> None:
        """Test that the session default model is passed through."""
        config = AssistantConfig(session=SessionConfig(default_model="claude-test"))
        assistant = create_assistant(config, Settings(API_KEY="sk-test-key"))

        assert assistant.default_model == "claude-test"
        assert assistant.client.backend.name == "anthropic"
