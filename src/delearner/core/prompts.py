"""Prompt and response-schema construction for the three analysis modes.

Each mode pairs an instruction text with a strict JSON schema the backend's
reply must satisfy:

- single-file: full five-section analysis of one file
- project: full analysis across several files joined with file markers
- quick-run: predicted output plus time and space complexity only
"""

from __future__ import annotations

from typing import Any

from delearner.models.requests import (
    AUTO_DETECT,
    AnalysisMode,
    AnalysisRequest,
    GenerationRequest,
    ProjectRequest,
    QuickRunRequest,
    SingleFileRequest,
)

FILE_MARKER = "--- FILE: {name} ---"

SNIPPET_RULES = (
    "A minimal, concise code snippet containing only the changed line(s). "
    "It should NOT include the entire function or file, just the specific code "
    "to replace the original line(s). This snippet must not have explanations, "
    "comments, or markdown fences."
)


def _string(description: str | None = None) -> dict[str, Any]:
    schema: dict[str, Any] = {"type": "string"}
    if description:
        schema["description"] = description
    return schema


def _integer() -> dict[str, Any]:
    return {"type": "integer"}


def _array(items: dict[str, Any], description: str | None = None) -> dict[str, Any]:
    schema: dict[str, Any] = {"type": "array", "items": items}
    if description:
        schema["description"] = description
    return schema


def _object(properties: dict[str, Any]) -> dict[str, Any]:
    # Every key is mandatory; emptiness is expressed with "" or [] instead
    return {
        "type": "object",
        "properties": properties,
        "required": list(properties),
    }


_TEST_CASE = _object(
    {
        "input": _string(),
        "expectedOutput": _string(),
        "description": _string(),
    }
)

ANALYSIS_SCHEMA: dict[str, Any] = _object(
    {
        "review": _object(
            {
                "overallExplanation": _string(),
                "errors": _array(
                    _object(
                        {
                            "filePath": _string("The path or name of the file where the error occurred."),
                            "lineNumber": _integer(),
                            "errorDescription": _string(),
                            "suggestedFix": _string(SNIPPET_RULES),
                            "fixExplanation": _string(),
                        }
                    )
                ),
                "suggestions": _array(
                    _object(
                        {
                            "filePath": _string("The path or name of the file for the suggestion."),
                            "lineNumber": _integer(),
                            "suggestion": _string(SNIPPET_RULES),
                            "explanation": _string(),
                        }
                    )
                ),
            }
        ),
        "debuggerTrace": _object(
            {
                "steps": _array(
                    _object(
                        {
                            "filePath": _string("The path of the file for this execution step."),
                            "lineNumber": _integer(),
                            "state": _object(
                                {
                                    "execution": _string(),
                                    "variables": _array(
                                        _object(
                                            {
                                                "name": _string("The name of the variable."),
                                                "value": _string(
                                                    "The JSON string representation of the "
                                                    "variable's value (e.g., '4', '\"hello\"', '[1, 2]')."
                                                ),
                                            }
                                        ),
                                        "Variables in scope, each with a name and a JSON-literal value string.",
                                    ),
                                    "callStack": _array(_string()),
                                }
                            ),
                        }
                    )
                ),
            }
        ),
        "performanceProfile": _object(
            {
                "summary": _string(),
                "bottlenecks": _array(
                    _object(
                        {
                            "filePath": _string("The path or name of the file where the bottleneck occurs."),
                            "lineNumber": _integer(),
                            "functionName": _string(),
                            "calls": _integer(),
                            "reason": _string(),
                        }
                    )
                ),
                "optimizations": _array(
                    _object(
                        {
                            "title": _string(),
                            "description": _string(),
                        }
                    )
                ),
            }
        ),
        "testCases": _object(
            {
                "generated": _array(_TEST_CASE),
                "edgeCases": _array(_TEST_CASE),
            }
        ),
        "alternativeSolutions": _object(
            {
                "solutions": _array(
                    _object(
                        {
                            "title": _string(),
                            "complexity": _object({"time": _string(), "space": _string()}),
                            "explanation": _string(),
                            "code": _string(),
                        }
                    )
                ),
            }
        ),
    }
)

SIMPLE_ANALYSIS_SCHEMA: dict[str, Any] = _object(
    {
        "output": _string(
            "The predicted output of the code, as if from console.log. If there are "
            "multiple outputs, join them with newlines. If there is no output, return "
            "an empty string."
        ),
        "timeComplexity": _string(),
        "spaceComplexity": _string(),
    }
)

_RESPONSE_RULES = (
    "Respond ONLY with a valid JSON object that adheres to the provided schema. "
    "Do not include any text or markdown formatting outside of the JSON object."
)

_DEBUGGER_RULES = """\
    *   **Important**: Variable values must be JSON strings (e.g., a number `4` should be the string `"4"`, and a string `hello` should be the string `"\\"hello\\""`).
    *   **Crucially**: If a trace is not possible or applicable, you MUST return a valid object containing an empty array for the `steps` field, like `"debuggerTrace": { "steps": [] }`. Do NOT return `null` or omit the `debuggerTrace` field."""

_MISMATCH_RESPONSE = (
    "your entire response must be a valid JSON object adhering to the "
    "schema, but with the 'overallExplanation' in the 'review' object explaining the "
    "language mismatch, and all other array fields (errors, suggestions, steps, "
    "bottlenecks, optimizations, generated, edgeCases, solutions) must be empty."
)


def _fence(language: str) -> str:
    return "" if language == AUTO_DETECT else language


def _code_block(content: str, language: str) -> str:
    return f"```{_fence(language)}\n{content}\n```"


def format_project_files(request: ProjectRequest) -> str:
    """Join project files into one text, each behind a ``--- FILE: <name> ---`` marker."""
    return "\n\n".join(
        f"{FILE_MARKER.format(name=f.name)}\n{_code_block(f.content, request.language)}"
        for f in request.files
    )


def build_single_file_prompt(request: SingleFileRequest) -> str:
    """Instructions for a full analysis of one file."""
    name = request.file_name
    if request.language == AUTO_DETECT:
        language_rules = "The programming language should be auto-detected from the file content and name."
    else:
        language_rules = (
            f"The programming language is {request.language}. Before proceeding with the full "
            f"analysis, first verify that the code provided is valid {request.language}. If it is not, "
            + _MISMATCH_RESPONSE
        )

    return f"""\
As an expert code analysis agent, your task is to perform a comprehensive, multi-faceted review of the following code from the file named '{name}'.
{language_rules}
Your analysis must cover the following five areas. For any findings (errors, suggestions, bottlenecks, debugger steps), you MUST set the 'filePath' field to '{name}'.

1.  **Code Review**:
    *   Provide a high-level explanation of the code's purpose.
    *   Identify critical bugs and errors. For each, provide the file path, line number, description, suggested fix, and an explanation.
    *   Provide suggestions for improvement. For each, provide the file path, line number, the suggested code, and an explanation.

2.  **Debugger Trace**:
    *   Generate a detailed, step-by-step execution trace of the code's execution path.
    *   For each step, include the file path ('{name}'), line number, a description of the execution action, all relevant variable states, and the current call stack.
{_DEBUGGER_RULES}

3.  **Performance Profile**:
    *   Provide a summary of performance characteristics.
    *   Identify bottlenecks, specifying the file path, line number, function name, number of calls, and reason.
    *   Suggest concrete optimizations.

4.  **Test Cases**:
    *   Generate standard and edge test cases with inputs, expected outputs, and descriptions.

5.  **Alternative Solutions**:
    *   Provide at least two alternative implementations.
    *   For each, include a title, time/space complexity, explanation, and full code.

{_RESPONSE_RULES}

Code from {name}:
{_code_block(request.content, request.language)}
"""


def build_project_prompt(request: ProjectRequest) -> str:
    """Instructions for a full analysis across every project file."""
    if request.language == AUTO_DETECT:
        language_rules = (
            "This is a multi-language project. Please auto-detect the language for each "
            "file based on its extension and content."
        )
    else:
        language_rules = (
            f"The programming language for this project is primarily {request.language}. "
            f"Before analyzing, if you find a file that is clearly not {request.language}, note "
            "it in the overall explanation. If the entire project seems to be a different "
            "language, " + _MISMATCH_RESPONSE
        )

    return f"""\
As an expert code analysis agent, your task is to perform a comprehensive, multi-faceted review of the following multi-file project.
{language_rules}
The project files are provided below, separated by "{FILE_MARKER.format(name='[filename]')}".

Your analysis must cover the following five areas, considering the project as a whole. When identifying issues or suggestions, **you must specify the correct file path in the 'filePath' field**, exactly as it appears in the file marker.

1.  **Code Review**:
    *   Provide a high-level explanation of the entire project's purpose and architecture.
    *   Identify critical bugs, errors, and cross-file inconsistencies. For each, provide the file path, line number, description, suggested fix, and an explanation.
    *   Provide suggestions for improvement (e.g., architecture, performance, readability). For each, provide the file path, line number, suggested code, and explanation.

2.  **Debugger Trace**:
    *   Pick the main entry point or most significant execution path of the project and generate a detailed, step-by-step execution trace.
    *   For each step, include the correct **file path**, line number, a description of the execution action, all relevant variable states, and the current call stack.
{_DEBUGGER_RULES}

3.  **Performance Profile**:
    *   Provide a summary of the project's overall performance characteristics.
    *   Identify any performance bottlenecks, specifying the file path, line number, function name, number of calls, and reason.
    *   Suggest concrete optimizations.

4.  **Test Cases**:
    *   Generate a set of integration test cases for the project with inputs, expected outputs, and descriptions.
    *   Generate edge cases that test interactions between different parts of the project.

5.  **Alternative Solutions**:
    *   Provide at least two alternative architectural or implementation patterns for the given project.
    *   For each solution, include a title, its time/space complexity, a clear explanation, and example code for the key parts.
    *   The 'code' field for alternative solutions can show the key refactored files.

{_RESPONSE_RULES}

Project Files:
{format_project_files(request)}
"""


def build_quick_run_prompt(request: QuickRunRequest) -> str:
    """Instructions for predicting output and complexity only."""
    if request.language == AUTO_DETECT:
        language_rules = "Analyze the following code, auto-detecting its programming language."
    else:
        language_rules = (
            f"First, verify that the following code is valid {request.language} code. If it is "
            "NOT, respond with a JSON object where the 'output' field is an error message "
            "explaining the language mismatch, and the 'timeComplexity' and 'spaceComplexity' "
            'fields are empty strings (""). Do not try to execute it if the language is wrong. '
            f"If it IS valid {request.language} code, analyze it as described below."
        )

    return f"""\
{language_rules}

If the code is valid for the analysis, provide the following:
1. Predict its final output (e.g., from console.log). If there are multiple outputs, join them with newlines. If an error would occur during execution (like a syntax error), the output should describe the error.
2. Determine its time complexity (Big O notation).
3. Determine its space complexity (Big O notation).

{_RESPONSE_RULES}

Code to analyze:
{_code_block(request.content, request.language)}
"""


def build_generation_request(request: AnalysisRequest) -> GenerationRequest:
    """Turn an analysis request into the prompt and schema sent to the backend.

    Args:
        request: Any of the three request variants

    Returns:
        GenerationRequest for the request's mode

    Raises:
        TypeError: If ``request`` is not a known request variant
    """
    if isinstance(request, SingleFileRequest):
        prompt, schema = build_single_file_prompt(request), ANALYSIS_SCHEMA
    elif isinstance(request, ProjectRequest):
        prompt, schema = build_project_prompt(request), ANALYSIS_SCHEMA
    elif isinstance(request, QuickRunRequest):
        prompt, schema = build_quick_run_prompt(request), SIMPLE_ANALYSIS_SCHEMA
    else:
        raise TypeError(f"Unknown analysis request: {type(request).__name__}")

    return GenerationRequest(
        model=request.model,
        prompt_text=prompt,
        response_schema=schema,
        mode=AnalysisMode(request.mode),
    )


__all__ = [
    "ANALYSIS_SCHEMA",
    "FILE_MARKER",
    "GenerationRequest",
    "SIMPLE_ANALYSIS_SCHEMA",
    "build_generation_request",
    "build_project_prompt",
    "build_quick_run_prompt",
    "build_single_file_prompt",
    "format_project_files",
]
