"""Line-targeted patch application for in-memory files.

A patch replaces exactly one line of one file with a (possibly multi-line)
snippet, re-indented to the indentation of the line it replaces. Snippets
may arrive wrapped in a markdown code fence; the fence is stripped first, so
a fenced and a bare snippet with the same code give the same result.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

import structlog

from delearner.core.languages import EXTENSION_TO_LANGUAGE, LANGUAGE_TO_EXTENSION
from delearner.models.files import FileStore
from delearner.utils.async_helpers import AssistantError
from delearner.utils.logging import LogEventNames

log = structlog.get_logger()


class PatchError(AssistantError):
    """A patch could not be applied. The store is left unchanged."""


class TargetNotFoundError(PatchError):
    """The patch names a file that is not in the store."""

    def __init__(self, file_name: str) -> None:
        super().__init__(f"File not found: {file_name}")
        self.file_name = file_name


class LineOutOfRangeError(PatchError):
    """The patch names a line outside the file."""

    def __init__(self, file_name: str, line_number: int, line_count: int) -> None:
        super().__init__(
            f"Line {line_number} is out of range for {file_name} (1-{line_count})"
        )
        self.file_name = file_name
        self.line_number = line_number
        self.line_count = line_count


@dataclass(frozen=True)
class PatchTarget:
    """Where a snippet goes: a 1-based line of a named file."""

    file_name: str
    line_number: int
    raw_snippet: str


# ```lang\n ... \n```  (language tag optional, closing fence on its own line)
FENCED_BLOCK_PATTERN = re.compile(r"^```[\w+#.-]*[ \t]*\n(?P<body>[\s\S]*?)\n?```$")
# ```code```  on a single line
INLINE_FENCE_PATTERN = re.compile(r"^```(?P<body>[^`\n]+)```$")
# Language tags recognised at the start of a single-line fence, as in ```js return n;```
INLINE_FENCE_TAGS = frozenset(EXTENSION_TO_LANGUAGE) | frozenset(LANGUAGE_TO_EXTENSION) | {"c++", "c#"}

LEADING_WHITESPACE_PATTERN = re.compile(r"^\s*")


def sanitize_snippet(raw: str) -> str:
    """Strip surrounding whitespace and, if present, one enclosing code fence.

    Examples:
        >>> sanitize_snippet("```js\\nreturn n;\\n```")
        'return n;'
        >>> sanitize_snippet("  return n;  ")
        'return n;'
    """
    text = raw.strip()
    match = FENCED_BLOCK_PATTERN.match(text)
    if match:
        return match.group("body").strip()
    match = INLINE_FENCE_PATTERN.match(text)
    if match:
        return _drop_inline_tag(match.group("body").strip())
    return text


def _drop_inline_tag(body: str) -> str:
    # Only a known tag followed by more code counts; ```return n;``` keeps "return"
    tag, _, rest = body.partition(" ")
    if rest.strip() and tag.lower() in INLINE_FENCE_TAGS:
        return rest.strip()
    return body


def leading_whitespace(line: str) -> str:
    """Return the run of whitespace that starts ``line``."""
    match = LEADING_WHITESPACE_PATTERN.match(line)
    return match.group(0) if match else ""


def apply_patch(store: FileStore, target: PatchTarget) -> FileStore:
    """Replace one line of one file with a sanitised, re-indented snippet.

    Every line of the snippet gets the indentation of the line it replaces.
    Lines before the target keep their numbers; lines after it shift by the
    snippet's line count minus one. Only the target file changes; every other
    file in the returned store is the same object as before.

    Args:
        store: Current file store
        target: File, 1-based line, and raw snippet

    Returns:
        A new store with the target file patched

    Raises:
        TargetNotFoundError: If the file is not in the store
        LineOutOfRangeError: If the line is below 1 or past the last line
    """
    file = store.get(target.file_name)
    if file is None:
        log.warning(LogEventNames.PATCH_REJECTED, file_name=target.file_name, reason="not_found")
        raise TargetNotFoundError(target.file_name)

    lines = file.lines
    if not 1 <= target.line_number <= len(lines):
        log.warning(
            LogEventNames.PATCH_REJECTED,
            file_name=target.file_name,
            line_number=target.line_number,
            line_count=len(lines),
            reason="line_out_of_range",
        )
        raise LineOutOfRangeError(target.file_name, target.line_number, len(lines))

    index = target.line_number - 1
    indent = leading_whitespace(lines[index])
    snippet = sanitize_snippet(target.raw_snippet)
    replacement = [indent + line for line in snippet.split("\n")]

    new_lines = lines[:index] + replacement + lines[index + 1 :]

    log.debug(
        LogEventNames.PATCH_APPLIED,
        file_name=target.file_name,
        line_number=target.line_number,
        lines_inserted=len(replacement),
    )
    return store.with_content(target.file_name, "\n".join(new_lines))
