"""Folder ingestion: turn a batch of uploaded file handles into a FileStore.

Reads run concurrently. The batch is all-or-nothing: if any read fails the
whole batch fails and no store is produced, so the caller keeps the store it
already has.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from pathlib import Path
from typing import Protocol

import structlog

from delearner.models.files import CodeFile, DuplicateFileError, FileStore
from delearner.utils.async_helpers import IngestionError
from delearner.utils.logging import LogEventNames

log = structlog.get_logger()


class FileHandle(Protocol):
    """One uploaded file whose content has not been read yet."""

    @property
    def name(self) -> str:
        """Relative path or bare name; becomes the CodeFile name."""
        ...

    async def read_text(self) -> str:
        """Read the whole file as text."""
        ...


class PathFileHandle:
    """A file on disk, read in a worker thread so the event loop stays free."""

    def __init__(self, path: Path, name: str | None = None, encoding: str = "utf-8") -> None:
        self._path = path
        self._name = name or path.name
        self._encoding = encoding

    @property
    def name(self) -> str:
        return self._name

    @property
    def path(self) -> Path:
        return self._path

    async def read_text(self) -> str:
        return await asyncio.to_thread(self._path.read_text, encoding=self._encoding)

    def __repr__(self) -> str:
        return f"PathFileHandle({self._name!r})"


class MemoryFileHandle:
    """A file whose content is already in memory."""

    def __init__(self, name: str, content: str) -> None:
        self._name = name
        self._content = content

    @property
    def name(self) -> str:
        return self._name

    async def read_text(self) -> str:
        return self._content


async def _read_one(handle: FileHandle) -> CodeFile:
    try:
        content = await handle.read_text()
    except (OSError, UnicodeDecodeError) as e:
        log.warning(
            LogEventNames.FILE_READ_FAILED,
            file_name=handle.name,
            error_type=type(e).__name__,
            error=str(e),
        )
        raise IngestionError(f"Could not read {handle.name}", file_name=handle.name) from e
    return CodeFile(name=handle.name, content=content)


async def read_files(handles: Iterable[FileHandle]) -> FileStore:
    """Read every handle concurrently and build a store in upload order.

    Args:
        handles: Uploaded files, in upload order

    Returns:
        A store holding every file

    Raises:
        IngestionError: If any read fails, or two files share a name
    """
    handles = list(handles)
    results = await asyncio.gather(*(_read_one(h) for h in handles), return_exceptions=True)

    # Every read has settled; report the first failure in upload order
    files: list[CodeFile] = []
    for result in results:
        if isinstance(result, BaseException):
            raise result
        files.append(result)

    try:
        store = FileStore(files)
    except DuplicateFileError as e:
        raise IngestionError(str(e)) from e

    log.info(LogEventNames.FILES_INGESTED, file_count=len(store))
    return store


def load_directory(root: Path) -> list[PathFileHandle]:
    """Collect handles for every file under ``root``.

    Hidden files and directories (leading dot) are skipped. Names are POSIX
    paths relative to ``root``, sorted.

    Raises:
        IngestionError: If ``root`` is not a directory
    """
    if not root.is_dir():
        raise IngestionError(f"Not a directory: {root}")

    handles: list[PathFileHandle] = []
    for path in sorted(root.rglob("*")):
        relative = path.relative_to(root)
        if any(part.startswith(".") for part in relative.parts):
            continue
        if not path.is_file():
            continue
        handles.append(PathFileHandle(path, name=relative.as_posix()))

    handles.sort(key=lambda h: h.name)
    return handles
