"""Data models for in-memory source files."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, replace

from ..utils.async_helpers import AssistantError


class DuplicateFileError(AssistantError):
    """Two files in one store share a name."""


@dataclass(frozen=True)
class CodeFile:
    """A named text buffer."""

    name: str
    content: str

    @property
    def lines(self) -> list[str]:
        """Content split on newlines; a trailing newline yields a final empty line."""
        return self.content.split("\n")

    @property
    def is_blank(self) -> bool:
        """True when the buffer holds only whitespace."""
        return not self.content.strip()


class FileStore:
    """Ordered, name-unique collection of CodeFile buffers.

    A store is never mutated in place. Every change returns a new store; files
    that were not touched are carried over as the same objects, so callers can
    compare by identity to see what changed.

    Example:
        store = FileStore([CodeFile("main.py", "print(1)")])
        store2 = store.with_content("main.py", "print(2)")
        assert store.get("main.py").content == "print(1)"
    """

    __slots__ = ("_files",)

    def __init__(self, files: Iterable[CodeFile] = ()) -> None:
        """Build a store.

        Raises:
            DuplicateFileError: If two files share a name.
        """
        self._files: tuple[CodeFile, ...] = tuple(files)
        seen: set[str] = set()
        for file in self._files:
            if file.name in seen:
                raise DuplicateFileError(f"Duplicate file name in store: {file.name}")
            seen.add(file.name)

    @property
    def files(self) -> tuple[CodeFile, ...]:
        """All files in upload order."""
        return self._files

    @property
    def names(self) -> list[str]:
        """File names in upload order."""
        return [f.name for f in self._files]

    @property
    def first(self) -> CodeFile | None:
        """The first file in upload order, if any."""
        return self._files[0] if self._files else None

    def __iter__(self) -> Iterator[CodeFile]:
        return iter(self._files)

    def __len__(self) -> int:
        return len(self._files)

    def __contains__(self, name: object) -> bool:
        return any(f.name == name for f in self._files)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FileStore):
            return NotImplemented
        return self._files == other._files

    def __hash__(self) -> int:
        return hash(self._files)

    def __repr__(self) -> str:
        return f"FileStore({self.names!r})"

    def get(self, name: str) -> CodeFile | None:
        """Return the file called ``name``, or None."""
        for file in self._files:
            if file.name == name:
                return file
        return None

    def with_content(self, name: str, content: str) -> FileStore:
        """Return a store where ``name`` holds ``content``.

        Raises:
            KeyError: If no file has that name.
        """
        if name not in self:
            raise KeyError(name)
        return FileStore(
            replace(f, content=content) if f.name == name else f for f in self._files
        )

    def rename(self, old_name: str, new_name: str) -> FileStore:
        """Return a store where ``old_name`` is called ``new_name``, keeping its position.

        Raises:
            KeyError: If no file is called ``old_name``.
            DuplicateFileError: If another file already uses ``new_name``.
        """
        if old_name not in self:
            raise KeyError(old_name)
        if old_name == new_name:
            return self
        return FileStore(replace(f, name=new_name) if f.name == old_name else f for f in self._files)
