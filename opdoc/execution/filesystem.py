"""Read-only filesystem views used by the planner."""

from __future__ import annotations

from pathlib import Path, PurePosixPath
from typing import Protocol, runtime_checkable


@runtime_checkable
class FileSystemView(Protocol):
    """What the planner may ask about the project tree. Paths are root-relative."""

    def exists(self, path: str) -> bool: ...

    def is_file(self, path: str) -> bool: ...

    def read_text(self, path: str) -> str: ...

    def is_within_root(self, path: str) -> bool: ...


class LocalFileSystem:
    """View over a real directory."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).resolve()

    def _abs(self, path: str) -> Path:
        return self.root / path

    def exists(self, path: str) -> bool:
        p = self._abs(path)
        return p.exists() or p.is_symlink()

    def is_file(self, path: str) -> bool:
        return self._abs(path).is_file()

    def read_text(self, path: str) -> str:
        with open(self._abs(path), encoding="utf-8", newline="") as f:
            return f.read()

    def is_within_root(self, path: str) -> bool:
        """True if the path, with symlinks resolved, stays under the root."""
        return self._abs(path).resolve().is_relative_to(self.root)


class MemoryFileSystem:
    """In-memory view for tests: a mapping of relative path to content."""

    def __init__(self, files: dict[str, str] | None = None) -> None:
        self.files = {str(PurePosixPath(k)): v for k, v in (files or {}).items()}

    def exists(self, path: str) -> bool:
        prefix = f"{path}/"
        return path in self.files or any(k.startswith(prefix) for k in self.files)

    def is_file(self, path: str) -> bool:
        return path in self.files

    def read_text(self, path: str) -> str:
        try:
            return self.files[path]
        except KeyError:
            raise FileNotFoundError(path) from None

    def is_within_root(self, path: str) -> bool:
        return True
