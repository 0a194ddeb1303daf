"""Execution environments that answer file questions for checkers."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol


class EnvironmentReadError(OSError):
    """Raised when an environment cannot read a requested file."""


class Environment(Protocol):
    """Scoped file-existence and file-read operations."""

    def file_exists(self, path: str) -> bool:
        """Return True when `path` (relative to the project root) exists."""

    def read_file(self, path: str) -> str:
        """Return the text content of `path` or raise EnvironmentReadError."""


class LocalEnvironment:
    """Environment backed by the local filesystem under a project root."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root).expanduser().resolve()

    def file_exists(self, path: str) -> bool:
        try:
            return self._resolve(path).is_file()
        except EnvironmentReadError:
            return False

    def read_file(self, path: str) -> str:
        target = self._resolve(path)
        try:
            return target.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise EnvironmentReadError(f"Cannot read {path}: {exc}") from exc

    def _resolve(self, path: str) -> Path:
        candidate = (self.root / path).resolve()
        if candidate != self.root and self.root not in candidate.parents:
            raise EnvironmentReadError(f"Path escapes project root: {path}")
        return candidate


class FileListEnvironment:
    """Answers existence from a scanned file list and delegates reads."""

    def __init__(self, files: list[str] | set[str], reader: Environment | None = None) -> None:
        self._files = {str(path).replace("\\", "/") for path in files}
        self._reader = reader

    def file_exists(self, path: str) -> bool:
        return path in self._files

    def read_file(self, path: str) -> str:
        if self._reader is None:
            raise EnvironmentReadError(f"No reader configured for {path}")
        return self._reader.read_file(path)


__all__ = ["Environment", "EnvironmentReadError", "FileListEnvironment", "LocalEnvironment"]
