"""Project tree scanning for the flat file listing consumed by sync passes."""

from __future__ import annotations

import os
from dataclasses import dataclass
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Iterable, Iterator, List, Optional

from .config import STATE_DIRNAME
from .logging import get_logger

_LOGGER = get_logger("scanner")

_SKIPPED_DIRS = frozenset(
    {
        ".git",
        ".hg",
        ".svn",
        ".venv",
        "node_modules",
        "__pycache__",
        ".pytest_cache",
        ".mypy_cache",
        ".idea",
        STATE_DIRNAME,
    }
)

_SKIPPED_FILES = frozenset({".DS_Store", "Thumbs.db"})


@dataclass(frozen=True)
class IgnorePattern:
    """One gitignore-style pattern, scoped to the directory that declared it."""

    glob: str
    base: str = ""
    directory_only: bool = False
    rooted: bool = False
    negated: bool = False

    @classmethod
    def parse(cls, line: str, base: str = "") -> Optional["IgnorePattern"]:
        text = line.strip()
        if not text or text.startswith("#"):
            return None
        negated = text.startswith("!")
        if negated:
            text = text[1:]
        directory_only = text.endswith("/")
        text = text.rstrip("/")
        # A slash anywhere but the end pins the pattern to its base directory.
        rooted = "/" in text
        text = text.lstrip("/")
        if not text:
            return None
        return cls(
            glob=text,
            base=base,
            directory_only=directory_only,
            rooted=rooted,
            negated=negated,
        )

    def applies_to(self, rel_path: str, is_dir: bool) -> bool:
        if self.base:
            if not rel_path.startswith(f"{self.base}/"):
                return False
            rel_path = rel_path[len(self.base) + 1:]
        if self.directory_only and not is_dir:
            return False
        if self.rooted:
            return fnmatchcase(rel_path, self.glob)
        return fnmatchcase(rel_path.rsplit("/", 1)[-1], self.glob)


class IgnoreRules:
    """Ordered ignore patterns where the last matching pattern decides."""

    def __init__(self, patterns: Iterable[IgnorePattern] = ()) -> None:
        self._patterns: List[IgnorePattern] = list(patterns)

    def __len__(self) -> int:
        return len(self._patterns)

    def add_lines(self, lines: Iterable[str], base: str = "") -> None:
        for line in lines:
            pattern = IgnorePattern.parse(line, base)
            if pattern is not None:
                self._patterns.append(pattern)

    def add_gitignore(self, path: Path, base: str = "") -> None:
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            _LOGGER.warning("Skipping unreadable ignore file %s: %s", path, exc)
            return
        self.add_lines(text.splitlines(), base)

    def ignored(self, rel_path: str, is_dir: bool) -> bool:
        verdict = False
        for pattern in self._patterns:
            if pattern.applies_to(rel_path, is_dir):
                verdict = not pattern.negated
        return verdict


class RepoScanner:
    """Lists project files relative to the root, honouring nested .gitignore files."""

    def scan(self, root: str | Path, exclude_paths: Iterable[str] = ()) -> List[str]:
        """Return sorted POSIX paths of every non-ignored file under `root`."""
        root_path = Path(root).expanduser().resolve()
        if not root_path.exists():
            raise FileNotFoundError(f"Project path not found: {root}")
        if not root_path.is_dir():
            raise NotADirectoryError(f"Project path is not a directory: {root}")

        rules = IgnoreRules()
        rules.add_lines(exclude_paths)
        files = sorted(self._walk(root_path, rules))
        _LOGGER.debug("Scanned %s: %d files, %d ignore patterns", root_path, len(files), len(rules))
        return files

    def _walk(self, root: Path, rules: IgnoreRules) -> Iterator[str]:
        for dirpath, dirnames, filenames in os.walk(root):
            rel_dir = Path(dirpath).relative_to(root).as_posix()
            rel_dir = "" if rel_dir == "." else rel_dir
            if ".gitignore" in filenames:
                rules.add_gitignore(Path(dirpath) / ".gitignore", rel_dir)

            dirnames[:] = sorted(
                name
                for name in dirnames
                if name not in _SKIPPED_DIRS and not rules.ignored(_join(rel_dir, name), True)
            )
            for name in filenames:
                rel_path = _join(rel_dir, name)
                if name in _SKIPPED_FILES or rules.ignored(rel_path, False):
                    continue
                yield rel_path


def _join(rel_dir: str, name: str) -> str:
    return f"{rel_dir}/{name}" if rel_dir else name


__all__ = ["IgnorePattern", "IgnoreRules", "RepoScanner"]
