"""Change detection: maps modified files onto the components that own them."""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, List, Sequence, Set

from .layout import FileLayout
from .logging import get_logger
from .models import ComponentIndex, Project

_LOGGER = get_logger("changes")

GitRunner = Callable[..., str]


@dataclass(frozen=True)
class ChangeSet:
    """Files changed relative to a base revision, including uncommitted edits."""

    base: str
    changed_files: Sequence[str]


class ChangeDetector:
    """Lists changed files through git; the runner is injectable for tests."""

    def __init__(self, runner: GitRunner | None = None) -> None:
        self._runner = runner or _run_git

    def compute(self, repo_path: str | Path, diff_base: str) -> ChangeSet:
        repo = Path(repo_path)
        if not (repo / ".git").exists():
            raise RuntimeError(f"{repo_path} is not a Git repository")
        committed = _lines(self._git(repo, "diff", "--name-only", f"{diff_base}...HEAD"))
        pending = _porcelain_paths(self._git(repo, "status", "--porcelain", "--untracked-files=all"))
        changed = list(dict.fromkeys(committed + pending))
        _LOGGER.debug(
            "Detected %d changed files against %s (%d uncommitted)", len(changed), diff_base, len(pending)
        )
        return ChangeSet(base=diff_base, changed_files=changed)

    def _git(self, repo: Path, *args: str) -> str:
        command = ["git", *args]
        try:
            return self._runner(command, cwd=repo, capture_output=True)
        except subprocess.CalledProcessError as exc:
            stderr = (exc.stderr or "").strip()
            raise RuntimeError(f"`{' '.join(command)}` failed: {stderr or exc}") from exc
        except FileNotFoundError as exc:
            raise RuntimeError("git executable not found on PATH") from exc


def _run_git(args: Iterable[str], *, cwd: Path, capture_output: bool = False) -> str:
    completed = subprocess.run(
        list(args),
        cwd=str(cwd),
        check=True,
        text=True,
        capture_output=capture_output,
    )
    return completed.stdout if capture_output else ""


def _lines(output: str) -> List[str]:
    return [line.strip() for line in output.splitlines() if line.strip()]


def _porcelain_paths(output: str) -> List[str]:
    # `XY path` or `XY old -> new`; the two status columns may be blank.
    paths: List[str] = []
    for line in output.splitlines():
        if len(line) < 4:
            continue
        path = line[3:]
        if " -> " in path:
            path = path.split(" -> ", 1)[1]
        paths.append(path.strip().strip('"'))
    return paths


def changed_component_ids(
    index: ComponentIndex,
    layout: FileLayout,
    project: Project,
    changed_files: Iterable[str],
) -> Set[str]:
    """Return ids of components with at least one expected artifact among `changed_files`."""
    changed = {path.replace("\\", "/") for path in changed_files}
    if not changed:
        return set()
    ids: Set[str] = set()
    for component in index:
        expected = layout.component_files(component, project).values()
        if any(path in changed for path in expected):
            ids.add(component.id)
    return ids


__all__ = ["ChangeDetector", "ChangeSet", "changed_component_ids"]
