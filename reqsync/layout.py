"""Expected file locations for component artifacts."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Optional

from .models import Component, Project

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")

CONTEXT_TYPES = frozenset({"context", "coordination_context", "coordinator"})

# Artifact category -> key in the expected files mapping.
ARTIFACT_FILE_KEYS: Dict[str, str] = {
    "specification": "spec_file",
    "code": "code_file",
    "tests": "test_file",
    "review": "review_file",
}


def module_to_path(module_name: str) -> str:
    """Convert `MyApp.UserRepo` style names into `my_app/user_repo` paths."""
    parts = []
    for segment in module_name.split("."):
        segment = segment.strip()
        if not segment:
            continue
        snake = _CAMEL_BOUNDARY.sub("_", segment).replace("-", "_").lower()
        parts.append(snake)
    return "/".join(parts)


@dataclass(frozen=True)
class LayoutTemplates:
    """Path templates; `{path}` expands to the component's module path."""

    spec: str = "docs/spec/{path}.spec.md"
    code: str = "lib/{path}.py"
    test: str = "tests/{path}_test.py"
    design: str = "docs/design/{path}.md"
    review: str = "docs/design/{path}/design_review.md"


class FileLayout:
    """Resolves the expected artifact files for a component within its project."""

    def __init__(self, templates: LayoutTemplates | None = None) -> None:
        self.templates = templates or LayoutTemplates()

    def module_path(self, component: Component, project: Project) -> str:
        prefix = f"{project.module_name}."
        name = component.module_name
        if name.startswith(prefix):
            name = name[len(prefix):]
        if name == project.module_name:
            return module_to_path(name)
        return module_to_path(f"{project.module_name}.{name}")

    def component_files(self, component: Component, project: Project) -> Dict[str, str]:
        """Return `{spec_file, code_file, test_file, design_file[, review_file]}`."""
        path = self.module_path(component, project)
        files = {
            "spec_file": self.templates.spec.format(path=path),
            "code_file": self.templates.code.format(path=path),
            "test_file": self.templates.test.format(path=path),
            "design_file": self.templates.design.format(path=path),
        }
        if (component.type or "").lower() in CONTEXT_TYPES:
            files["review_file"] = self.templates.review.format(path=path)
        return files

    def file_for_artifact(
        self, component: Component, project: Project, artifact_type: str
    ) -> Optional[str]:
        key = ARTIFACT_FILE_KEYS.get(artifact_type)
        if key is None:
            return None
        return self.component_files(component, project).get(key)


__all__ = [
    "ARTIFACT_FILE_KEYS",
    "CONTEXT_TYPES",
    "FileLayout",
    "LayoutTemplates",
    "module_to_path",
]
