"""Markdown status report rendered from synchronised components."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Sequence

from jinja2 import Environment, FileSystemLoader

from .models import Component, Project
from .status import next_action


@dataclass(frozen=True)
class Summary:
    """Headline counts for a synchronised project."""

    components: int
    complete: int
    requirements: int
    satisfied: int

    def as_dict(self) -> Dict[str, int]:
        return {
            "components": self.components,
            "complete": self.complete,
            "requirements": self.requirements,
            "satisfied": self.satisfied,
        }


def summarize(components: Sequence[Component]) -> Summary:
    requirements = [requirement for component in components for requirement in component.requirements or []]
    return Summary(
        components=len(components),
        complete=sum(1 for component in components if component.fully_satisfied),
        requirements=len(requirements),
        satisfied=sum(1 for requirement in requirements if requirement.satisfied),
    )


class StatusReport:
    """Renders `status.md.j2` from the bundled or a user supplied template directory."""

    def __init__(self, templates_dir: Path | None = None) -> None:
        directories: List[str] = []
        if templates_dir:
            directories.append(str(templates_dir))
        directories.append(str(Path(__file__).with_name("templates")))
        self._env = Environment(
            loader=FileSystemLoader(directories),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def render(self, project: Project, components: Sequence[Component]) -> str:
        rows = []
        for component in components:
            requirements = component.requirements or []
            rows.append(
                {
                    "name": component.name,
                    "type": component.type,
                    "priority": component.priority,
                    "satisfied": sum(1 for requirement in requirements if requirement.satisfied),
                    "total": len(requirements),
                    "next_action": next_action(component.status) if component.status else "unknown",
                    "unsatisfied": [requirement for requirement in requirements if not requirement.satisfied],
                }
            )
        template = self._env.get_template("status.md.j2")
        rendered = template.render(project=project, summary=summarize(components), rows=rows)
        return rendered.strip() + "\n"


__all__ = ["StatusReport", "Summary", "summarize"]
