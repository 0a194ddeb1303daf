"""Configuration loading for reqsync (.reqsync.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

from .layout import LayoutTemplates
from .models import Component, Dependency, Project, Scope

CONFIG_FILENAME = ".reqsync.yml"
STATE_DIRNAME = ".reqsync"


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class ReqSyncConfig:
    """Represents the settings and component catalogue defined in .reqsync.yml."""

    root: Path
    project: Project
    layout: LayoutTemplates = field(default_factory=LayoutTemplates)
    thresholds: Dict[str, float] = field(default_factory=dict)
    test_results: Optional[Path] = None
    exclude_paths: List[str] = field(default_factory=list)
    components: List[Component] = field(default_factory=list)
    dependencies: List[Dependency] = field(default_factory=list)

    @property
    def scope(self) -> Scope:
        return Scope(project_id=self.project.module_name)

    @property
    def state_dir(self) -> Path:
        return self.root / STATE_DIRNAME

    @property
    def store_path(self) -> Path:
        return self.state_dir / "requirements.json"

    @property
    def report_path(self) -> Path:
        return self.state_dir / "status.md"


def load_config(config_path: Path) -> ReqSyncConfig:
    """Load configuration from disk."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()
    if not config_file.exists():
        raise FileNotFoundError(f"No {CONFIG_FILENAME} found in {root}")

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    project = _parse_project(data.get("project"), root)
    layout = _parse_layout(data.get("layout"))
    thresholds = _parse_thresholds(_as_dict(data.get("requirements")).get("thresholds"))

    test_results_str = _as_str(data.get("test_results"))
    test_results = root / test_results_str if test_results_str else None

    components, dependencies = _parse_components(data.get("components"))

    return ReqSyncConfig(
        root=root,
        project=project,
        layout=layout,
        thresholds=thresholds,
        test_results=test_results,
        exclude_paths=_as_str_list(data.get("exclude_paths")),
        components=components,
        dependencies=dependencies,
    )


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    if config_path.name != CONFIG_FILENAME:
        return (config_path.parent / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _parse_project(value: Any, root: Path) -> Project:
    if value is None:
        return Project(name=root.name, module_name=root.name)
    if isinstance(value, str):
        return Project(name=value, module_name=value)
    if not isinstance(value, dict):
        raise ConfigError("project must be a mapping with name and module_name")
    name = _as_str(value.get("name"))
    if not name:
        raise ConfigError("project.name is required")
    return Project(name=name, module_name=_as_str(value.get("module_name")) or name)


def _parse_layout(value: Any) -> LayoutTemplates:
    if value is None:
        return LayoutTemplates()
    if not isinstance(value, dict):
        raise ConfigError("layout must be a mapping of artifact templates")
    defaults = LayoutTemplates()
    overrides: Dict[str, str] = {}
    for key in ("spec", "code", "test", "design", "review"):
        template = _as_str(value.get(key))
        if template is None:
            continue
        if "{path}" not in template:
            raise ConfigError(f"layout.{key} must contain the {{path}} placeholder")
        try:
            template.format(path="x")
        except (KeyError, IndexError, ValueError) as exc:
            raise ConfigError(f"layout.{key} has an invalid placeholder in {template!r}: {exc!r}") from exc
        overrides[key] = template
    return LayoutTemplates(**{**defaults.__dict__, **overrides})


def _parse_thresholds(value: Any) -> Dict[str, float]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError("requirements.thresholds must map requirement names to numbers")
    thresholds: Dict[str, float] = {}
    for name, raw in value.items():
        threshold = _as_float(raw)
        if threshold is None or isinstance(raw, bool):
            raise ConfigError(f"Threshold for {name} must be a number")
        if not 0.0 <= threshold <= 1.0:
            raise ConfigError(f"Threshold for {name} must be between 0.0 and 1.0, got {threshold}")
        thresholds[str(name)] = threshold
    return thresholds


def _parse_components(value: Any) -> tuple[List[Component], List[Dependency]]:
    if value is None:
        return [], []
    if not isinstance(value, list):
        raise ConfigError("components must be a list")

    components: List[Component] = []
    dependencies: List[Dependency] = []
    seen: set[str] = set()
    for position, raw in enumerate(value):
        if not isinstance(raw, dict):
            raise ConfigError(f"components[{position}] must be a mapping")
        module_name = _as_str(raw.get("module_name")) or _as_str(raw.get("name"))
        if not module_name:
            raise ConfigError(f"components[{position}] needs a module_name or name")
        component_type = _as_str(raw.get("type"))
        if not component_type:
            raise ConfigError(f"Component {module_name} needs a type")
        component_id = _as_str(raw.get("id")) or module_name
        if component_id in seen:
            raise ConfigError(f"Duplicate component id: {component_id}")
        seen.add(component_id)

        priority_raw = raw.get("priority")
        priority = _as_int(priority_raw)
        if priority_raw is not None and (priority is None or isinstance(priority_raw, bool)):
            raise ConfigError(f"Component {component_id} priority must be an integer")

        components.append(
            Component(
                id=component_id,
                name=_as_str(raw.get("name")) or module_name.rsplit(".", 1)[-1],
                type=component_type,
                module_name=module_name,
                parent_id=_as_str(raw.get("parent")),
                priority=priority,
                description=_as_str(raw.get("description")),
            )
        )
        for target in _as_str_list(raw.get("depends_on")):
            dependencies.append(Dependency(source_id=component_id, target_id=target))
    return components, dependencies


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []


__all__ = ["CONFIG_FILENAME", "ConfigError", "ReqSyncConfig", "load_config"]
