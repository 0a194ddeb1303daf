"""Runs synchronisation passes against a project checked out on disk."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Set

from .changes import ChangeDetector, changed_component_ids
from .config import ReqSyncConfig, load_config
from .documents import MarkdownDocumentValidator
from .environment import FileListEnvironment, LocalEnvironment
from .graph import (
    Cycle,
    DependencyCycleError,
    build_dependency_graph,
    topological_order,
    validate_dependency_graph,
)
from .layout import FileLayout
from .logging import get_logger
from .models import Component
from .report import StatusReport, Summary, summarize
from .repo_scanner import RepoScanner
from .requirements.registry import Registry
from .requirements.store import JsonRequirementStore
from .sync import RequirementSync, SyncRequest
from .test_results import load_failing_tests


@dataclass
class SyncOutcome:
    """Result of a workspace synchronisation."""

    components: List[Component]
    summary: Summary
    mode: str
    dry_run: bool
    changed_ids: Set[str] = field(default_factory=set)
    report_path: Optional[Path] = None


@dataclass
class GraphCheck:
    """Cycles in the declared dependency graph and the order dependencies resolve in."""

    cycles: List[Cycle]
    order: List[str]

    @property
    def acyclic(self) -> bool:
        return not self.cycles


class Workspace:
    """Wires configuration, scanning, change detection and storage around a sync pass."""

    def __init__(
        self,
        scanner: RepoScanner | None = None,
        change_detector: ChangeDetector | None = None,
        report: StatusReport | None = None,
    ) -> None:
        self.scanner = scanner or RepoScanner()
        self.change_detector = change_detector or ChangeDetector()
        self.report = report or StatusReport()
        self.logger = get_logger("workspace")

    def run_sync(
        self,
        path: str | Path,
        *,
        force: bool = False,
        dry_run: bool = False,
        changed: Iterable[str] | None = None,
        diff_base: str | None = None,
    ) -> SyncOutcome:
        """Synchronise requirements for the project rooted at `path`."""
        root = Path(path).expanduser().resolve()
        config = load_config(root)
        self.logger.info("Starting sync for %s (%s)", config.project.name, root)

        files = self.scanner.scan(root, config.exclude_paths)
        self.logger.debug("Scanner discovered %d files", len(files))
        failing_tests = load_failing_tests(config.test_results)

        layout = FileLayout(config.layout)
        store = JsonRequirementStore(config.store_path)
        changed_ids = self._changed_ids(config, layout, root, changed, diff_base)

        full = force or not store.has_project(config.scope) or (changed is None and diff_base is None)
        engine = RequirementSync(
            environment=FileListEnvironment(files, reader=LocalEnvironment(root)),
            registry=Registry().with_overrides(config.thresholds),
            store=store,
            layout=layout,
            validator=MarkdownDocumentValidator(),
        )
        components = engine.sync(
            SyncRequest(
                scope=config.scope,
                project=config.project,
                components=config.components,
                dependencies=config.dependencies,
                changed_ids=changed_ids,
                file_list=files,
                failing_tests=failing_tests,
                force=full,
                persist=not dry_run,
            )
        )

        report_path: Optional[Path] = None
        if not dry_run:
            report_path = config.report_path
            report_path.parent.mkdir(parents=True, exist_ok=True)
            report_path.write_text(self.report.render(config.project, components), encoding="utf-8")

        summary = summarize(components)
        self.logger.info(
            "Sync finished: %d/%d components complete, %d/%d requirements satisfied",
            summary.complete,
            summary.components,
            summary.satisfied,
            summary.requirements,
        )
        return SyncOutcome(
            components=components,
            summary=summary,
            mode="full" if full else "incremental",
            dry_run=dry_run,
            changed_ids=changed_ids,
            report_path=report_path,
        )

    def check_graph(self, path: str | Path) -> GraphCheck:
        """Validate the declared dependency graph of the project at `path`."""
        config = load_config(Path(path).expanduser().resolve())
        index = build_dependency_graph(config.components, config.dependencies)
        cycles: List[Cycle] = []
        try:
            validate_dependency_graph(index)
        except DependencyCycleError as exc:
            self.logger.warning("%s", exc)
            cycles = exc.cycles
        order = [component.id for component in topological_order(index)]
        return GraphCheck(cycles=cycles, order=order)

    def _changed_ids(
        self,
        config: ReqSyncConfig,
        layout: FileLayout,
        root: Path,
        changed: Iterable[str] | None,
        diff_base: str | None,
    ) -> Set[str]:
        ids: Set[str] = set(changed or [])
        if diff_base is not None:
            change_set = self.change_detector.compute(root, diff_base)
            index = build_dependency_graph(config.components, config.dependencies)
            ids |= changed_component_ids(index, layout, config.project, change_set.changed_files)
            self.logger.debug("%d files changed since %s", len(change_set.changed_files), diff_base)
        return ids


__all__ = ["GraphCheck", "SyncOutcome", "Workspace"]
