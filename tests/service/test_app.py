"""Tests for the FastAPI service mode."""

from __future__ import annotations

from pathlib import Path

import pytest

try:
    from fastapi.testclient import TestClient
except ModuleNotFoundError:  # pragma: no cover - optional dependency
    pytest.skip("fastapi not installed", allow_module_level=True)

from reqsync.config import ConfigError
from reqsync.graph import Cycle
from reqsync.layout import FileLayout
from reqsync.models import Requirement
from reqsync.report import summarize
from reqsync.status import analyze_status
from reqsync.service.app import create_app
from reqsync.workspace import GraphCheck, SyncOutcome
from tests._fixtures.components import PROJECT, make_component


class _StubWorkspace:
    def __init__(self) -> None:
        self.sync_calls: list[dict[str, object]] = []
        self.graph = GraphCheck(cycles=[], order=[])
        self.error: Exception | None = None

    def run_sync(
        self,
        path: str,
        *,
        force: bool = False,
        dry_run: bool = False,
        changed: list[str] | None = None,
        diff_base: str | None = None,
    ) -> SyncOutcome:
        self.sync_calls.append(
            {"path": path, "force": force, "dry_run": dry_run, "changed": changed, "diff_base": diff_base}
        )
        if self.error is not None:
            raise self.error
        cart = make_component("cart", priority=1)
        cart.status = analyze_status(
            FileLayout().component_files(cart, PROJECT), {"docs/spec/shop/cart.spec.md"}, []
        )
        cart.requirements = [
            Requirement(
                name="spec_file",
                artifact_type="specification",
                description="Specification file exists",
                checker="file_existence",
                score=1.0,
                satisfied=True,
                details={"status": "File exists", "path": "docs/spec/shop/cart.spec.md"},
            )
        ]
        components = [cart]
        return SyncOutcome(
            components=components,
            summary=summarize(components),
            mode="incremental" if changed else "full",
            dry_run=dry_run,
            changed_ids=set(changed or []),
            report_path=None if dry_run else Path(path) / ".reqsync" / "status.md",
        )

    def check_graph(self, path: str) -> GraphCheck:
        if self.error is not None:
            raise self.error
        return self.graph


@pytest.fixture
def workspace() -> _StubWorkspace:
    return _StubWorkspace()


@pytest.fixture
def client(workspace: _StubWorkspace) -> TestClient:
    return TestClient(create_app(lambda: workspace))  # type: ignore[arg-type, return-value]


def test_health_endpoint(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_sync_endpoint_returns_components(client: TestClient, workspace: _StubWorkspace, tmp_path: Path) -> None:
    response = client.post("/sync", json={"path": str(tmp_path), "changed": ["cart"]})

    assert response.status_code == 200
    data = response.json()
    assert data["mode"] == "incremental"
    assert data["summary"] == {"components": 1, "complete": 1, "requirements": 1, "satisfied": 1}
    assert data["components"][0]["id"] == "cart"
    assert data["components"][0]["requirements"][0]["details"]["status"] == "File exists"
    assert data["components"][0]["status"]["next_action"] == "implement_code"
    assert data["components"][0]["status"]["test_status"] == "not_run"
    assert data["report_path"].endswith("status.md")
    assert workspace.sync_calls == [
        {"path": str(tmp_path), "force": False, "dry_run": False, "changed": ["cart"], "diff_base": None}
    ]


def test_sync_dry_run_has_no_report(client: TestClient, tmp_path: Path) -> None:
    response = client.post("/sync", json={"path": str(tmp_path), "dry_run": True})

    assert response.status_code == 200
    assert response.json()["dry_run"] is True
    assert response.json()["report_path"] is None


def test_graph_endpoint_lists_cycles(client: TestClient, workspace: _StubWorkspace, tmp_path: Path) -> None:
    workspace.graph = GraphCheck(cycles=[Cycle(("billing", "cart"))], order=["billing", "cart"])

    response = client.post("/graph", json={"path": str(tmp_path)})

    assert response.status_code == 200
    assert response.json() == {
        "acyclic": False,
        "cycles": [["billing", "cart"]],
        "order": ["billing", "cart"],
    }


def test_missing_project_maps_to_404(client: TestClient, workspace: _StubWorkspace, tmp_path: Path) -> None:
    workspace.error = FileNotFoundError("No .reqsync.yml found")

    response = client.post("/sync", json={"path": str(tmp_path)})

    assert response.status_code == 404
    assert "No .reqsync.yml" in response.json()["detail"]


def test_invalid_configuration_maps_to_400(client: TestClient, workspace: _StubWorkspace, tmp_path: Path) -> None:
    workspace.error = ConfigError("project.name is required")

    response = client.post("/graph", json={"path": str(tmp_path)})

    assert response.status_code == 400
    assert response.json() == {"detail": "project.name is required"}
