"""FastAPI application entrypoint for reqsync service mode."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional

from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..models import Component
from ..requirements.definitions import RequirementDefinitionError
from ..status import status_to_dict
from ..workspace import GraphCheck, SyncOutcome, Workspace


class SyncPayload(BaseModel):
    path: str
    force: bool = False
    dry_run: bool = False
    changed: Optional[List[str]] = None
    diff_base: Optional[str] = None


class RequirementModel(BaseModel):
    name: str
    artifact_type: str
    checker: str
    score: float
    satisfied: bool
    details: Dict[str, Any] = {}


class ComponentModel(BaseModel):
    id: str
    name: str
    type: str
    priority: Optional[int] = None
    status: Optional[Dict[str, Any]] = None
    requirements: List[RequirementModel] = []


class SyncResponse(BaseModel):
    mode: str
    dry_run: bool
    summary: Dict[str, int]
    components: List[ComponentModel]
    report_path: Optional[str] = None


class GraphPayload(BaseModel):
    path: str


class GraphResponse(BaseModel):
    acyclic: bool
    cycles: List[List[str]]
    order: List[str] = []


class HealthResponse(BaseModel):
    status: str


def _default_workspace() -> Workspace:
    return Workspace()


def _component_model(component: Component) -> ComponentModel:
    return ComponentModel(
        id=component.id,
        name=component.name,
        type=component.type,
        priority=component.priority,
        status=status_to_dict(component.status) if component.status is not None else None,
        requirements=[
            RequirementModel(
                name=requirement.name,
                artifact_type=requirement.artifact_type,
                checker=requirement.checker,
                score=requirement.score,
                satisfied=requirement.satisfied,
                details=requirement.details,
            )
            for requirement in component.requirements or []
        ],
    )


def create_app(
    workspace_factory: Callable[[], Workspace] = _default_workspace,
) -> FastAPI:
    """Create the FastAPI application exposing reqsync operations."""

    app = FastAPI(title="reqsync service", version="0.1.0")

    async def get_workspace() -> Workspace:
        return workspace_factory()

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.post("/sync", response_model=SyncResponse)
    async def sync_project(
        payload: SyncPayload,
        workspace: Workspace = Depends(get_workspace),
    ) -> SyncResponse:
        def _run_sync() -> SyncOutcome:
            return workspace.run_sync(
                payload.path,
                force=payload.force,
                dry_run=payload.dry_run,
                changed=payload.changed,
                diff_base=payload.diff_base,
            )

        loop = asyncio.get_running_loop()
        outcome = await loop.run_in_executor(None, _run_sync)
        return SyncResponse(
            mode=outcome.mode,
            dry_run=outcome.dry_run,
            summary=outcome.summary.as_dict(),
            components=[_component_model(component) for component in outcome.components],
            report_path=str(outcome.report_path) if outcome.report_path else None,
        )

    @app.post("/graph", response_model=GraphResponse)
    async def check_graph(
        payload: GraphPayload,
        workspace: Workspace = Depends(get_workspace),
    ) -> GraphResponse:
        def _run_check() -> GraphCheck:
            return workspace.check_graph(payload.path)

        loop = asyncio.get_running_loop()
        check = await loop.run_in_executor(None, _run_check)
        return GraphResponse(
            acyclic=check.acyclic,
            cycles=[list(cycle.component_ids) for cycle in check.cycles],
            order=check.order,
        )

    @app.exception_handler(FileNotFoundError)
    async def file_not_found_handler(_: Any, exc: FileNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(RequirementDefinitionError)
    async def definition_error_handler(_: Any, exc: RequirementDefinitionError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(RuntimeError)
    async def runtime_error_handler(_: Any, exc: RuntimeError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    return app


def run_service(host: str = "0.0.0.0", port: int = 8000) -> None:  # pragma: no cover - integration path
    import uvicorn

    uvicorn.run(create_app(), host=host, port=port)
