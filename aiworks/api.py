from __future__ import annotations

import logging
import uuid

from fastapi import FastAPI, Header, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from .config import app_config, configure_logging
from .engine import WorkflowEngine
from .errors import AIWorksError
from .llm import GeminiClient
from .models import (
    Edge,
    ErrorPolicy,
    ExecuteRequest,
    ExecutionRecord,
    Node,
    RunRequest,
    Workflow,
    validate_workflow,
)
from .nodes import BUILTIN_KINDS, build_registry
from .store import SQLiteStore
from .tooling import tool_catalog

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="AI Works", version="0.3.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://127.0.0.1:3000", "http://localhost:3000"],
    allow_origin_regex=r"^https?://(127\.0\.0\.1|localhost):\d+$",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

llm = GeminiClient()
registry = build_registry(llm)
engine = WorkflowEngine(registry, llm)
store = SQLiteStore(str(app_config.storage_settings()["db_path"]))


def _default_policy() -> ErrorPolicy:
    configured = str(app_config.executor_settings()["error_policy"])
    try:
        return ErrorPolicy(configured)
    except ValueError:
        logger.warning("Unknown error_policy %r in config; using continue", configured)
        return ErrorPolicy.CONTINUE


async def _run_and_record(
    workflow_id: str | None,
    nodes: list[Node],
    edges: list[Edge],
    request: RunRequest,
    header_key: str | None,
) -> ExecutionRecord:
    api_key = request.api_key or header_key or ""
    execution = store.create_execution(workflow_id)

    try:
        ctx = await engine.run(
            nodes,
            edges,
            api_key,
            policy=request.error_policy or _default_policy(),
            validate_key=bool(app_config.executor_settings()["validate_api_key"]),
        )
    except AIWorksError as exc:
        store.finish_execution(execution.id, status="failed", error=str(exc))
        raise HTTPException(status_code=400, detail=f"Execution failed: {exc}") from exc

    store.finish_execution(execution.id, status=ctx.status, results=ctx.results, logs=ctx.logs)
    updated = store.get_execution(execution.id)
    if updated is None:
        raise HTTPException(status_code=500, detail="Execution record missing")
    return updated


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/node-types")
def list_node_types() -> list[str]:
    return sorted(set(BUILTIN_KINDS) | set(registry.list_types()))


@app.get("/node-catalog")
def node_catalog(category: str | None = None, q: str | None = None) -> list[dict[str, object]]:
    if not q and not category:
        return registry.list_specs()
    specs = registry.search(q) if q else registry.by_category(category or "")
    if q and category:
        specs = [spec for spec in specs if spec.category == category]
    return [spec.to_dict() for spec in specs]


@app.get("/config")
def config() -> dict[str, dict[str, object]]:
    return {
        "llm": app_config.llm_settings(),
        "executor": app_config.executor_settings(),
    }


@app.get("/tool-catalog")
def tools() -> list[dict[str, str]]:
    return tool_catalog()


def _workflow_or_404(workflow_id: str) -> Workflow:
    workflow = store.get_workflow(workflow_id)
    if workflow is None:
        raise HTTPException(status_code=404, detail=f"Workflow {workflow_id} not found")
    return workflow


def _ensure_valid(workflow: Workflow) -> Workflow:
    errors = validate_workflow(workflow)
    if errors:
        raise HTTPException(status_code=422, detail=errors)
    return workflow


@app.post("/workflows/validate")
def validate(workflow: Workflow) -> dict[str, object]:
    errors = validate_workflow(workflow)
    return {"valid": not errors, "errors": errors}


@app.post("/workflows", response_model=Workflow)
def save_workflow(workflow: Workflow) -> Workflow:
    if store.get_workflow(workflow.id) is not None:
        raise HTTPException(status_code=409, detail=f"Workflow {workflow.id} already exists")
    return store.create_workflow(_ensure_valid(workflow))


@app.post("/workflows/new", response_model=Workflow)
def save_new_workflow(workflow: Workflow) -> Workflow:
    _ensure_valid(workflow)
    return store.create_workflow(workflow.model_copy(update={"id": str(uuid.uuid4())}))


@app.get("/workflows", response_model=list[Workflow])
def workflows() -> list[Workflow]:
    return store.list_workflows()


@app.get("/workflows/{workflow_id}", response_model=Workflow)
def workflow_detail(workflow_id: str) -> Workflow:
    return _workflow_or_404(workflow_id)


@app.put("/workflows/{workflow_id}", response_model=Workflow)
def replace_workflow(workflow_id: str, workflow: Workflow) -> Workflow:
    if workflow.id != workflow_id:
        raise HTTPException(status_code=400, detail="Workflow id in body does not match the path")
    _workflow_or_404(workflow_id)
    return store.update_workflow(workflow_id, _ensure_valid(workflow)) or workflow


@app.delete("/workflows/{workflow_id}")
def remove_workflow(workflow_id: str) -> dict[str, bool]:
    if not store.delete_workflow(workflow_id):
        raise HTTPException(status_code=404, detail=f"Workflow {workflow_id} not found")
    return {"deleted": True}


@app.post("/workflows/{workflow_id}/run", response_model=ExecutionRecord)
async def run_workflow(
    workflow_id: str,
    request: RunRequest,
    x_api_key: str | None = Header(default=None),
) -> ExecutionRecord:
    workflow = _workflow_or_404(workflow_id)
    return await _run_and_record(workflow_id, workflow.nodes, workflow.edges, request, x_api_key)


@app.post("/execute", response_model=ExecutionRecord)
async def execute(
    request: ExecuteRequest,
    x_api_key: str | None = Header(default=None),
) -> ExecutionRecord:
    return await _run_and_record(None, request.nodes, request.edges, request, x_api_key)


@app.get("/executions", response_model=list[ExecutionRecord])
def executions(workflow_id: str | None = None) -> list[ExecutionRecord]:
    return store.list_executions(workflow_id)


@app.get("/executions/{execution_id}", response_model=ExecutionRecord)
def execution_detail(execution_id: str) -> ExecutionRecord:
    record = store.get_execution(execution_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Execution {execution_id} not found")
    return record
