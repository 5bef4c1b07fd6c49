from __future__ import annotations

import json
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .models import ExecutionLog, ExecutionRecord, ExecutionResult, Workflow

SCHEMA = """
CREATE TABLE IF NOT EXISTS workflows (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    definition TEXT NOT NULL,
    created_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS executions (
    id TEXT PRIMARY KEY,
    workflow_id TEXT,
    status TEXT NOT NULL,
    started_at TEXT NOT NULL,
    finished_at TEXT,
    results TEXT,
    logs TEXT,
    error TEXT
);
CREATE INDEX IF NOT EXISTS idx_executions_workflow ON executions (workflow_id, started_at);
"""


def dump_results(results: dict[str, ExecutionResult]) -> str:
    return json.dumps({node_id: result.to_dict() for node_id, result in results.items()})


def load_results(blob: str) -> dict[str, ExecutionResult]:
    return {node_id: ExecutionResult.model_validate(item) for node_id, item in json.loads(blob).items()}


def _dump_logs(logs: list[ExecutionLog]) -> str:
    return json.dumps([entry.model_dump(mode="json", by_alias=True) for entry in logs])


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SQLiteStore:
    """Workflow definitions and execution history in a single SQLite file."""

    def __init__(self, db_path: str = "data/workflows.db") -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.executescript(SCHEMA)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _fetch(self, query: str, params: tuple[Any, ...] = ()) -> list[sqlite3.Row]:
        with self._connect() as conn:
            return conn.execute(query, params).fetchall()

    def _write(self, query: str, params: tuple[Any, ...] | dict[str, Any]) -> int:
        with self._connect() as conn:
            return conn.execute(query, params).rowcount

    # workflows

    def create_workflow(self, workflow: Workflow) -> Workflow:
        self._write(
            "INSERT INTO workflows (id, name, definition, created_at) VALUES (?, ?, ?, ?)",
            (workflow.id, workflow.name, workflow.model_dump_json(by_alias=True), workflow.created_at.isoformat()),
        )
        return workflow

    def update_workflow(self, workflow_id: str, workflow: Workflow) -> Workflow | None:
        changed = self._write(
            "UPDATE workflows SET name = ?, definition = ? WHERE id = ?",
            (workflow.name, workflow.model_dump_json(by_alias=True), workflow_id),
        )
        return workflow if changed else None

    def delete_workflow(self, workflow_id: str) -> bool:
        return self._write("DELETE FROM workflows WHERE id = ?", (workflow_id,)) > 0

    def get_workflow(self, workflow_id: str) -> Workflow | None:
        rows = self._fetch("SELECT definition FROM workflows WHERE id = ?", (workflow_id,))
        return Workflow.model_validate_json(rows[0]["definition"]) if rows else None

    def list_workflows(self) -> list[Workflow]:
        rows = self._fetch("SELECT definition FROM workflows ORDER BY created_at DESC")
        return [Workflow.model_validate_json(row["definition"]) for row in rows]

    # executions

    def create_execution(self, workflow_id: str | None) -> ExecutionRecord:
        execution = ExecutionRecord(
            id=str(uuid.uuid4()),
            workflow_id=workflow_id,
            status="running",
            started_at=datetime.now(timezone.utc),
        )
        self._write(
            "INSERT INTO executions (id, workflow_id, status, started_at) VALUES (?, ?, ?, ?)",
            (execution.id, workflow_id, execution.status, execution.started_at.isoformat()),
        )
        return execution

    def finish_execution(
        self,
        execution_id: str,
        status: str,
        results: dict[str, ExecutionResult] | None = None,
        logs: list[ExecutionLog] | None = None,
        error: str | None = None,
    ) -> None:
        self._write(
            """
            UPDATE executions
            SET status = :status, finished_at = :finished_at, results = :results, logs = :logs, error = :error
            WHERE id = :id
            """,
            {
                "id": execution_id,
                "status": status,
                "finished_at": _now(),
                "results": dump_results(results) if results is not None else None,
                "logs": _dump_logs(logs) if logs is not None else None,
                "error": error,
            },
        )

    def get_execution(self, execution_id: str) -> ExecutionRecord | None:
        rows = self._fetch("SELECT * FROM executions WHERE id = ?", (execution_id,))
        return self._row_to_execution(rows[0]) if rows else None

    def list_executions(self, workflow_id: str | None = None) -> list[ExecutionRecord]:
        if workflow_id is None:
            rows = self._fetch("SELECT * FROM executions ORDER BY started_at DESC")
        else:
            rows = self._fetch(
                "SELECT * FROM executions WHERE workflow_id = ? ORDER BY started_at DESC",
                (workflow_id,),
            )
        return [self._row_to_execution(row) for row in rows]

    @staticmethod
    def _row_to_execution(row: sqlite3.Row) -> ExecutionRecord:
        finished_at = row["finished_at"]
        return ExecutionRecord(
            id=row["id"],
            workflow_id=row["workflow_id"],
            status=row["status"],
            started_at=datetime.fromisoformat(row["started_at"]),
            finished_at=datetime.fromisoformat(finished_at) if finished_at else None,
            results=load_results(row["results"]) if row["results"] else None,
            logs=[ExecutionLog.model_validate(item) for item in json.loads(row["logs"] or "[]")],
            error=row["error"],
        )
