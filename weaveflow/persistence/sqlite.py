"""SQLite implementation of the workflow store."""

from __future__ import annotations

import asyncio
import sqlite3
from pathlib import Path
from typing import Any

from ..contracts import Workflow
from .repository import WorkflowStore


class SQLiteWorkflowStore(WorkflowStore):
    """Persist workflow documents as JSON rows in SQLite."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS workflows (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                document TEXT NOT NULL
            )
            """
        )
        cur.execute(
            "CREATE INDEX IF NOT EXISTS idx_workflows_user ON workflows (user_id)"
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> int:
        cur = self._conn.cursor()
        cur.execute(query, params)
        self._conn.commit()
        return cur.rowcount

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchone()

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchall()

    # ------------------------------------------------------------------
    # Store API
    async def save_workflow(self, workflow: Workflow) -> Workflow:
        await asyncio.to_thread(
            self._execute,
            "INSERT OR REPLACE INTO workflows (id, user_id, updated_at, document) VALUES (?, ?, ?, ?)",
            workflow.id,
            workflow.user_id,
            workflow.updated_at.isoformat(),
            workflow.model_dump_json(by_alias=True),
        )
        return workflow

    async def get_workflow(self, workflow_id: str, user_id: str) -> Workflow | None:
        row = await asyncio.to_thread(
            self._fetchone,
            "SELECT document FROM workflows WHERE id = ? AND user_id = ?",
            workflow_id,
            user_id,
        )
        if not row:
            return None
        return Workflow.model_validate_json(row["document"])

    async def list_workflows(self, user_id: str) -> list[Workflow]:
        rows = await asyncio.to_thread(
            self._fetchall,
            "SELECT document FROM workflows WHERE user_id = ? ORDER BY updated_at DESC",
            user_id,
        )
        return [Workflow.model_validate_json(row["document"]) for row in rows]

    async def delete_workflow(self, workflow_id: str, user_id: str) -> bool:
        deleted = await asyncio.to_thread(
            self._execute,
            "DELETE FROM workflows WHERE id = ? AND user_id = ?",
            workflow_id,
            user_id,
        )
        return deleted > 0

    def close(self) -> None:
        self._conn.close()
