"""In-memory backends for unit tests and local runs (dict-backed fakes)."""

from __future__ import annotations

import uuid
from typing import Any

from rolecrew.models.pipeline import utc_now
from rolecrew.models.records import (
    ActivityEntry,
    ApprovalRequest,
    ApprovalStatus,
    ProjectRecord,
    TaskRecord,
)


class MemoryRecordStore:
    """Dict-backed IRecordStore."""

    def __init__(self) -> None:
        self._projects: dict[str, dict[str, Any]] = {}
        self._tasks: dict[str, dict[str, Any]] = {}

    async def insert_project(self, record: ProjectRecord) -> str:
        project_id = record.id or uuid.uuid4().hex
        self._projects[project_id] = {**record.model_dump(mode="json"), "id": project_id}
        return project_id

    async def upsert_task(self, record: TaskRecord) -> None:
        self._tasks[f"{record.project_id}:{record.phase}"] = record.model_dump(mode="json")

    async def update_task(
        self, workspace_id: str, project_id: str, phase: str, **fields: Any
    ) -> None:
        task = self._tasks.get(f"{project_id}:{phase}")
        if task is None or task["workspace_id"] != workspace_id:
            return
        metadata = fields.pop("metadata", None)
        task.update(fields)
        if metadata:
            task["metadata"] = {**task.get("metadata", {}), **metadata}

    async def update_project(self, project_id: str, **fields: Any) -> None:
        project = self._projects.get(project_id)
        if project is not None:
            project.update(fields)

    async def get_project(self, project_id: str) -> dict[str, Any] | None:
        return self._projects.get(project_id)

    async def list_tasks(self, project_id: str) -> list[dict[str, Any]]:
        return [t for t in self._tasks.values() if t["project_id"] == project_id]


class MemoryApprovalQueue:
    """Dict-backed IApprovalQueue."""

    def __init__(self) -> None:
        self._requests: dict[str, ApprovalRequest] = {}

    async def enqueue(self, request: ApprovalRequest) -> bool:
        key = f"{request.workspace_id}:{request.pipeline_id}"
        if key in self._requests:
            return False
        self._requests[key] = request.model_copy(deep=True)
        return True

    async def get(self, workspace_id: str, pipeline_id: str) -> ApprovalRequest | None:
        request = self._requests.get(f"{workspace_id}:{pipeline_id}")
        return request.model_copy(deep=True) if request else None

    async def resolve(
        self, workspace_id: str, pipeline_id: str, status: ApprovalStatus
    ) -> None:
        request = self._requests.get(f"{workspace_id}:{pipeline_id}")
        if request is not None:
            request.status = status
            request.resolved_at = utc_now()

    async def list_pending(self, workspace_id: str) -> list[ApprovalRequest]:
        return [
            r.model_copy(deep=True) for r in self._requests.values()
            if r.workspace_id == workspace_id and r.status == ApprovalStatus.PENDING
        ]


class MemoryActivityLog:
    """List-backed IActivityLog with event-key de-duplication."""

    def __init__(self) -> None:
        self._entries: list[ActivityEntry] = []
        self._keys: set[str] = set()

    async def append(self, entry: ActivityEntry) -> bool:
        key = f"{entry.workspace_id}:{entry.event_key}"
        if key in self._keys:
            return False
        self._keys.add(key)
        self._entries.append(entry)
        return True

    async def exists(self, workspace_id: str, event_key: str) -> bool:
        return f"{workspace_id}:{event_key}" in self._keys

    async def list_entries(self, workspace_id: str) -> list[ActivityEntry]:
        return [e for e in self._entries if e.workspace_id == workspace_id]


class MemoryCacheBackend:
    """Dict-backed ICacheBackend."""

    def __init__(self) -> None:
        self._store: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self._store.get(key)

    async def setex(self, key: str, ttl: int, value: str) -> None:
        self._store[key] = value

    async def delete(self, key: str) -> None:
        self._store.pop(key, None)
