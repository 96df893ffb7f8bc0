"""Protocol interfaces for all RoleCrew collaborators.

The orchestrator only talks to the outside world through these Protocols:
structural typing, no inheritance required, easy to swap for the in-memory
fakes in tests.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from rolecrew.models.pipeline import Persona
    from rolecrew.models.records import (
        ActivityEntry,
        ApprovalRequest,
        ApprovalStatus,
        ProjectRecord,
        TaskRecord,
    )


# ---------------------------------------------------------------------------
# Completion service
# ---------------------------------------------------------------------------

@runtime_checkable
class ICompletionAdapter(Protocol):
    """Streams generated text for a persona + prompt.

    The returned iterator is finite and cannot be restarted; callers must
    drain it or treat the generation as failed.
    """

    def stream(
        self, persona: Persona, prompt: str, history: list[dict[str, str]]
    ) -> AsyncIterator[str]: ...


# ---------------------------------------------------------------------------
# Persistence: document / record store
# ---------------------------------------------------------------------------

@runtime_checkable
class IRecordStore(Protocol):
    """Project and task records displayed by the dashboards."""

    async def insert_project(self, record: ProjectRecord) -> str: ...

    async def upsert_task(self, record: TaskRecord) -> None: ...

    async def update_task(
        self, workspace_id: str, project_id: str, phase: str, **fields: Any
    ) -> None: ...

    async def update_project(self, project_id: str, **fields: Any) -> None: ...

    async def get_project(self, project_id: str) -> dict[str, Any] | None: ...

    async def list_tasks(self, project_id: str) -> list[dict[str, Any]]: ...


# ---------------------------------------------------------------------------
# Persistence: approval queue
# ---------------------------------------------------------------------------

@runtime_checkable
class IApprovalQueue(Protocol):
    """Pending human-in-the-loop decisions, unique per pipeline."""

    async def enqueue(self, request: ApprovalRequest) -> bool: ...

    async def get(self, workspace_id: str, pipeline_id: str) -> ApprovalRequest | None: ...

    async def resolve(
        self, workspace_id: str, pipeline_id: str, status: ApprovalStatus
    ) -> None: ...

    async def list_pending(self, workspace_id: str) -> list[ApprovalRequest]: ...


# ---------------------------------------------------------------------------
# Persistence: activity log
# ---------------------------------------------------------------------------

@runtime_checkable
class IActivityLog(Protocol):
    """Append-only audit feed. ``append`` returns False for a duplicate key."""

    async def append(self, entry: ActivityEntry) -> bool: ...

    async def exists(self, workspace_id: str, event_key: str) -> bool: ...

    async def list_entries(self, workspace_id: str) -> list[ActivityEntry]: ...


# ---------------------------------------------------------------------------
# Persistence: cache backend
# ---------------------------------------------------------------------------

@runtime_checkable
class ICacheBackend(Protocol):
    """Redis-compatible cache interface."""

    async def get(self, key: str) -> str | None: ...

    async def setex(self, key: str, ttl: int, value: str) -> None: ...

    async def delete(self, key: str) -> None: ...


# ---------------------------------------------------------------------------
# Outbound: notifications and delivery
# ---------------------------------------------------------------------------

@runtime_checkable
class INotifier(Protocol):
    """Sends formatted text to a user on their channel; no-op for web."""

    async def notify(self, user_id: str, channel: str, text: str) -> None: ...


@runtime_checkable
class IDeliveryHook(Protocol):
    """Hands the approved result to the downstream delivery automation."""

    @property
    def enabled(self) -> bool: ...

    async def deliver(self, payload: dict[str, Any]) -> None: ...
