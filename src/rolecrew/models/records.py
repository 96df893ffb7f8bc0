"""Collaborator store records: project/task projections, approvals, activity."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any, Optional

from pydantic import BaseModel, Field

from rolecrew.models.pipeline import utc_now


class RecordStatus(StrEnum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    DONE = "done"


class ApprovalStatus(StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ProjectRecord(BaseModel):
    """Owning project document shown on dashboards."""

    id: str = ""
    workspace_id: str
    user_id: str
    title: str
    status: RecordStatus = RecordStatus.IN_PROGRESS
    priority: str = "high"
    progress_pct: int = 0
    metadata: dict[str, Any] = Field(default_factory=dict)


class TaskRecord(BaseModel):
    """Per-phase task sub-record, keyed by (project_id, phase)."""

    workspace_id: str
    user_id: str
    project_id: str
    phase: str
    role: str
    title: str
    status: RecordStatus = RecordStatus.PENDING
    priority: str = "medium"
    progress_pct: int = 0
    metadata: dict[str, Any] = Field(default_factory=dict)


class ApprovalRequest(BaseModel):
    """Human-in-the-loop decision waiting in the approval queue."""

    workspace_id: str
    agent_id: str
    user_id: str
    pipeline_id: str
    action_type: str = "pipeline_delivery"
    action_title: str
    action_description: str = ""
    action_payload: dict[str, Any] = Field(default_factory=dict)
    status: ApprovalStatus = ApprovalStatus.PENDING
    priority: str = "normal"
    created_at: datetime = Field(default_factory=utc_now)
    resolved_at: Optional[datetime] = None


class ActivityEntry(BaseModel):
    """Append-only audit entry; ``event_key`` makes the insert idempotent."""

    workspace_id: str
    agent_id: str
    user_id: str = ""
    event_key: str
    action_type: str
    title: str
    description: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utc_now)
