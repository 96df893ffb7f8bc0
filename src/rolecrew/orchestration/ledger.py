"""Idempotent application of pipeline events across the collaborator stores.

Every write the orchestrator makes to the project/task records, the approval
queue and the activity feed goes through ``PipelineLedger.apply``. The audit
entry is written last and doubles as the commit marker: an event whose key is
already in the activity feed is skipped, so retrying after a partial failure
never duplicates audit or approval entries.
"""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import Any, Optional

from pydantic import BaseModel, Field

from rolecrew.core.protocols import IActivityLog, IApprovalQueue, IRecordStore
from rolecrew.models.pipeline import Pipeline
from rolecrew.models.records import ActivityEntry, ApprovalRequest, ApprovalStatus

logger = logging.getLogger(__name__)


class EventType(StrEnum):
    CREATED = "pipeline_created"
    STEP_COMPLETED = "pipeline_step_completed"
    QUALITY_GATE_FAILED = "quality_gate_failed"
    QUALITY_GATE_EXHAUSTED = "quality_gate_exhausted"
    FAILED = "pipeline_failed"
    APPROVAL_REQUESTED = "approval_requested"
    COMPLETED = "pipeline_completed"
    REJECTED = "pipeline_rejected"


class PipelineEvent(BaseModel):
    """One state change plus the store writes that project it."""

    event_type: EventType
    pipeline_id: str
    project_id: str
    workspace_id: str
    agent_id: str
    user_id: str = ""
    phase: str = "pipeline"
    revision: int = 0
    title: str
    description: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)
    task_update: Optional[dict[str, Any]] = None
    project_update: Optional[dict[str, Any]] = None
    approval: Optional[ApprovalRequest] = None
    approval_resolution: Optional[ApprovalStatus] = None

    @classmethod
    def for_pipeline(cls, pipeline: Pipeline, event_type: EventType, **kwargs: Any) -> PipelineEvent:
        return cls(
            event_type=event_type,
            pipeline_id=pipeline.id,
            project_id=pipeline.project_id,
            workspace_id=pipeline.workspace_id,
            agent_id=pipeline.agent_id,
            user_id=pipeline.user_id,
            **kwargs,
        )

    @property
    def key(self) -> str:
        return f"{self.pipeline_id}:{self.phase}:{self.event_type}:r{self.revision}"


class PipelineLedger:
    """Applies ``PipelineEvent``s to the record store, approval queue and feed."""

    def __init__(
        self,
        *,
        records: IRecordStore,
        approvals: IApprovalQueue,
        activity: IActivityLog,
    ) -> None:
        self._records = records
        self._approvals = approvals
        self._activity = activity

    async def apply(self, event: PipelineEvent) -> bool:
        """Apply ``event`` once. Returns False if it was already applied."""
        if await self._activity.exists(event.workspace_id, event.key):
            logger.info("Event %s already applied, skipping", event.key)
            return False

        if event.task_update:
            await self._records.update_task(
                event.workspace_id, event.project_id, event.phase, **event.task_update,
            )
        if event.project_update:
            await self._records.update_project(event.project_id, **event.project_update)
        if event.approval is not None:
            if not await self._approvals.enqueue(event.approval):
                logger.info("Approval for pipeline %s already queued", event.pipeline_id)
        if event.approval_resolution is not None:
            await self._approvals.resolve(
                event.workspace_id, event.pipeline_id, event.approval_resolution,
            )

        return await self._activity.append(ActivityEntry(
            workspace_id=event.workspace_id,
            agent_id=event.agent_id,
            user_id=event.user_id,
            event_key=event.key,
            action_type=str(event.event_type),
            title=event.title,
            description=event.description,
            metadata={"pipeline_id": event.pipeline_id, "phase": event.phase, **event.metadata},
        ))
