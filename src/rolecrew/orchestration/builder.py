"""PipelineBuilder — turns a free-form request into a fixed five-phase plan."""

from __future__ import annotations

import logging
import uuid

from rolecrew.core.exceptions import ValidationError
from rolecrew.core.protocols import IRecordStore
from rolecrew.models.pipeline import Channel, Phase, Pipeline, PipelineStep
from rolecrew.models.records import ProjectRecord, RecordStatus, TaskRecord
from rolecrew.models.roles import get_role
from rolecrew.orchestration.ledger import EventType, PipelineEvent, PipelineLedger

logger = logging.getLogger(__name__)

# (phase, role id, task title) in execution order
PHASE_TEMPLATE: tuple[tuple[Phase, str, str], ...] = (
    (Phase.RESEARCH, "investigator", "Research and data gathering"),
    (Phase.WRITING, "writer", "Drafting and storytelling"),
    (Phase.REVIEW, "reviewer", "Quality review"),
    (Phase.FINAL_REVIEW, "director", "Director's final review"),
    (Phase.DELIVERY, "director", "Result delivery"),
)

PROJECT_TITLE_CHARS = 80


class PipelineBuilder:
    """Creates the owning project, one task per phase, and the Pipeline."""

    def __init__(self, *, records: IRecordStore, ledger: PipelineLedger) -> None:
        self._records = records
        self._ledger = ledger

    async def create_pipeline(
        self,
        *,
        workspace_id: str,
        user_id: str,
        agent_id: str,
        request: str,
        channel: str,
    ) -> Pipeline:
        """Validate the request, persist the plan, and return a fresh Pipeline.

        Raises:
            ValidationError: empty request or unknown channel (nothing written).
            PersistenceError: a collaborator store write failed; no Pipeline
                is returned.
        """
        text = (request or "").strip()
        if not text:
            raise ValidationError("Request text must not be empty")
        try:
            channel_tag = Channel(channel)
        except ValueError:
            allowed = ", ".join(c.value for c in Channel)
            raise ValidationError(f"Unknown channel {channel!r}; expected one of: {allowed}") from None

        pipeline_id = f"pipe_{uuid.uuid4().hex[:16]}"
        project_id = await self._records.insert_project(ProjectRecord(
            workspace_id=workspace_id,
            user_id=user_id,
            title=text[:PROJECT_TITLE_CHARS],
            metadata={
                "source": "pipeline",
                "pipeline_id": pipeline_id,
                "original_request": text,
                "channel": str(channel_tag),
                "agent_id": agent_id,
            },
        ))

        steps = [
            PipelineStep(phase=phase, role=role, task_title=title, input=text if i == 0 else "")
            for i, (phase, role, title) in enumerate(PHASE_TEMPLATE)
        ]
        for step in steps:
            await self._records.upsert_task(TaskRecord(
                workspace_id=workspace_id,
                user_id=user_id,
                project_id=project_id,
                phase=str(step.phase),
                role=step.role,
                title=f"{get_role(step.role).name} {step.task_title}",
                status=RecordStatus.PENDING,
                priority="high" if step.phase == Phase.RESEARCH else "medium",
                metadata={
                    "parent_project_id": project_id,
                    "pipeline_phase": str(step.phase),
                    "pipeline_role": step.role,
                    "source": "pipeline",
                },
            ))

        pipeline = Pipeline(
            id=pipeline_id,
            project_id=project_id,
            workspace_id=workspace_id,
            user_id=user_id,
            agent_id=agent_id,
            original_request=text,
            current_phase=steps[0].phase,
            current_role=steps[0].role,
            steps=steps,
            channel=channel_tag,
        )

        role_chain = " → ".join(get_role(s.role).name for s in steps)
        await self._ledger.apply(PipelineEvent.for_pipeline(
            pipeline,
            EventType.CREATED,
            title=f"Pipeline created: {text[:60]}",
            description=f"{len(steps)} phases · Roles: {role_chain}",
            metadata={"channel": str(channel_tag), "phases": [str(s.phase) for s in steps]},
        ))
        logger.info("Created pipeline %s for project %s", pipeline_id, project_id,
                    extra={"pipeline_id": pipeline_id})
        return pipeline
