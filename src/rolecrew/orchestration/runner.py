"""PipelineRunner — sequential state machine over a pipeline's steps.

created → in_progress → {failed | timed_out | max_revisions_exceeded | approval}

Steps run in phase order. The only backward move is the quality gate sending
the writer back after a low review score; each such move bumps the writing
step's ``revision`` counter, which is capped by ``QualityGate.max_revisions``,
so a run executes at most ``len(steps) + 2 * max_revisions`` steps.
"""

from __future__ import annotations

import logging
from typing import Any

from rolecrew.core.config import PipelineConfig
from rolecrew.core.exceptions import NotificationError, RoleCrewError, StepTimeoutError
from rolecrew.core.protocols import INotifier
from rolecrew.models.pipeline import (
    Phase,
    Pipeline,
    PipelineStatus,
    PipelineStep,
    StepStatus,
)
from rolecrew.models.records import ApprovalRequest, ApprovalStatus
from rolecrew.models.roles import get_role
from rolecrew.orchestration.executor import StepExecutor
from rolecrew.orchestration.ledger import EventType, PipelineEvent, PipelineLedger
from rolecrew.orchestration.quality import QualityGate

logger = logging.getLogger(__name__)

# phases surfaced to the user; the rest is working material
FINAL_OUTPUT_PHASES = (Phase.WRITING, Phase.FINAL_REVIEW)


def approval_snapshot(pipeline: Pipeline) -> dict[str, Any]:
    """Serialize ``pipeline`` as staged for approval.

    Step inputs are left out: each one repeats the transcript before it and
    ``build_step_context`` can rebuild them from the outputs.
    """
    snapshot = pipeline.model_dump(mode="json", exclude={"steps": {"__all__": {"input"}}})
    snapshot["status"] = str(PipelineStatus.APPROVAL)
    return snapshot


class PipelineRunner:
    """Drives a pipeline from created to approval (or a failure status)."""

    def __init__(
        self,
        *,
        executor: StepExecutor,
        ledger: PipelineLedger,
        notifier: INotifier,
        gate: QualityGate | None = None,
        config: PipelineConfig | None = None,
    ) -> None:
        self._executor = executor
        self._ledger = ledger
        self._notifier = notifier
        self._config = config or PipelineConfig()
        self._gate = gate or QualityGate.from_config(self._config)

    async def run_full_pipeline(self, pipeline: Pipeline) -> Pipeline:
        """Drain every pending step, then stage the result for approval."""
        pipeline.status = PipelineStatus.IN_PROGRESS
        cursor = 0

        while cursor < len(pipeline.steps):
            step = pipeline.steps[cursor]
            if step.status == StepStatus.NEEDS_REVISION:
                # the rewrite it asked for is in; review again
                step.revision += 1
                step.reset()
            if step.status != StepStatus.PENDING:
                cursor += 1
                continue

            role = get_role(step.role)
            pipeline.current_phase = step.phase
            pipeline.current_role = step.role
            if pipeline.notifies_user:
                await self._notify(
                    pipeline,
                    f"{role.name} is working on: *{step.task_title}*\n"
                    "This may take a few minutes...",
                )

            try:
                await self._executor.execute_step(pipeline)
            except Exception as exc:
                return await self._fail(pipeline, exc, step)

            if step.phase == Phase.REVIEW:
                try:
                    next_cursor = await self._apply_quality_gate(pipeline, step, cursor)
                except RoleCrewError as exc:
                    return await self._fail(pipeline, exc, step)
                if next_cursor is None:
                    return pipeline
                cursor = next_cursor
                continue
            cursor += 1

        try:
            return await self._request_approval(pipeline)
        except RoleCrewError as exc:
            return await self._fail(pipeline, exc)

    async def _apply_quality_gate(
        self, pipeline: Pipeline, review: PipelineStep, cursor: int
    ) -> int | None:
        """Score the review; return where to continue, or None to stop the run."""
        score = self._gate.score(review.output)
        review.quality_score = score
        if self._gate.passes(score):
            return cursor + 1

        writing = pipeline.step_for(Phase.WRITING)
        if writing is None:
            return cursor + 1

        if not self._gate.can_revise(writing.revision):
            return await self._revisions_exhausted(pipeline, review, writing, score, cursor)

        review.status = StepStatus.NEEDS_REVISION
        packet = self._gate.revision_packet(score, review.output or "", writing.output)
        writing.revision += 1
        writing.reset(packet)
        logger.info("Review scored %s/10; sending draft back for revision %s",
                    score, writing.revision, extra={"pipeline_id": pipeline.id})
        await self._ledger.apply(PipelineEvent.for_pipeline(
            pipeline,
            EventType.QUALITY_GATE_FAILED,
            phase=str(Phase.REVIEW),
            revision=writing.revision,
            title=f"Revision {writing.revision} requested (score {score}/10)",
            description=(review.output or "")[:self._config.audit_excerpt_chars],
            metadata={"quality_score": score, "revision": writing.revision},
        ))
        return pipeline.index_of(Phase.WRITING)

    async def _revisions_exhausted(
        self,
        pipeline: Pipeline,
        review: PipelineStep,
        writing: PipelineStep,
        score: int,
        cursor: int,
    ) -> int | None:
        accept = self._gate.on_exhausted == "accept"
        logger.warning("Quality gate still failing (score %s) after %s revisions; %s",
                       score, writing.revision, "accepting draft" if accept else "stopping",
                       extra={"pipeline_id": pipeline.id})
        await self._ledger.apply(PipelineEvent.for_pipeline(
            pipeline,
            EventType.QUALITY_GATE_EXHAUSTED,
            phase=str(Phase.REVIEW),
            revision=writing.revision,
            title=f"Revision limit reached (score {score}/10)",
            description="Draft accepted for human approval" if accept else "Pipeline stopped",
            metadata={"quality_score": score, "revisions": writing.revision, "accepted": accept},
        ))
        if accept:
            return cursor + 1
        pipeline.status = PipelineStatus.MAX_REVISIONS_EXCEEDED
        if pipeline.notifies_user:
            await self._notify(
                pipeline,
                f"The draft did not pass review after {writing.revision} revisions "
                f"(score {score}/10). Check your dashboard for details.",
            )
        return None

    async def _fail(
        self, pipeline: Pipeline, exc: Exception, step: PipelineStep | None = None
    ) -> Pipeline:
        """End the run in ``failed`` (or ``timed_out``).

        ``step`` is None when the failure happened while staging the approval
        request; any half-written queue entry is then withdrawn as rejected.
        """
        timed_out = isinstance(exc, StepTimeoutError)
        pipeline.status = PipelineStatus.TIMED_OUT if timed_out else PipelineStatus.FAILED
        where = step.task_title if step is not None else "Approval"
        logger.error("Pipeline failed at %s: %s", where, exc, extra={"pipeline_id": pipeline.id})
        try:
            await self._ledger.apply(PipelineEvent.for_pipeline(
                pipeline,
                EventType.FAILED,
                phase=str(step.phase) if step is not None else "pipeline",
                revision=step.revision if step is not None else 0,
                title=f"Pipeline failed at {where}",
                description=str(exc)[:self._config.audit_excerpt_chars],
                metadata={"status": str(pipeline.status), "error": type(exc).__name__},
                approval_resolution=ApprovalStatus.REJECTED if step is None else None,
            ))
        except RoleCrewError:
            logger.exception("Could not record failure of pipeline %s", pipeline.id)
        if pipeline.notifies_user:
            await self._notify(pipeline, f"There was an error in phase *{where}*. Looking into it...")
        return pipeline

    async def _request_approval(self, pipeline: Pipeline) -> Pipeline:
        pipeline.final_output = "\n\n".join(
            s.output for s in pipeline.steps if s.phase in FINAL_OUTPUT_PHASES and s.output
        )
        request_title = pipeline.original_request[:60]
        approval = ApprovalRequest(
            workspace_id=pipeline.workspace_id,
            agent_id=pipeline.agent_id,
            user_id=pipeline.user_id,
            pipeline_id=pipeline.id,
            action_title=f"Result: {request_title}",
            action_description=f"Pipeline completed · {len(pipeline.steps)} phases · ready for delivery",
            action_payload={
                "pipeline_id": pipeline.id,
                "project_id": pipeline.project_id,
                "final_output": pipeline.final_output[:self._config.approval_payload_chars],
                "quality_score": pipeline.review_score,
                "pipeline": approval_snapshot(pipeline),
            },
        )
        await self._ledger.apply(PipelineEvent.for_pipeline(
            pipeline,
            EventType.APPROVAL_REQUESTED,
            title=f"Awaiting approval: {request_title}",
            description=approval.action_description,
            metadata={"quality_score": pipeline.review_score},
            approval=approval,
        ))
        pipeline.status = PipelineStatus.APPROVAL
        if pipeline.notifies_user:
            await self._notify(
                pipeline,
                f"*Pipeline completed*\n\n_{pipeline.original_request[:80]}_\n\n"
                "The result is ready. Review it in your dashboard and approve it to deliver.\n\n"
                'Reply *"approve"* to confirm or *"review"* to see details.',
            )
        return pipeline

    async def _notify(self, pipeline: Pipeline, text: str) -> None:
        try:
            await self._notifier.notify(pipeline.user_id, pipeline.channel, text)
        except NotificationError as exc:
            logger.warning("Notification for pipeline %s failed: %s", pipeline.id, exc)
