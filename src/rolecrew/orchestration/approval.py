"""ApprovalGate — human approval of a staged result and the delivery trigger."""

from __future__ import annotations

import logging

from rolecrew.core.exceptions import (
    ApprovalNotFoundError,
    DeliveryError,
    InvalidTransitionError,
    NotificationError,
)
from rolecrew.core.protocols import IApprovalQueue, IDeliveryHook, INotifier
from rolecrew.models.pipeline import Pipeline, PipelineStatus
from rolecrew.models.records import ApprovalRequest, ApprovalStatus, RecordStatus
from rolecrew.orchestration.ledger import EventType, PipelineEvent, PipelineLedger

logger = logging.getLogger(__name__)

RESULT_MESSAGE_CHARS = 3000


class ApprovalGate:
    """Resolves approval-queue entries and fires delivery once approved."""

    def __init__(
        self,
        *,
        approvals: IApprovalQueue,
        ledger: PipelineLedger,
        delivery: IDeliveryHook,
        notifier: INotifier,
    ) -> None:
        self._approvals = approvals
        self._ledger = ledger
        self._delivery = delivery
        self._notifier = notifier

    async def load(self, workspace_id: str, pipeline_id: str) -> tuple[ApprovalRequest, Pipeline]:
        """Rehydrate the pipeline from its approval-queue payload."""
        request = await self._approvals.get(workspace_id, pipeline_id)
        if request is None or "pipeline" not in request.action_payload:
            raise ApprovalNotFoundError(f"No approval request for pipeline {pipeline_id}")
        return request, Pipeline.model_validate(request.action_payload["pipeline"])

    async def approve_pending(self, workspace_id: str, pipeline_id: str) -> Pipeline:
        request, pipeline = await self.load(workspace_id, pipeline_id)
        if request.status == ApprovalStatus.REJECTED:
            raise InvalidTransitionError(pipeline_id, str(request.status), "approve")
        return await self.approve_pipeline(pipeline)

    async def approve_pipeline(self, pipeline: Pipeline) -> Pipeline:
        """Complete an approved pipeline and trigger delivery at most once.

        Whether delivery fires is decided by the ledger alone: the completion
        event is re-applied on every call and only a newly committed event
        triggers the webhook, so a retry after a partial write still delivers.
        """
        if pipeline.status not in (PipelineStatus.APPROVAL, PipelineStatus.COMPLETED):
            raise InvalidTransitionError(pipeline.id, str(pipeline.status), "approve")

        request = await self._approvals.get(pipeline.workspace_id, pipeline.id)
        if request is not None and request.status == ApprovalStatus.REJECTED:
            raise InvalidTransitionError(pipeline.id, str(request.status), "approve")

        applied = await self._ledger.apply(PipelineEvent.for_pipeline(
            pipeline,
            EventType.COMPLETED,
            title="Pipeline completed and approved",
            description=pipeline.original_request,
            metadata={"total_steps": len(pipeline.steps), "quality_score": pipeline.review_score},
            project_update={"status": str(RecordStatus.DONE), "progress_pct": 100},
            approval_resolution=ApprovalStatus.APPROVED,
        ))
        pipeline.status = PipelineStatus.COMPLETED
        if not applied:
            logger.info("Pipeline %s already completed; not re-delivering", pipeline.id)
            return pipeline

        if self._delivery.enabled:
            try:
                await self._delivery.deliver(self.delivery_payload(pipeline))
                logger.info("Delivery webhook triggered for %s", pipeline.id)
            except DeliveryError as exc:
                logger.error("Delivery for pipeline %s failed: %s", pipeline.id, exc)

        if pipeline.notifies_user:
            try:
                await self._notifier.notify(
                    pipeline.user_id,
                    pipeline.channel,
                    f"*{pipeline.original_request[:80]}*\n\n"
                    f"{(pipeline.final_output or '')[:RESULT_MESSAGE_CHARS]}",
                )
            except NotificationError as exc:
                logger.warning("Result notification for %s failed: %s", pipeline.id, exc)
        return pipeline

    async def reject_pending(self, workspace_id: str, pipeline_id: str, reason: str = "") -> Pipeline:
        request, pipeline = await self.load(workspace_id, pipeline_id)
        if request.status == ApprovalStatus.APPROVED:
            raise InvalidTransitionError(pipeline_id, str(request.status), "reject")
        applied = await self._ledger.apply(PipelineEvent.for_pipeline(
            pipeline,
            EventType.REJECTED,
            title="Pipeline result rejected",
            description=reason or pipeline.original_request,
            metadata={"reason": reason},
            approval_resolution=ApprovalStatus.REJECTED,
        ))
        if not applied:
            raise InvalidTransitionError(pipeline_id, str(ApprovalStatus.REJECTED), "reject")
        pipeline.status = PipelineStatus.FAILED
        return pipeline

    @staticmethod
    def delivery_payload(pipeline: Pipeline) -> dict[str, str | None]:
        return {
            "pipeline_id": pipeline.id,
            "project_id": pipeline.project_id,
            "user_id": pipeline.user_id,
            "workspace_id": pipeline.workspace_id,
            "title": pipeline.original_request,
            "content": pipeline.final_output,
            "channel": str(pipeline.channel),
            "deliver_to": str(pipeline.channel),
        }
