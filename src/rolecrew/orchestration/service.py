"""PipelineService — wires builder, runner and approval gate to their backends."""

from __future__ import annotations

import logging
from typing import Any

from rolecrew.core.config import AppSettings
from rolecrew.core.exceptions import PipelineActiveError
from rolecrew.core.protocols import ICompletionAdapter, IDeliveryHook, INotifier
from rolecrew.model_providers.litellm_provider import LiteLLMCompletionAdapter
from rolecrew.model_providers.mock_provider import MockCompletionAdapter
from rolecrew.models.pipeline import Pipeline
from rolecrew.models.records import ApprovalRequest
from rolecrew.orchestration.approval import ApprovalGate
from rolecrew.orchestration.builder import PipelineBuilder
from rolecrew.orchestration.executor import StepExecutor
from rolecrew.orchestration.ledger import PipelineLedger
from rolecrew.orchestration.quality import QualityGate
from rolecrew.orchestration.registry import PipelineRegistry
from rolecrew.orchestration.runner import PipelineRunner
from rolecrew.outbound.delivery import NullDelivery, WebhookDelivery
from rolecrew.outbound.notifier import GatewayNotifier, NullNotifier
from rolecrew.persistence import Persistence, create_persistence

logger = logging.getLogger(__name__)


class PipelineService:
    """Entry point used by the API: start, run, approve and look up pipelines."""

    def __init__(
        self,
        *,
        settings: AppSettings,
        persistence: Persistence,
        adapter: ICompletionAdapter,
        notifier: INotifier,
        delivery: IDeliveryHook,
    ) -> None:
        self._settings = settings
        self._persistence = persistence
        self._closeables: list[Any] = [adapter, notifier, delivery]

        self.ledger = PipelineLedger(
            records=persistence.records,
            approvals=persistence.approvals,
            activity=persistence.activity,
        )
        self.builder = PipelineBuilder(records=persistence.records, ledger=self.ledger)
        self.executor = StepExecutor(adapter=adapter, ledger=self.ledger, config=settings.pipeline)
        self.runner = PipelineRunner(
            executor=self.executor,
            ledger=self.ledger,
            notifier=notifier,
            gate=QualityGate.from_config(settings.pipeline),
            config=settings.pipeline,
        )
        self.approval_gate = ApprovalGate(
            approvals=persistence.approvals,
            ledger=self.ledger,
            delivery=delivery,
            notifier=notifier,
        )
        self.registry = PipelineRegistry(persistence.cache, ttl=settings.redis.pipeline_ttl)

    async def start(
        self, *, workspace_id: str, user_id: str, agent_id: str, request: str, channel: str
    ) -> Pipeline:
        """Create a pipeline; only one may run per user and workspace at a time.

        Raises:
            PipelineActiveError: the user's previous pipeline has not stopped.
        """
        active = await self.registry.active(user_id, workspace_id)
        if active is not None:
            raise PipelineActiveError(active.id)
        pipeline = await self.builder.create_pipeline(
            workspace_id=workspace_id,
            user_id=user_id,
            agent_id=agent_id,
            request=request,
            channel=channel,
        )
        await self.registry.save(pipeline)
        return pipeline

    async def run(self, pipeline: Pipeline) -> Pipeline:
        try:
            return await self.runner.run_full_pipeline(pipeline)
        finally:
            await self.registry.save(pipeline)

    async def approve(self, workspace_id: str, pipeline_id: str) -> Pipeline:
        pipeline = await self.approval_gate.approve_pending(workspace_id, pipeline_id)
        await self.registry.save(pipeline)
        return pipeline

    async def reject(self, workspace_id: str, pipeline_id: str, reason: str = "") -> Pipeline:
        pipeline = await self.approval_gate.reject_pending(workspace_id, pipeline_id, reason)
        await self.registry.save(pipeline)
        return pipeline

    async def get(self, pipeline_id: str) -> Pipeline | None:
        return await self.registry.load(pipeline_id)

    async def pending_approvals(self, workspace_id: str) -> list[ApprovalRequest]:
        return await self._persistence.approvals.list_pending(workspace_id)

    async def aclose(self) -> None:
        for resource in self._closeables:
            aclose = getattr(resource, "aclose", None)
            if aclose is not None:
                await aclose()


def create_completion_adapter(settings: AppSettings) -> ICompletionAdapter:
    if settings.llm.provider == "litellm":
        return LiteLLMCompletionAdapter(
            base_url=settings.llm.litellm_base_url,
            model=settings.llm.model,
            api_key=settings.llm.api_key,
            timeout=settings.llm.request_timeout,
        )
    return MockCompletionAdapter()


def create_service(
    settings: AppSettings | None = None,
    *,
    persistence: Persistence | None = None,
    adapter: ICompletionAdapter | None = None,
    notifier: INotifier | None = None,
    delivery: IDeliveryHook | None = None,
) -> PipelineService:
    """Build a PipelineService from settings; any collaborator can be injected."""
    if settings is None:
        settings = AppSettings()
    if notifier is None:
        if settings.gateway.base_url:
            notifier = GatewayNotifier(
                settings.gateway.base_url,
                api_key=settings.gateway.api_key,
                timeout=settings.gateway.timeout,
            )
        else:
            notifier = NullNotifier()
    if delivery is None:
        if settings.delivery.webhook_url:
            delivery = WebhookDelivery(settings.delivery.webhook_url, timeout=settings.delivery.timeout)
        else:
            delivery = NullDelivery()
    logger.info("Creating pipeline service (backend=%s, llm=%s)", settings.backend, settings.llm.provider)
    return PipelineService(
        settings=settings,
        persistence=persistence or create_persistence(settings),
        adapter=adapter or create_completion_adapter(settings),
        notifier=notifier,
        delivery=delivery,
    )
