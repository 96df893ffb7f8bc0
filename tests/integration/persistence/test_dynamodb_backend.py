"""Integration tests: a full pipeline run against LocalStack DynamoDB."""

from __future__ import annotations

import pytest

from rolecrew.core.config import AppSettings, DynamoDBConfig, PipelineConfig
from rolecrew.model_providers.mock_provider import MockCompletionAdapter
from rolecrew.models.pipeline import PipelineStatus
from rolecrew.orchestration.service import create_service
from rolecrew.persistence import Persistence
from rolecrew.persistence.dynamodb_backend import (
    DynamoDBActivityLog,
    DynamoDBApprovalQueue,
    DynamoDBRecordStore,
)
from rolecrew.persistence.memory_backend import MemoryCacheBackend
from tests.integration.conftest import LOCALSTACK_URL, skip_no_localstack


@skip_no_localstack
@pytest.mark.integration
class TestPipelineOnDynamoDB:
    @pytest.fixture
    def service(self, created_tables):
        ddb = {"table_suffix": created_tables, "region": "us-east-1", "endpoint_url": LOCALSTACK_URL}
        persistence = Persistence(
            records=DynamoDBRecordStore(**ddb),
            approvals=DynamoDBApprovalQueue(**ddb),
            activity=DynamoDBActivityLog(**ddb),
            cache=MemoryCacheBackend(),
        )
        adapter = MockCompletionAdapter()
        adapter.set_response("reviewer", "APPROVED. Score: 8/10")
        settings = AppSettings(
            dynamodb=DynamoDBConfig(table_suffix=created_tables, endpoint_url=LOCALSTACK_URL),
            pipeline=PipelineConfig(step_timeout_seconds=10.0),
        )
        return create_service(settings, persistence=persistence, adapter=adapter)

    @pytest.mark.asyncio
    async def test_run_and_approve(self, service):
        pipeline = await service.start(
            workspace_id="ws-int", user_id="user-int", agent_id="agent-int",
            request="Summarize our onboarding flow", channel="web",
        )
        await service.run(pipeline)
        assert pipeline.status == PipelineStatus.APPROVAL

        tasks = await service.ledger._records.list_tasks(pipeline.project_id)
        assert {t["status"] for t in tasks} == {"done"}

        approved = await service.approve("ws-int", pipeline.id)
        assert approved.status == PipelineStatus.COMPLETED
        project = await service.ledger._records.get_project(pipeline.project_id)
        assert project["status"] == "done"
