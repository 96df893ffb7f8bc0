"""Unit tests for the DynamoDB backends using moto."""

from __future__ import annotations

import sys
from pathlib import Path

import boto3
import pytest
from moto import mock_aws

from rolecrew.models.records import (
    ActivityEntry,
    ApprovalRequest,
    ApprovalStatus,
    ProjectRecord,
    TaskRecord,
)
from rolecrew.persistence.dynamodb_backend import (
    DynamoDBActivityLog,
    DynamoDBApprovalQueue,
    DynamoDBRecordStore,
)

sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent.parent / "scripts"))

from create_tables import create_tables  # noqa: E402

TABLE_SUFFIX = "-test"
REGION = "us-east-1"


# ---------- fixtures ----------

@pytest.fixture
def aws():
    with mock_aws():
        ddb = boto3.resource("dynamodb", region_name=REGION)
        create_tables(ddb, suffix=TABLE_SUFFIX)
        yield ddb


@pytest.fixture
def records(aws):
    return DynamoDBRecordStore(table_suffix=TABLE_SUFFIX, region=REGION)


@pytest.fixture
def approvals(aws):
    return DynamoDBApprovalQueue(table_suffix=TABLE_SUFFIX, region=REGION)


@pytest.fixture
def activity(aws):
    return DynamoDBActivityLog(table_suffix=TABLE_SUFFIX, region=REGION)


def _task(project_id: str, phase: str, workspace_id: str = "ws-1") -> TaskRecord:
    return TaskRecord(
        workspace_id=workspace_id,
        user_id="user-1",
        project_id=project_id,
        phase=phase,
        role="writer",
        title=f"Writer {phase}",
        metadata={"parent_project_id": project_id, "source": "pipeline"},
    )


def _approval(pipeline_id: str = "pipe_1") -> ApprovalRequest:
    return ApprovalRequest(
        workspace_id="ws-1",
        agent_id="agent-1",
        user_id="user-1",
        pipeline_id=pipeline_id,
        action_title="Result: bio",
        action_payload={"final_output": "text", "quality_score": 8},
    )


# ---------- record store ----------

class TestRecordStore:
    @pytest.mark.asyncio
    async def test_insert_and_get_project(self, records):
        project_id = await records.insert_project(ProjectRecord(
            workspace_id="ws-1", user_id="user-1", title="Bio", metadata={"pipeline_id": "pipe_1"},
        ))
        project = await records.get_project(project_id)
        assert project["id"] == project_id
        assert project["title"] == "Bio"
        assert project["progress_pct"] == 0
        assert "PK" not in project

    @pytest.mark.asyncio
    async def test_get_missing_project(self, records):
        assert await records.get_project("nope") is None

    @pytest.mark.asyncio
    async def test_upsert_task_is_idempotent(self, records):
        await records.upsert_task(_task("p1", "research"))
        await records.upsert_task(_task("p1", "research"))
        await records.upsert_task(_task("p1", "writing"))
        tasks = await records.list_tasks("p1")
        assert sorted(t["phase"] for t in tasks) == ["research", "writing"]

    @pytest.mark.asyncio
    async def test_update_task_merges_metadata(self, records):
        await records.upsert_task(_task("p1", "research"))
        await records.update_task(
            "ws-1", "p1", "research",
            status="done", progress_pct=100, metadata={"output_preview": "found it"},
        )
        task = (await records.list_tasks("p1"))[0]
        assert task["status"] == "done"
        assert task["progress_pct"] == 100
        assert task["metadata"] == {
            "parent_project_id": "p1", "source": "pipeline", "output_preview": "found it",
        }

    @pytest.mark.asyncio
    async def test_update_task_scoped_to_workspace(self, records):
        await records.upsert_task(_task("p1", "research", workspace_id="ws-1"))
        await records.update_task("ws-other", "p1", "research", status="done")
        assert (await records.list_tasks("p1"))[0]["status"] == "pending"

    @pytest.mark.asyncio
    async def test_update_missing_task_is_ignored(self, records):
        await records.update_task("ws-1", "p1", "ghost", status="done")
        assert await records.list_tasks("p1") == []

    @pytest.mark.asyncio
    async def test_update_project(self, records):
        project_id = await records.insert_project(ProjectRecord(
            workspace_id="ws-1", user_id="user-1", title="Bio",
        ))
        await records.update_project(project_id, status="done", progress_pct=100)
        project = await records.get_project(project_id)
        assert project["status"] == "done"
        assert project["progress_pct"] == 100


# ---------- approval queue ----------

class TestApprovalQueue:
    @pytest.mark.asyncio
    async def test_enqueue_once(self, approvals):
        assert await approvals.enqueue(_approval()) is True
        assert await approvals.enqueue(_approval()) is False
        assert len(await approvals.list_pending("ws-1")) == 1

    @pytest.mark.asyncio
    async def test_get_round_trips_payload(self, approvals):
        await approvals.enqueue(_approval())
        request = await approvals.get("ws-1", "pipe_1")
        assert request.action_payload == {"final_output": "text", "quality_score": 8}
        assert request.status == ApprovalStatus.PENDING

    @pytest.mark.asyncio
    async def test_resolve_removes_from_pending(self, approvals):
        await approvals.enqueue(_approval("pipe_1"))
        await approvals.enqueue(_approval("pipe_2"))
        await approvals.resolve("ws-1", "pipe_1", ApprovalStatus.APPROVED)

        pending = await approvals.list_pending("ws-1")
        assert [r.pipeline_id for r in pending] == ["pipe_2"]
        resolved = await approvals.get("ws-1", "pipe_1")
        assert resolved.status == ApprovalStatus.APPROVED
        assert resolved.resolved_at is not None

    @pytest.mark.asyncio
    async def test_resolve_missing_is_ignored(self, approvals):
        await approvals.resolve("ws-1", "pipe_missing", ApprovalStatus.REJECTED)
        assert await approvals.get("ws-1", "pipe_missing") is None


# ---------- activity feed ----------

class TestActivityLog:
    @pytest.mark.asyncio
    async def test_append_is_idempotent_by_event_key(self, activity):
        entry = ActivityEntry(
            workspace_id="ws-1", agent_id="agent-1", event_key="pipe_1:research:done:r0",
            action_type="pipeline_step_completed", title="Investigator completed",
        )
        assert await activity.append(entry) is True
        assert await activity.append(entry) is False
        assert await activity.exists("ws-1", entry.event_key)
        assert not await activity.exists("ws-1", "pipe_1:writing:done:r0")
        assert len(await activity.list_entries("ws-1")) == 1
