"""Unit test fixtures: orchestrator wired to in-memory fakes."""

from __future__ import annotations

import pytest

from rolecrew.core.config import AppSettings, PipelineConfig
from rolecrew.orchestration.builder import PipelineBuilder
from rolecrew.orchestration.executor import StepExecutor
from rolecrew.orchestration.ledger import PipelineLedger
from rolecrew.orchestration.runner import PipelineRunner
from rolecrew.orchestration.service import PipelineService
from rolecrew.persistence import Persistence
from tests.fakes import (
    AGENT,
    BIO_REQUEST,
    USER,
    WORKSPACE,
    MemoryActivityLog,
    MemoryApprovalQueue,
    MemoryCacheBackend,
    MemoryRecordStore,
    MockCompletionAdapter,
    RecordingDelivery,
    RecordingNotifier,
)


@pytest.fixture
def records():
    return MemoryRecordStore()


@pytest.fixture
def approvals():
    return MemoryApprovalQueue()


@pytest.fixture
def activity():
    return MemoryActivityLog()


@pytest.fixture
def ledger(records, approvals, activity):
    return PipelineLedger(records=records, approvals=approvals, activity=activity)


@pytest.fixture
def adapter():
    llm = MockCompletionAdapter(fragment_size=8)
    llm.set_response("investigator", "Research: founded 2019, 40 staff.")
    llm.set_response("writer", "Acme builds tools for teams.")
    llm.set_response("reviewer", "APPROVED. Score: 9/10")
    llm.set_response("director", "Final review: ready to ship.")
    return llm


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def delivery():
    return RecordingDelivery()


@pytest.fixture
def pipeline_config():
    return PipelineConfig(step_timeout_seconds=5.0)


@pytest.fixture
def builder(records, ledger):
    return PipelineBuilder(records=records, ledger=ledger)


@pytest.fixture
def executor(adapter, ledger, pipeline_config):
    return StepExecutor(adapter=adapter, ledger=ledger, config=pipeline_config)


@pytest.fixture
def runner(executor, ledger, notifier, pipeline_config):
    return PipelineRunner(executor=executor, ledger=ledger, notifier=notifier, config=pipeline_config)


@pytest.fixture
def make_pipeline(builder):
    async def _make(request: str = BIO_REQUEST, channel: str = "web"):
        return await builder.create_pipeline(
            workspace_id=WORKSPACE, user_id=USER, agent_id=AGENT, request=request, channel=channel,
        )
    return _make


@pytest.fixture
def service(records, approvals, activity, adapter, notifier, delivery, pipeline_config):
    settings = AppSettings(pipeline=pipeline_config)
    persistence = Persistence(
        records=records, approvals=approvals, activity=activity, cache=MemoryCacheBackend(),
    )
    return PipelineService(
        settings=settings,
        persistence=persistence,
        adapter=adapter,
        notifier=notifier,
        delivery=delivery,
    )
