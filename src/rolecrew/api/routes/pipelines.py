"""Pipeline endpoints: start a run, inspect it, approve or reject the result."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, BackgroundTasks, HTTPException, Request, status
from pydantic import BaseModel

from rolecrew.core.exceptions import (
    ApprovalNotFoundError,
    CacheError,
    InvalidTransitionError,
    PipelineActiveError,
    ValidationError,
)
from rolecrew.models.pipeline import Channel, Pipeline
from rolecrew.orchestration.service import PipelineService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["pipelines"])


class CreatePipelineBody(BaseModel):
    workspace_id: str
    user_id: str
    agent_id: str = "default"
    request: str
    channel: str = Channel.WEB


class ResolveBody(BaseModel):
    workspace_id: str
    reason: str = ""


def _service(request: Request) -> PipelineService:
    return request.app.state.service


async def _run_in_background(service: PipelineService, pipeline: Pipeline) -> None:
    try:
        await service.run(pipeline)
    except Exception:
        logger.exception("Background run of pipeline %s crashed", pipeline.id)


@router.post("/pipelines", status_code=status.HTTP_202_ACCEPTED)
async def create_pipeline(
    body: CreatePipelineBody, request: Request, background: BackgroundTasks
) -> dict[str, Any]:
    """Create the pipeline and schedule its run without blocking the caller."""
    service = _service(request)
    try:
        pipeline = await service.start(
            workspace_id=body.workspace_id,
            user_id=body.user_id,
            agent_id=body.agent_id,
            request=body.request,
            channel=body.channel,
        )
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except PipelineActiveError as exc:
        raise HTTPException(
            status_code=409, detail={"status": "pipeline_active", "pipeline_id": exc.pipeline_id},
        ) from exc
    except CacheError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    background.add_task(_run_in_background, service, pipeline)
    return {
        "status": "pipeline_started",
        "pipeline_id": pipeline.id,
        "project_id": pipeline.project_id,
    }


@router.get("/pipelines/{pipeline_id}")
async def get_pipeline(pipeline_id: str, request: Request) -> dict[str, Any]:
    try:
        pipeline = await _service(request).get(pipeline_id)
    except CacheError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    if pipeline is None:
        raise HTTPException(status_code=404, detail=f"Unknown pipeline {pipeline_id}")
    return pipeline.model_dump(mode="json")


@router.post("/pipelines/{pipeline_id}/approve")
async def approve_pipeline(pipeline_id: str, body: ResolveBody, request: Request) -> dict[str, Any]:
    try:
        pipeline = await _service(request).approve(body.workspace_id, pipeline_id)
    except ApprovalNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except InvalidTransitionError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return {"pipeline_id": pipeline.id, "status": str(pipeline.status)}


@router.post("/pipelines/{pipeline_id}/reject")
async def reject_pipeline(pipeline_id: str, body: ResolveBody, request: Request) -> dict[str, Any]:
    try:
        pipeline = await _service(request).reject(body.workspace_id, pipeline_id, body.reason)
    except ApprovalNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except InvalidTransitionError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return {"pipeline_id": pipeline.id, "status": str(pipeline.status)}


@router.get("/workspaces/{workspace_id}/approvals")
async def list_approvals(workspace_id: str, request: Request) -> dict[str, Any]:
    pending = await _service(request).pending_approvals(workspace_id)
    return {
        "workspace_id": workspace_id,
        "approvals": [
            {
                "pipeline_id": a.pipeline_id,
                "title": a.action_title,
                "description": a.action_description,
                "quality_score": a.action_payload.get("quality_score"),
                "created_at": a.created_at.isoformat(),
            }
            for a in pending
        ],
    }
