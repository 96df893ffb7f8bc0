"""Pipeline, step, and persona models."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PipelineStatus(StrEnum):
    CREATED = "created"
    PLANNING = "planning"
    IN_PROGRESS = "in_progress"
    REVIEW = "review"
    APPROVAL = "approval"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    MAX_REVISIONS_EXCEEDED = "max_revisions_exceeded"


# current_phase/current_role stop tracking steps once one of these is reached
FROZEN_STATUSES = frozenset({
    PipelineStatus.APPROVAL,
    PipelineStatus.COMPLETED,
    PipelineStatus.FAILED,
    PipelineStatus.TIMED_OUT,
    PipelineStatus.MAX_REVISIONS_EXCEEDED,
})


class StepStatus(StrEnum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    NEEDS_REVISION = "needs_revision"


class Phase(StrEnum):
    RESEARCH = "research"
    WRITING = "writing"
    REVIEW = "review"
    FINAL_REVIEW = "final_review"
    DELIVERY = "delivery"


class Channel(StrEnum):
    WEB = "web"
    WHATSAPP = "whatsapp"
    TELEGRAM = "telegram"


class PipelineStep(BaseModel):
    """One phase's unit of work inside a pipeline."""

    phase: Phase
    role: str
    task_title: str
    input: str = ""
    output: Optional[str] = None
    status: StepStatus = StepStatus.PENDING
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    quality_score: Optional[int] = Field(default=None, ge=0, le=10)
    revision: int = 0  # times this step was sent back for a rewrite

    def reset(self, new_input: str = "") -> None:
        """Return the step to pending, dropping its previous output."""
        self.status = StepStatus.PENDING
        self.input = new_input
        self.output = None
        self.started_at = None
        self.completed_at = None


class Pipeline(BaseModel):
    """One orchestrated multi-phase execution of a request."""

    id: str
    project_id: str
    workspace_id: str
    user_id: str
    agent_id: str
    original_request: str
    current_phase: Phase = Phase.RESEARCH
    current_role: str = ""
    steps: list[PipelineStep] = Field(default_factory=list)
    status: PipelineStatus = PipelineStatus.CREATED
    final_output: Optional[str] = None
    channel: Channel = Channel.WEB
    # highest progress written to the project record; a reroute never lowers it
    reported_progress: int = 0
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def is_frozen(self) -> bool:
        return self.status in FROZEN_STATUSES

    @property
    def notifies_user(self) -> bool:
        return self.channel != Channel.WEB

    def step_for(self, phase: Phase) -> Optional[PipelineStep]:
        for step in self.steps:
            if step.phase == phase:
                return step
        return None

    def index_of(self, phase: Phase) -> int:
        for i, step in enumerate(self.steps):
            if step.phase == phase:
                return i
        raise KeyError(phase)

    def first_pending(self) -> Optional[int]:
        for i, step in enumerate(self.steps):
            if step.status == StepStatus.PENDING:
                return i
        return None

    @property
    def completed_count(self) -> int:
        return sum(1 for s in self.steps if s.status == StepStatus.COMPLETED)

    @property
    def progress_pct(self) -> int:
        if not self.steps:
            return 0
        return round(self.completed_count / len(self.steps) * 100)

    @property
    def review_score(self) -> Optional[int]:
        review = self.step_for(Phase.REVIEW)
        return review.quality_score if review else None


class Persona(BaseModel):
    """Persona descriptor handed to the completion adapter for one step."""

    role_id: str
    name: str
    system_prompt: str
    hitl_level: str = "plan_only"
    maturity_mode: str = "operator"
    resonance_score: int = 70
    temperature: float = 0.3
    max_tokens: int = 2048
