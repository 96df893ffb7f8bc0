"""RoleCrew exception hierarchy."""

from __future__ import annotations


class RoleCrewError(Exception):
    """Base exception for all RoleCrew errors."""


class ValidationError(RoleCrewError):
    """Malformed pipeline construction input, rejected before any write."""


class PipelineError(RoleCrewError):
    """Error during pipeline execution."""


class NoPendingStepError(PipelineError):
    """execute_step was called on a pipeline with no pending step."""

    def __init__(self, pipeline_id: str) -> None:
        self.pipeline_id = pipeline_id
        super().__init__(f"No pending steps in pipeline {pipeline_id}")


class AdapterError(PipelineError):
    """The completion stream failed mid-generation."""

    def __init__(self, message: str, phase: str | None = None) -> None:
        self.phase = phase
        super().__init__(f"Step {phase} failed: {message}" if phase else message)


class StepTimeoutError(AdapterError):
    """The completion stream did not finish within the step timeout."""

    def __init__(self, phase: str, timeout_seconds: float) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(f"timed out after {timeout_seconds:g}s", phase=phase)


class InvalidTransitionError(PipelineError):
    """Pipeline is not in a status that allows the requested transition."""

    def __init__(self, pipeline_id: str, status: str, action: str) -> None:
        self.pipeline_id = pipeline_id
        self.status = status
        super().__init__(f"Cannot {action} pipeline {pipeline_id} in status {status!r}")


class ApprovalNotFoundError(PipelineError):
    """No approval-queue entry exists for the pipeline."""


class PipelineActiveError(PipelineError):
    """The user already has a running pipeline in this workspace."""

    def __init__(self, pipeline_id: str) -> None:
        self.pipeline_id = pipeline_id
        super().__init__(f"Pipeline {pipeline_id} is still running")


class PersistenceError(RoleCrewError):
    """Collaborator record store call failed."""


class CacheError(RoleCrewError):
    """Redis cache operation failed."""


class NotificationError(RoleCrewError):
    """Outbound messaging gateway call failed."""


class DeliveryError(RoleCrewError):
    """Delivery webhook call failed."""
