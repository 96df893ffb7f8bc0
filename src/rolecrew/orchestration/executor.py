"""StepExecutor — runs one phase of a pipeline under its role's persona."""

from __future__ import annotations

import asyncio
import logging

from rolecrew.core.config import PipelineConfig
from rolecrew.core.exceptions import AdapterError, NoPendingStepError, StepTimeoutError
from rolecrew.core.protocols import ICompletionAdapter
from rolecrew.core.types import ProgressCallback
from rolecrew.models.pipeline import Persona, Pipeline, PipelineStep, StepStatus, utc_now
from rolecrew.models.records import RecordStatus
from rolecrew.models.roles import get_role
from rolecrew.orchestration.ledger import EventType, PipelineEvent, PipelineLedger

logger = logging.getLogger(__name__)


def build_step_context(pipeline: Pipeline, index: int) -> str:
    """Assemble the prompt for the step at ``index``.

    The first step sees only the original request. Every later step sees the
    whole transcript of completed steps before it, labeled by role, plus any
    revision packet it was handed.
    """
    step = pipeline.steps[index]
    if index == 0:
        return pipeline.original_request

    sections = [f"ORIGINAL REQUEST: {pipeline.original_request}"]
    for prior in pipeline.steps[:index]:
        if prior.status == StepStatus.COMPLETED and prior.output:
            sections.append(f"--- Result from {get_role(prior.role).name} ---\n{prior.output}")
    if step.revision and step.input:
        sections.append(step.input)
    sections.append(f"YOUR TASK: {step.task_title}")
    return "\n\n".join(sections)


class StepExecutor:
    """Executes the first pending step and records its output."""

    def __init__(
        self,
        *,
        adapter: ICompletionAdapter,
        ledger: PipelineLedger,
        config: PipelineConfig | None = None,
    ) -> None:
        self._adapter = adapter
        self._ledger = ledger
        self._config = config or PipelineConfig()

    async def execute_step(
        self, pipeline: Pipeline, on_progress: ProgressCallback | None = None
    ) -> str:
        """Run the first pending step to completion and return its output.

        Raises:
            NoPendingStepError: no step is pending.
            StepTimeoutError: the stream ran past ``step_timeout_seconds``.
            AdapterError: the stream failed; partial output is discarded.
        """
        index = pipeline.first_pending()
        if index is None:
            raise NoPendingStepError(pipeline.id)

        step = pipeline.steps[index]
        role = get_role(step.role)
        step.status = StepStatus.RUNNING
        step.started_at = utc_now()
        prompt = build_step_context(pipeline, index)
        step.input = prompt

        timeout = self._config.step_timeout_seconds
        try:
            output = await asyncio.wait_for(
                self._drain(role.persona(), prompt, step, on_progress), timeout=timeout,
            )
        except TimeoutError:
            step.status = StepStatus.FAILED
            logger.error("Step %s timed out after %ss", step.phase, timeout,
                         extra={"pipeline_id": pipeline.id})
            raise StepTimeoutError(str(step.phase), timeout) from None
        except Exception as exc:
            step.status = StepStatus.FAILED
            logger.error("Step %s failed: %s", step.phase, exc, extra={"pipeline_id": pipeline.id})
            if isinstance(exc, AdapterError) and exc.phase:
                raise
            raise AdapterError(str(exc), phase=str(step.phase)) from exc

        step.output = output
        step.status = StepStatus.COMPLETED
        step.completed_at = utc_now()
        pipeline.reported_progress = max(pipeline.reported_progress, pipeline.progress_pct)

        await self._ledger.apply(PipelineEvent.for_pipeline(
            pipeline,
            EventType.STEP_COMPLETED,
            phase=str(step.phase),
            revision=step.revision,
            title=f"{role.name} completed: {step.task_title}",
            description=output[:self._config.audit_excerpt_chars],
            metadata={
                "role": step.role,
                "revision": step.revision,
            },
            task_update={
                "status": str(RecordStatus.DONE),
                "progress_pct": 100,
                "metadata": {
                    "pipeline_phase": str(step.phase),
                    "pipeline_role": step.role,
                    "output_preview": output[:self._config.output_preview_chars],
                    "completed_at": step.completed_at.isoformat(),
                },
            },
            project_update={"progress_pct": pipeline.reported_progress},
        ))
        return output

    async def _drain(
        self,
        persona: Persona,
        prompt: str,
        step: PipelineStep,
        on_progress: ProgressCallback | None,
    ) -> str:
        parts: list[str] = []
        received = 0
        stream = self._adapter.stream(persona, prompt, [])
        try:
            async for fragment in stream:
                parts.append(fragment)
                received += len(fragment)
                if on_progress is not None:
                    on_progress(step, received)
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()
        return "".join(parts)
