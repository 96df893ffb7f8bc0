"""Quality gate applied to the reviewer's output."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal

from rolecrew.core.config import PipelineConfig

SCORE_PATTERN = re.compile(r"score.*?(\d+)", re.IGNORECASE)
MAX_SCORE = 10


def parse_quality_score(text: str | None, default: int) -> int:
    """Pull the first integer following "score" out of ``text``, clamped to 0..10."""
    match = SCORE_PATTERN.search(text or "")
    if match is None:
        return default
    return max(0, min(MAX_SCORE, int(match.group(1))))


@dataclass(frozen=True)
class QualityGate:
    """Threshold plus the bound on how often the writer may be sent back."""

    threshold: int = 6
    default_score: int = 7
    max_revisions: int = 2
    on_exhausted: Literal["accept", "fail"] = "accept"

    @classmethod
    def from_config(cls, config: PipelineConfig) -> QualityGate:
        return cls(
            threshold=config.quality_threshold,
            default_score=config.default_quality_score,
            max_revisions=config.max_revisions,
            on_exhausted=config.on_revisions_exhausted,
        )

    def score(self, review_output: str | None) -> int:
        return parse_quality_score(review_output, self.default_score)

    def passes(self, score: int) -> bool:
        return score >= self.threshold

    def can_revise(self, revisions_so_far: int) -> bool:
        return revisions_so_far < self.max_revisions

    @staticmethod
    def revision_packet(score: int, feedback: str, draft: str | None) -> str:
        return (
            f"REVISION REQUIRED (Score: {score}/{MAX_SCORE})\n\n"
            f"Reviewer feedback:\n{feedback}\n\n"
            f"Original draft:\n{draft or ''}"
        )
