"""Verification policy: when to call the scorer and what its score means.

``decide`` is the pure decision table; ``VerificationPolicy`` wraps it with the
scorer call and turns scorer failures into a manual review.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from hifz.errors import ScorerUnavailable
from hifz.logging import get_logger
from hifz.models.enums import StageKind, StageNumber, VerificationMode
from hifz.services.curriculum import stage_kind
from hifz.services.policy import GroupPolicy
from hifz.services.scorer import RecitationScorer

logger = get_logger("verification")


class Outcome(str, enum.Enum):
    QUEUE_FOR_MENTOR = "queue_for_mentor"
    AUTO_PASSED = "auto_passed"
    AUTO_FAILED = "auto_failed"


@dataclass
class VerificationResult:
    outcome: Outcome
    score: Optional[float] = None
    transcript: Optional[str] = None
    errors: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def is_automatic(self) -> bool:
        return self.outcome is not Outcome.QUEUE_FOR_MENTOR


def should_score(policy: GroupPolicy, stage: StageNumber) -> bool:
    # consolidation and whole-page recitations are always heard by the mentor
    return policy.ai_enabled and stage_kind(stage) is StageKind.LEARNING


def decide(
    mode: VerificationMode,
    score: Optional[float],
    accept_threshold: float,
    reject_threshold: float,
    kind: StageKind,
) -> Outcome:
    if kind is not StageKind.LEARNING or score is None:
        return Outcome.QUEUE_FOR_MENTOR
    if mode is not VerificationMode.FULL_AUTO:
        return Outcome.QUEUE_FOR_MENTOR
    if score >= accept_threshold:
        return Outcome.AUTO_PASSED
    if score < reject_threshold:
        return Outcome.AUTO_FAILED
    return Outcome.QUEUE_FOR_MENTOR


class VerificationPolicy:
    """Runs the optional scorer and applies the decision table."""

    def __init__(self, scorer: Optional[RecitationScorer]) -> None:
        self.scorer = scorer

    def evaluate(
        self,
        policy: GroupPolicy,
        stage: StageNumber,
        payload: Dict[str, Any],
        expected_text: str,
    ) -> VerificationResult:
        if self.scorer is None or not should_score(policy, stage):
            return VerificationResult(Outcome.QUEUE_FOR_MENTOR)

        try:
            result = self.scorer.score(payload, expected_text)
        except ScorerUnavailable as exc:
            logger.warning("Scorer unavailable, falling back to manual review: %s", exc)
            return VerificationResult(Outcome.QUEUE_FOR_MENTOR)

        outcome = decide(
            policy.verification_mode,
            result.score,
            policy.accept_threshold,
            policy.reject_threshold,
            stage_kind(stage),
        )
        return VerificationResult(
            outcome=outcome,
            score=result.score,
            transcript=result.transcript,
            errors=[error.model_dump() for error in result.errors],
        )
