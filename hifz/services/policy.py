"""Group policy snapshot and its source.

The engine never writes policy; it reads an immutable snapshot of the group's
columns once per operation.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic import ValidationError
from sqlalchemy.orm import Session

from hifz.errors import ConfigurationError, GroupPolicyMissing
from hifz.logging import get_logger
from hifz.models import Group
from hifz.models.enums import GroupLevel, StageKind, StageNumber, VerificationMode
from hifz.services.curriculum import stage_kind

logger = get_logger("policy")


class GroupPolicy(BaseModel):
    """Read-only group configuration consumed by the engine."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    group_id: int
    mentor_id: int
    level: GroupLevel = GroupLevel.LEVEL_1

    learning_required_count: int = Field(default=80, ge=1)
    consolidation_required_count: int = Field(default=80, ge=1)
    whole_page_required_count: int = Field(default=80, ge=1)

    learning_hours: int = Field(default=24, ge=0)
    stage_1_2_hours: int = Field(default=48, ge=0)
    stage_2_2_hours: int = Field(default=48, ge=0)
    stage_3_hours: int = Field(default=48, ge=0)
    show_deadlines: bool = True

    verification_mode: VerificationMode = VerificationMode.MANUAL
    ai_enabled: bool = False
    accept_threshold: float = Field(default=85.0, ge=0, le=100)
    reject_threshold: float = Field(default=50.0, ge=0, le=100)

    allow_voice: bool = True
    allow_video_note: bool = True
    allow_text: bool = False

    @model_validator(mode="after")
    def _check_thresholds(self) -> "GroupPolicy":
        if self.reject_threshold > self.accept_threshold:
            raise ValueError("reject_threshold must not exceed accept_threshold")
        return self

    def required_count(self, stage: StageNumber) -> int:
        kind = stage_kind(stage)
        if kind is StageKind.LEARNING:
            return self.learning_required_count
        if kind is StageKind.CONSOLIDATION:
            return self.consolidation_required_count
        return self.whole_page_required_count


def policy_from_group(group: Group) -> GroupPolicy:
    try:
        return GroupPolicy.model_validate(
            {
                "group_id": group.id,
                "mentor_id": group.mentor_id,
                "level": group.level,
                "learning_required_count": group.learning_required_count,
                "consolidation_required_count": group.consolidation_required_count,
                "whole_page_required_count": group.whole_page_required_count,
                "learning_hours": group.learning_hours,
                "stage_1_2_hours": group.stage_1_2_hours,
                "stage_2_2_hours": group.stage_2_2_hours,
                "stage_3_hours": group.stage_3_hours,
                "show_deadlines": group.show_deadlines,
                "verification_mode": group.verification_mode,
                "ai_enabled": group.ai_enabled,
                "accept_threshold": group.accept_threshold,
                "reject_threshold": group.reject_threshold,
                "allow_voice": group.allow_voice,
                "allow_video_note": group.allow_video_note,
                "allow_text": group.allow_text,
            }
        )
    except ValidationError as exc:
        logger.error("Invalid policy for group %s: %s", group.id, exc)
        raise ConfigurationError(f"Group {group.id} has an invalid policy") from exc


def load_policy(db: Session, group_id: int) -> GroupPolicy:
    group = db.get(Group, group_id)
    if group is None:
        logger.error("No policy configured for group %s", group_id)
        raise GroupPolicyMissing(f"No policy configured for group {group_id}")
    return policy_from_group(group)
