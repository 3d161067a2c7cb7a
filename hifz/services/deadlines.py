"""Deadline manager: per-stage expiry and remaining time.

Deadlines are advisory only. Nothing here changes task state.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from hifz.models.enums import StageKind, StageNumber
from hifz.services.curriculum import stage_kind
from hifz.services.policy import GroupPolicy


def stage_hours(stage: StageNumber, policy: GroupPolicy) -> int:
    if stage_kind(stage) is StageKind.LEARNING:
        return policy.learning_hours
    if stage is StageNumber.STAGE_1_2:
        return policy.stage_1_2_hours
    if stage is StageNumber.STAGE_2_2:
        return policy.stage_2_2_hours
    return policy.stage_3_hours


def compute_deadline(stage: StageNumber, policy: GroupPolicy, now: datetime) -> datetime:
    return now + timedelta(hours=stage_hours(stage, policy))


def _aware(value: datetime) -> datetime:
    # SQLite drops tzinfo on the way back
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def remaining(deadline: datetime, now: datetime) -> timedelta:
    left = _aware(deadline) - _aware(now)
    return max(left, timedelta(0))


@dataclass(frozen=True)
class DeadlineView:
    deadline: datetime
    remaining_seconds: int
    expired: bool

    @property
    def hours_left(self) -> int:
        return self.remaining_seconds // 3600

    @property
    def minutes_left(self) -> int:
        return (self.remaining_seconds % 3600) // 60


def deadline_view(
    deadline: datetime, policy: GroupPolicy, now: datetime
) -> Optional[DeadlineView]:
    """Display data for a deadline, or ``None`` when the group hides deadlines."""
    if not policy.show_deadlines:
        return None
    left = remaining(deadline, now)
    return DeadlineView(
        deadline=_aware(deadline),
        remaining_seconds=int(left.total_seconds()),
        expired=left == timedelta(0),
    )
