from datetime import datetime, timedelta, timezone

from hifz.models.enums import StageNumber
from hifz.services.deadlines import compute_deadline, deadline_view, remaining, stage_hours
from hifz.services.policy import GroupPolicy

NOW = datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc)


def _policy(**overrides) -> GroupPolicy:
    return GroupPolicy(group_id=1, mentor_id=1, **overrides)


def test_stage_hours_by_stage() -> None:
    policy = _policy(learning_hours=12, stage_1_2_hours=30, stage_2_2_hours=36, stage_3_hours=72)
    assert stage_hours(StageNumber.STAGE_1_1, policy) == 12
    assert stage_hours(StageNumber.STAGE_2_1, policy) == 12
    assert stage_hours(StageNumber.STAGE_1_2, policy) == 30
    assert stage_hours(StageNumber.STAGE_2_2, policy) == 36
    assert stage_hours(StageNumber.STAGE_3, policy) == 72


def test_compute_deadline_adds_stage_hours() -> None:
    assert compute_deadline(StageNumber.STAGE_1_1, _policy(), NOW) == NOW + timedelta(hours=24)
    assert compute_deadline(StageNumber.STAGE_3, _policy(), NOW) == NOW + timedelta(hours=48)


def test_remaining_never_goes_negative() -> None:
    deadline = NOW + timedelta(hours=1)
    assert remaining(deadline, NOW) == timedelta(hours=1)
    assert remaining(deadline, NOW + timedelta(hours=5)) == timedelta(0)


def test_remaining_accepts_naive_deadlines() -> None:
    naive = (NOW + timedelta(minutes=90)).replace(tzinfo=None)
    assert remaining(naive, NOW) == timedelta(minutes=90)


def test_deadline_view_splits_hours_and_minutes() -> None:
    view = deadline_view(NOW + timedelta(hours=5, minutes=20), _policy(), NOW)
    assert view.hours_left == 5
    assert view.minutes_left == 20
    assert not view.expired

    expired = deadline_view(NOW, _policy(), NOW + timedelta(seconds=1))
    assert expired.expired
    assert expired.remaining_seconds == 0


def test_deadline_view_hidden_by_policy() -> None:
    assert deadline_view(NOW, _policy(show_deadlines=False), NOW) is None
