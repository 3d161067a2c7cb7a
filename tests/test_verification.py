import pytest

from hifz.models.enums import StageKind, StageNumber, VerificationMode
from hifz.services.policy import GroupPolicy
from hifz.services.verification import Outcome, VerificationPolicy, decide

from conftest import FakeScorer


def _policy(**overrides) -> GroupPolicy:
    values = {"group_id": 1, "mentor_id": 1, "ai_enabled": True}
    values.update(overrides)
    return GroupPolicy(**values)


@pytest.mark.parametrize(
    "score, expected",
    [
        (90, Outcome.AUTO_PASSED),
        (85, Outcome.AUTO_PASSED),
        (84.9, Outcome.QUEUE_FOR_MENTOR),
        (60, Outcome.QUEUE_FOR_MENTOR),
        (50, Outcome.QUEUE_FOR_MENTOR),
        (49.9, Outcome.AUTO_FAILED),
        (0, Outcome.AUTO_FAILED),
    ],
)
def test_full_auto_thresholds(score, expected) -> None:
    assert decide(VerificationMode.FULL_AUTO, score, 85, 50, StageKind.LEARNING) is expected


@pytest.mark.parametrize("mode", [VerificationMode.MANUAL, VerificationMode.SEMI_AUTO])
def test_manual_and_semi_auto_always_go_to_mentor(mode) -> None:
    for score in (0, 50, 99):
        assert decide(mode, score, 85, 50, StageKind.LEARNING) is Outcome.QUEUE_FOR_MENTOR


def test_missing_score_goes_to_mentor() -> None:
    assert decide(VerificationMode.FULL_AUTO, None, 85, 50, StageKind.LEARNING) is Outcome.QUEUE_FOR_MENTOR


def test_only_learning_stages_are_decided_automatically() -> None:
    for kind in (StageKind.CONSOLIDATION, StageKind.WHOLE_PAGE):
        assert decide(VerificationMode.FULL_AUTO, 99, 85, 50, kind) is Outcome.QUEUE_FOR_MENTOR


def test_scorer_not_called_for_consolidation() -> None:
    scorer = FakeScorer(99)
    policy = VerificationPolicy(scorer)
    result = policy.evaluate(
        _policy(verification_mode=VerificationMode.FULL_AUTO), StageNumber.STAGE_1_2, {}, "page:3"
    )
    assert result.outcome is Outcome.QUEUE_FOR_MENTOR
    assert result.score is None
    assert scorer.calls == []


def test_scorer_not_called_when_ai_disabled() -> None:
    scorer = FakeScorer(99)
    result = VerificationPolicy(scorer).evaluate(
        _policy(ai_enabled=False, verification_mode=VerificationMode.FULL_AUTO),
        StageNumber.STAGE_1_1,
        {},
        "page:3",
    )
    assert result.outcome is Outcome.QUEUE_FOR_MENTOR
    assert scorer.calls == []


def test_semi_auto_keeps_the_score_as_a_hint() -> None:
    result = VerificationPolicy(FakeScorer(97)).evaluate(
        _policy(verification_mode=VerificationMode.SEMI_AUTO), StageNumber.STAGE_1_1, {}, "page:3"
    )
    assert result.outcome is Outcome.QUEUE_FOR_MENTOR
    assert result.score == 97
    assert result.transcript == "bismillah"


def test_scorer_failure_falls_back_to_mentor() -> None:
    scorer = FakeScorer(99)
    scorer.fail = True
    result = VerificationPolicy(scorer).evaluate(
        _policy(verification_mode=VerificationMode.FULL_AUTO), StageNumber.STAGE_1_1, {}, "page:3"
    )
    assert result.outcome is Outcome.QUEUE_FOR_MENTOR
    assert result.score is None


def test_reject_threshold_above_accept_is_rejected() -> None:
    with pytest.raises(ValueError):
        _policy(accept_threshold=40, reject_threshold=60)
