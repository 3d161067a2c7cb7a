import pytest

from hifz.models.enums import PageKind, StageNumber
from hifz.services.stages import (
    PAGE_COMPLETE,
    Position,
    next_position,
    next_stage,
    stage_order,
)


def test_standard_page_stage_order() -> None:
    stages = [StageNumber.STAGE_1_1]
    following = next_stage(stages[-1], PageKind.STANDARD)
    while following is not PAGE_COMPLETE:
        stages.append(following)
        following = next_stage(following, PageKind.STANDARD)
    assert stages == [
        StageNumber.STAGE_1_1,
        StageNumber.STAGE_1_2,
        StageNumber.STAGE_2_1,
        StageNumber.STAGE_2_2,
        StageNumber.STAGE_3,
    ]


def test_short_page_stage_order() -> None:
    assert stage_order(PageKind.SHORT) == (StageNumber.STAGE_1_1, StageNumber.STAGE_3)
    assert next_stage(StageNumber.STAGE_1_1, PageKind.SHORT) is StageNumber.STAGE_3
    assert next_stage(StageNumber.STAGE_3, PageKind.SHORT) is PAGE_COMPLETE
    with pytest.raises(ValueError):
        next_stage(StageNumber.STAGE_2_1, PageKind.SHORT)


def test_learning_stage_continues_with_next_line() -> None:
    transition = next_position(Position(3, 1, StageNumber.STAGE_1_1), 15, 3)
    assert transition.position == Position(3, 4, StageNumber.STAGE_1_1)
    assert not transition.page_completed


def test_end_of_half_moves_to_consolidation() -> None:
    transition = next_position(Position(3, 4, StageNumber.STAGE_1_1), 15, 7)
    assert transition.position == Position(3, 1, StageNumber.STAGE_1_2)


def test_second_half_starts_at_line_eight() -> None:
    transition = next_position(Position(3, 1, StageNumber.STAGE_1_2), 15, 7)
    assert transition.position == Position(3, 8, StageNumber.STAGE_2_1)


def test_whole_page_completes_the_page() -> None:
    transition = next_position(Position(3, 1, StageNumber.STAGE_3), 15, 15)
    assert transition.position == Position(4, 1, StageNumber.STAGE_1_1)
    assert transition.page_completed
    assert not transition.curriculum_finished


def test_short_page_goes_from_learning_to_whole_page() -> None:
    transition = next_position(Position(1, 5, StageNumber.STAGE_1_1), 5, 5)
    assert transition.position == Position(1, 1, StageNumber.STAGE_3)


def test_last_page_finishes_the_curriculum() -> None:
    current = Position(602, 1, StageNumber.STAGE_3)
    transition = next_position(current, 15, 15, total_pages=602)
    assert transition.position == current
    assert transition.page_completed
    assert transition.curriculum_finished
