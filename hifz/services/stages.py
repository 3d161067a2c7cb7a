"""Stage state machine.

One transition table parameterized by page kind. ``next_stage`` returns
``PAGE_COMPLETE`` after the terminal stage; ``next_position`` turns a passed
task into the learner's next cursor.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from hifz.models.enums import PageKind, StageNumber
from hifz.services.curriculum import (
    TOTAL_PAGES,
    effective_stage,
    is_learning_stage,
    page_kind,
    stage_line_range,
)

PAGE_COMPLETE = None

STAGE_ORDER = {
    PageKind.STANDARD: (
        StageNumber.STAGE_1_1,
        StageNumber.STAGE_1_2,
        StageNumber.STAGE_2_1,
        StageNumber.STAGE_2_2,
        StageNumber.STAGE_3,
    ),
    PageKind.SHORT: (
        StageNumber.STAGE_1_1,
        StageNumber.STAGE_3,
    ),
}


@dataclass(frozen=True)
class Position:
    page: int
    line: int
    stage: StageNumber


@dataclass(frozen=True)
class Transition:
    position: Position
    page_completed: bool = False
    curriculum_finished: bool = False


def stage_order(kind: PageKind) -> tuple:
    return STAGE_ORDER[kind]


def next_stage(stage: StageNumber, kind: PageKind) -> Optional[StageNumber]:
    order = STAGE_ORDER[kind]
    if stage not in order:
        raise ValueError(f"{stage.value} is not part of a {kind.value} page")
    index = order.index(stage)
    if index == len(order) - 1:
        return PAGE_COMPLETE
    return order[index + 1]


def next_position(
    current: Position,
    total_lines: int,
    completed_end_line: int,
    total_pages: int = TOTAL_PAGES,
) -> Transition:
    """Cursor after the task ending at ``completed_end_line`` passed."""
    kind = page_kind(total_lines)
    stage = effective_stage(current.stage, total_lines)
    _, stage_end = stage_line_range(stage, total_lines)

    # learning stages continue batch by batch inside the same range
    if is_learning_stage(stage) and completed_end_line < stage_end:
        return Transition(Position(current.page, completed_end_line + 1, stage))

    following = next_stage(stage, kind)
    if following is not PAGE_COMPLETE:
        start, _ = stage_line_range(following, total_lines)
        return Transition(Position(current.page, start, following))

    if current.page >= total_pages:
        return Transition(current, page_completed=True, curriculum_finished=True)
    return Transition(
        Position(current.page + 1, 1, StageNumber.STAGE_1_1),
        page_completed=True,
    )
