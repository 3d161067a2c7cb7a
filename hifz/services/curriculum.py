"""Curriculum shape: page sizes, stage kinds and per-stage line ranges.

Everything here is a pure lookup shared by the batching policy and the stage
machine, so both read the same page/stage geometry.
"""

from __future__ import annotations

from typing import Tuple

from hifz.errors import PageNotFound
from hifz.models.enums import PageKind, StageKind, StageNumber

TOTAL_PAGES = 602
STANDARD_PAGE_LINES = 15
SHORT_PAGE_MAX_LINES = 7
FIRST_HALF_END = 7

# Opening pages are shorter than the standard Medina layout
PAGE_LINE_COUNTS = {
    1: 5,
    2: 6,
}

STAGE_KINDS = {
    StageNumber.STAGE_1_1: StageKind.LEARNING,
    StageNumber.STAGE_1_2: StageKind.CONSOLIDATION,
    StageNumber.STAGE_2_1: StageKind.LEARNING,
    StageNumber.STAGE_2_2: StageKind.CONSOLIDATION,
    StageNumber.STAGE_3: StageKind.WHOLE_PAGE,
}

STAGE_LABELS = {
    StageNumber.STAGE_1_1: "Stage 1.1",
    StageNumber.STAGE_1_2: "Stage 1.2",
    StageNumber.STAGE_2_1: "Stage 2.1",
    StageNumber.STAGE_2_2: "Stage 2.2",
    StageNumber.STAGE_3: "Stage 3",
}


def page_line_count(page_number: int, total_pages: int = TOTAL_PAGES) -> int:
    if page_number < 1 or page_number > total_pages:
        raise PageNotFound(f"Page {page_number} is outside 1..{total_pages}")
    return PAGE_LINE_COUNTS.get(page_number, STANDARD_PAGE_LINES)


def page_kind(total_lines: int) -> PageKind:
    return PageKind.SHORT if total_lines <= SHORT_PAGE_MAX_LINES else PageKind.STANDARD


def stage_kind(stage: StageNumber) -> StageKind:
    return STAGE_KINDS[stage]


def is_learning_stage(stage: StageNumber) -> bool:
    return STAGE_KINDS[stage] is StageKind.LEARNING


def effective_stage(stage: StageNumber, total_lines: int) -> StageNumber:
    """Map a stage onto the ones a page of this size actually has.

    Short pages only know STAGE_1_1 and STAGE_3; everything in between
    collapses into the terminal whole-page stage.
    """
    if page_kind(total_lines) is PageKind.SHORT and stage is not StageNumber.STAGE_1_1:
        return StageNumber.STAGE_3
    return stage


def stage_line_range(stage: StageNumber, total_lines: int) -> Tuple[int, int]:
    """Inclusive line range covered by ``stage`` on a page of ``total_lines``."""
    if page_kind(total_lines) is PageKind.SHORT:
        return 1, total_lines
    if stage in (StageNumber.STAGE_1_1, StageNumber.STAGE_1_2):
        return 1, FIRST_HALF_END
    if stage in (StageNumber.STAGE_2_1, StageNumber.STAGE_2_2):
        return FIRST_HALF_END + 1, total_lines
    return 1, total_lines
