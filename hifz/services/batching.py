"""Line batching policy.

Maps (stage, page size, group level, current line) to the line range of the
next task. Pure: no database access, same inputs give the same range.
"""

from __future__ import annotations

from typing import Tuple

from hifz.models.enums import GroupLevel, StageNumber
from hifz.services.curriculum import effective_stage, is_learning_stage, stage_line_range


def batch_range(
    stage: StageNumber,
    total_lines: int,
    level: GroupLevel,
    current_line: int,
) -> Tuple[int, int]:
    stage = effective_stage(stage, total_lines)
    start, end = stage_line_range(stage, total_lines)

    # consolidation and whole-page stages always take the full range
    if not is_learning_stage(stage):
        return start, end

    line = current_line if start <= current_line <= end else start
    level = GroupLevel(level)

    if level is GroupLevel.LEVEL_1:
        return line, line
    if level is GroupLevel.LEVEL_3:
        return start, end

    # LEVEL_2: the half is split in two, the second batch takes the odd line
    size = end - start + 1
    first = size // 2
    if first == 0:
        return start, end
    split = start + first
    if line < split:
        return start, split - 1
    return split, end


def batches_for_stage(
    stage: StageNumber, total_lines: int, level: GroupLevel
) -> list[Tuple[int, int]]:
    """All successive batches of a stage, starting from its first line."""
    stage = effective_stage(stage, total_lines)
    start, end = stage_line_range(stage, total_lines)
    batches = []
    line = start
    while line <= end:
        batch = batch_range(stage, total_lines, level, line)
        batches.append(batch)
        line = batch[1] + 1
    return batches
