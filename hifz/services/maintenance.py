"""Repair helpers for counters that drifted from the stored verdicts."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from hifz.logging import get_logger
from hifz.models import Submission, SubmissionStatus, Task, TaskStatus

logger = get_logger("maintenance")


@dataclass
class CounterFix:
    task_id: int
    passed_before: int
    failed_before: int
    passed_after: int
    failed_after: int


def recount_task_counters(db: Session, dry_run: bool = False) -> List[CounterFix]:
    """Recompute passed/failed counts of in-progress tasks from their submissions.

    Tasks are never completed here; a task that reaches its requirement after
    the fix completes on its next verdict.
    """
    counts = (
        select(
            Submission.task_id,
            func.sum(case((Submission.status == SubmissionStatus.PASSED, 1), else_=0)).label("passed"),
            func.sum(case((Submission.status == SubmissionStatus.FAILED, 1), else_=0)).label("failed"),
        )
        .group_by(Submission.task_id)
        .subquery()
    )
    rows = db.execute(
        select(Task, counts.c.passed, counts.c.failed)
        .outerjoin(counts, counts.c.task_id == Task.id)
        .where(Task.status == TaskStatus.IN_PROGRESS)
        .order_by(Task.id)
    ).all()

    fixes: List[CounterFix] = []
    for task, passed, failed in rows:
        passed, failed = passed or 0, failed or 0
        if task.passed_count == passed and task.failed_count == failed:
            continue
        fixes.append(
            CounterFix(
                task_id=task.id,
                passed_before=task.passed_count,
                failed_before=task.failed_count,
                passed_after=passed,
                failed_after=failed,
            )
        )
        if not dry_run:
            task.passed_count = passed
            task.failed_count = failed

    if dry_run:
        db.rollback()
    else:
        db.commit()
    logger.info("Recounted %s task(s)%s", len(fixes), " (dry run)" if dry_run else "")
    return fixes
