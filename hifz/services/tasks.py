"""Task lifecycle: opening tasks, submission intake, verdicts and cancellation.

Every public method is one transaction: it either commits all of its counter,
status and cursor changes together or raises before committing anything.
Counter updates lock the task row, never the learner, so tasks of different
stages advance independently.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hifz.config import Settings, get_settings
from hifz.errors import (
    CurriculumFinished,
    FormatNotAllowed,
    NothingToCancel,
    ProgressNotFound,
    SubmissionAlreadyReviewed,
    SubmissionNotFound,
    TaskAlreadyComplete,
    TaskNotFound,
)
from hifz.logging import get_logger
from hifz.models import (
    FileType,
    StudentGroupProgress,
    Submission,
    SubmissionStatus,
    Task,
    TaskStatus,
)
from hifz.models.enums import StageNumber
from hifz.schemas.submissions import SubmissionPayload
from hifz.services.batching import batch_range
from hifz.services.curriculum import effective_stage, is_learning_stage, page_line_count, stage_line_range
from hifz.services.deadlines import compute_deadline
from hifz.services.policy import GroupPolicy, load_policy
from hifz.services.scorer import passage_reference
from hifz.services.stages import Position, Transition, next_position
from hifz.services.verification import Outcome, VerificationPolicy, VerificationResult

logger = get_logger("tasks")

VERDICTS = (SubmissionStatus.PASSED, SubmissionStatus.FAILED)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class IntakeResult:
    submission: Submission
    task: Task
    duplicate: bool = False
    verification: Optional[VerificationResult] = None
    released: List[Submission] = field(default_factory=list)
    task_completed: bool = False
    transition: Optional[Transition] = None


@dataclass
class VerdictResult:
    submission: Submission
    task: Task
    task_completed: bool = False
    transition: Optional[Transition] = None


@dataclass
class CancelResult:
    submission_id: int
    task: Task
    was_queued: bool
    mentor_id: int


class TaskService:
    """封装任务生命周期的全部写操作。"""

    def __init__(
        self,
        verification: VerificationPolicy,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.verification = verification
        self.settings = settings or get_settings()
        self.clock = clock

    # === 查询 ===

    def get_task(self, db: Session, task_id: int) -> Task:
        task = db.get(Task, task_id)
        if task is None:
            raise TaskNotFound(f"Task {task_id} not found")
        return task

    def get_submission(self, db: Session, submission_id: int) -> Submission:
        submission = db.get(Submission, submission_id)
        if submission is None:
            raise SubmissionNotFound(f"Submission {submission_id} not found")
        return submission

    def pending_count(self, db: Session, task_id: int) -> int:
        return db.scalar(
            select(func.count(Submission.id)).where(
                Submission.task_id == task_id,
                Submission.status == SubmissionStatus.PENDING,
            )
        ) or 0

    def get_progress(self, db: Session, student_id: int, group_id: int) -> StudentGroupProgress:
        progress = self._find_progress(db, student_id, group_id)
        if progress is None:
            raise ProgressNotFound(f"No progress for student {student_id} in group {group_id}")
        return progress

    def _find_progress(
        self, db: Session, student_id: int, group_id: int, lock: bool = False
    ) -> Optional[StudentGroupProgress]:
        query = select(StudentGroupProgress).where(
            StudentGroupProgress.student_id == student_id,
            StudentGroupProgress.group_id == group_id,
        )
        if lock:
            query = query.with_for_update()
        return db.execute(query).scalar_one_or_none()

    def _lock_task(self, db: Session, task_id: int) -> Task:
        task = db.execute(
            select(Task).where(Task.id == task_id).with_for_update()
        ).scalar_one_or_none()
        if task is None:
            raise TaskNotFound(f"Task {task_id} not found")
        return task

    # === 开启任务 ===

    def open_task(
        self,
        db: Session,
        student_id: int,
        group_id: int,
        stage: Optional[StageNumber] = None,
        page_number: Optional[int] = None,
    ) -> Task:
        """Return the open task for the requested work, creating it if needed."""
        policy = load_policy(db, group_id)
        progress = self._find_progress(db, student_id, group_id)
        if progress is None:
            progress = StudentGroupProgress(
                student_id=student_id,
                group_id=group_id,
                current_page=1,
                current_line=1,
                current_stage=StageNumber.STAGE_1_1,
            )
            db.add(progress)
            db.flush()
        elif progress.finished_at is not None and page_number is None:
            # the cursor rests on the last page; only explicit review pages remain
            raise CurriculumFinished(
                f"Student {student_id} has finished the curriculum in group {group_id}"
            )

        page = page_number or progress.current_page
        total_lines = page_line_count(page, self.settings.total_pages)
        stage = effective_stage(stage or progress.current_stage, total_lines)

        at_cursor = (
            page == progress.current_page
            and stage == effective_stage(progress.current_stage, total_lines)
        )
        current_line = progress.current_line if at_cursor else stage_line_range(stage, total_lines)[0]
        start_line, end_line = batch_range(stage, total_lines, policy.level, current_line)

        existing = db.execute(
            select(Task)
            .where(
                Task.student_id == student_id,
                Task.group_id == group_id,
                Task.page_number == page,
                Task.stage == stage,
                Task.start_line == start_line,
                Task.status == TaskStatus.IN_PROGRESS,
            )
            .order_by(Task.id)
        ).scalars().first()
        if existing is not None:
            db.commit()
            return existing

        now = self.clock()
        task = Task(
            student_id=student_id,
            group_id=group_id,
            page_number=page,
            start_line=start_line,
            end_line=end_line,
            stage=stage,
            required_count=policy.required_count(stage),
            deadline=compute_deadline(stage, policy, now),
            created_at=now,
        )
        db.add(task)
        db.commit()
        db.refresh(task)
        logger.info(
            "Opened task %s for student %s: page %s lines %s-%s %s (x%s)",
            task.id, student_id, page, start_line, end_line, stage.value, task.required_count,
        )
        return task

    # === 提交 ===

    def intake_submission(
        self,
        db: Session,
        task_id: int,
        payload: SubmissionPayload,
        external_message_id: Optional[str] = None,
    ) -> IntakeResult:
        task = self.get_task(db, task_id)

        if external_message_id:
            existing = self._find_by_external_id(db, task_id, external_message_id)
            if existing is not None:
                logger.info("Replayed message %s for task %s ignored", external_message_id, task_id)
                return IntakeResult(submission=existing, task=task, duplicate=True)

        policy = load_policy(db, task.group_id)
        self._check_format(policy, payload.file_type)
        self._check_capacity(task, self.pending_count(db, task_id))

        # scoring happens before the row lock is taken
        verification = self.verification.evaluate(
            policy,
            task.stage,
            payload.model_dump(mode="json"),
            passage_reference(task.page_number, task.start_line, task.end_line),
        )

        task = self._lock_task(db, task_id)
        self._check_capacity(task, self.pending_count(db, task_id))
        previous = self._latest_unconfirmed(db, task_id)

        now = self.clock()
        submission = Submission(
            task_id=task_id,
            student_id=task.student_id,
            external_message_id=external_message_id,
            file_type=payload.file_type,
            file_id=payload.file_id,
            text_content=payload.text,
            duration_seconds=payload.duration_seconds,
            status=SubmissionStatus.PENDING,
            ai_score=verification.score,
            ai_transcript=verification.transcript,
            ai_errors_json=verification.errors,
            created_at=now,
        )
        db.add(submission)
        try:
            db.flush()
        except IntegrityError:
            db.rollback()
            existing = self._find_by_external_id(db, task_id, external_message_id)
            if existing is None:
                raise
            return IntakeResult(submission=existing, task=self.get_task(db, task_id), duplicate=True)

        result = IntakeResult(submission=submission, task=task, verification=verification)

        if previous is not None:
            self._mark_confirmed(previous)
            result.released.append(previous)

        if verification.is_automatic:
            status = (
                SubmissionStatus.PASSED
                if verification.outcome is Outcome.AUTO_PASSED
                else SubmissionStatus.FAILED
            )
            submission.status = status
            submission.auto_reviewed = True
            submission.reviewed_at = now
            db.flush()
            task, completed, transition = self._count_verdict(db, task_id, status, now)
            result.task = task
            result.task_completed = completed
            result.transition = transition

        db.commit()
        db.refresh(submission)
        logger.info(
            "Submission %s for task %s: %s (score=%s)",
            submission.id, task_id, verification.outcome.value, verification.score,
        )
        return result

    def confirm_submission(self, db: Session, submission_id: int) -> tuple[Submission, bool]:
        """Explicit "send" for a pending recording. Returns (submission, changed)."""
        submission = self.get_submission(db, submission_id)
        if submission.status is not SubmissionStatus.PENDING:
            raise SubmissionAlreadyReviewed(
                f"Submission {submission_id} is already {submission.status.value}",
                status=submission.status,
            )
        if submission.queued_for_review:
            return submission, False
        self._mark_confirmed(submission)
        db.commit()
        db.refresh(submission)
        return submission, True

    def _mark_confirmed(self, submission: Submission) -> None:
        submission.queued_for_review = True

    def _find_by_external_id(
        self, db: Session, task_id: int, external_message_id: Optional[str]
    ) -> Optional[Submission]:
        if not external_message_id:
            return None
        return db.execute(
            select(Submission).where(
                Submission.task_id == task_id,
                Submission.external_message_id == external_message_id,
            )
        ).scalar_one_or_none()

    def _latest_unconfirmed(self, db: Session, task_id: int) -> Optional[Submission]:
        return db.execute(
            select(Submission)
            .where(
                Submission.task_id == task_id,
                Submission.status == SubmissionStatus.PENDING,
                Submission.queued_for_review.is_(False),
            )
            .order_by(Submission.created_at.desc(), Submission.id.desc())
        ).scalars().first()

    def _check_format(self, policy: GroupPolicy, file_type: FileType) -> None:
        allowed = {
            FileType.VOICE: policy.allow_voice,
            FileType.VIDEO_NOTE: policy.allow_video_note,
            FileType.TEXT: policy.allow_text,
        }
        if not allowed[file_type]:
            raise FormatNotAllowed(f"{file_type.value} submissions are not accepted in this group")

    def _check_capacity(self, task: Task, pending: int) -> None:
        if (
            task.status is TaskStatus.PASSED
            or task.passed_count >= task.required_count
            or task.passed_count + pending >= task.required_count
        ):
            raise TaskAlreadyComplete(
                f"Task {task.id} needs no more recordings "
                f"({task.passed_count} passed, {pending} pending of {task.required_count})"
            )

    # === 审核 ===

    def record_verdict(
        self,
        db: Session,
        submission_id: int,
        status: SubmissionStatus,
        reviewer_id: Optional[int] = None,
        feedback: Optional[str] = None,
    ) -> VerdictResult:
        status = SubmissionStatus(status)
        if status not in VERDICTS:
            raise ValueError("verdict must be passed or failed")

        now = self.clock()
        updated = db.execute(
            update(Submission)
            .where(
                Submission.id == submission_id,
                Submission.status == SubmissionStatus.PENDING,
            )
            .values(
                status=status,
                reviewed_at=now,
                reviewer_id=reviewer_id,
                feedback=feedback,
            )
            .execution_options(synchronize_session=False)
        ).rowcount

        if not updated:
            db.rollback()
            current = self.get_submission(db, submission_id)
            raise SubmissionAlreadyReviewed(
                f"Submission {submission_id} is already {current.status.value}",
                status=current.status,
            )

        submission = self.get_submission(db, submission_id)
        db.refresh(submission)
        task, completed, transition = self._count_verdict(db, submission.task_id, status, now)
        db.commit()
        db.refresh(submission)
        logger.info(
            "Verdict %s on submission %s; task %s at %s/%s",
            status.value, submission_id, task.id, task.passed_count, task.required_count,
        )
        return VerdictResult(
            submission=submission,
            task=task,
            task_completed=completed,
            transition=transition,
        )

    def _count_verdict(
        self, db: Session, task_id: int, status: SubmissionStatus, now: datetime
    ) -> tuple[Task, bool, Optional[Transition]]:
        task = self._lock_task(db, task_id)
        if status is SubmissionStatus.PASSED:
            values = {"passed_count": Task.passed_count + 1}
        else:
            values = {"failed_count": Task.failed_count + 1}
        db.execute(
            update(Task)
            .where(Task.id == task_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        db.refresh(task)

        if task.status is not TaskStatus.IN_PROGRESS or task.passed_count < task.required_count:
            return task, False, None

        completed = db.execute(
            update(Task)
            .where(Task.id == task_id, Task.status == TaskStatus.IN_PROGRESS)
            .values(status=TaskStatus.PASSED, completed_at=now)
            .execution_options(synchronize_session=False)
        ).rowcount
        db.refresh(task)
        if not completed:
            return task, False, None
        logger.info("Task %s passed (%s failed along the way)", task.id, task.failed_count)
        return task, True, self._advance(db, task, now)

    def _advance(self, db: Session, task: Task, now: datetime) -> Optional[Transition]:
        """Move the learner's cursor after ``task`` passed."""
        progress = self._find_progress(db, task.student_id, task.group_id, lock=True)
        if progress is None:
            logger.warning("Task %s passed but student %s has no progress row", task.id, task.student_id)
            return None

        progress.tasks_completed += 1
        total_lines = page_line_count(task.page_number, self.settings.total_pages)
        cursor_stage = effective_stage(progress.current_stage, total_lines)
        on_cursor = (
            progress.current_page == task.page_number
            and cursor_stage == task.stage
            and (
                not is_learning_stage(task.stage)
                or task.start_line <= progress.current_line <= task.end_line
            )
        )
        if not on_cursor:
            logger.info(
                "Task %s is not the current task of student %s; cursor unchanged",
                task.id, task.student_id,
            )
            return None

        transition = next_position(
            Position(progress.current_page, progress.current_line, cursor_stage),
            total_lines,
            task.end_line,
            self.settings.total_pages,
        )
        progress.current_page = transition.position.page
        progress.current_line = transition.position.line
        progress.current_stage = transition.position.stage
        if transition.page_completed:
            progress.pages_completed += 1
        if transition.curriculum_finished:
            progress.finished_at = now
        db.flush()
        logger.info(
            "Student %s advanced to page %s line %s %s",
            task.student_id, progress.current_page, progress.current_line, progress.current_stage.value,
        )
        return transition

    # === 撤销 ===

    def cancel_last_pending(self, db: Session, task_id: int) -> CancelResult:
        task = self._lock_task(db, task_id)
        last = db.execute(
            select(Submission)
            .where(
                Submission.task_id == task_id,
                Submission.status == SubmissionStatus.PENDING,
            )
            .order_by(Submission.created_at.desc(), Submission.id.desc())
        ).scalars().first()
        if last is None:
            db.rollback()
            raise NothingToCancel(f"Task {task_id} has no pending submission")

        result = CancelResult(
            submission_id=last.id,
            task=task,
            was_queued=last.queued_for_review,
            mentor_id=task.group.mentor_id,
        )
        db.delete(last)
        db.commit()
        logger.info("Cancelled submission %s of task %s", result.submission_id, task_id)
        return result
