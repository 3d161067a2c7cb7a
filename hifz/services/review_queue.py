"""Per-mentor review queue: one submission on the mentor's screen at a time.

The queue is not stored. It is the query "pending, confirmed submissions of
the mentor's groups, oldest first". The only stored piece is the mentor's
``Idle | Showing(submission_id)`` pointer in ``mentor_queue_state``, switched
with conditional updates so that only one racing enqueue wins the slot.
Re-delivering the item on screen is allowed; the mentor just sees it twice.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hifz.errors import DeliveryFailed, SubmissionNotFound
from hifz.logging import get_logger
from hifz.models import (
    Group,
    MentorQueueState,
    Submission,
    SubmissionStatus,
    Task,
    User,
)
from hifz.services.delivery import DeliveryChannel, mentor_review_content

logger = get_logger("review_queue")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class DeliveryReport:
    submission_id: Optional[int]
    delivered: bool
    attempts: int = 0
    error: Optional[str] = None

    @property
    def queue_empty(self) -> bool:
        return self.submission_id is None


class ReviewQueue:
    """导师审核队列。"""

    def __init__(
        self,
        channel: DeliveryChannel,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.channel = channel
        self.clock = clock

    # === 查询 ===

    def _eligible(self, mentor_id: int):
        return (
            select(Submission)
            .join(Task, Submission.task_id == Task.id)
            .join(Group, Task.group_id == Group.id)
            .where(
                Group.mentor_id == mentor_id,
                Submission.status == SubmissionStatus.PENDING,
                Submission.queued_for_review.is_(True),
            )
        )

    def next_eligible(self, db: Session, mentor_id: int) -> Optional[Submission]:
        return db.execute(
            self._eligible(mentor_id).order_by(Submission.created_at.asc(), Submission.id.asc())
        ).scalars().first()

    def queue_depth(self, db: Session, mentor_id: int) -> int:
        subquery = self._eligible(mentor_id).subquery()
        return db.scalar(select(func.count()).select_from(subquery)) or 0

    def current(self, db: Session, mentor_id: int) -> Optional[int]:
        """Submission on the mentor's screen, if it is still awaiting review."""
        state = db.get(MentorQueueState, mentor_id)
        if state is None or state.showing_submission_id is None:
            return None
        if not self._still_pending(db, state.showing_submission_id):
            return None
        return state.showing_submission_id

    def mentor_for(self, db: Session, submission: Submission) -> int:
        return db.execute(
            select(Group.mentor_id)
            .join(Task, Task.group_id == Group.id)
            .where(Task.id == submission.task_id)
        ).scalar_one()

    def _still_pending(self, db: Session, submission_id: int) -> bool:
        status = db.scalar(select(Submission.status).where(Submission.id == submission_id))
        return status is SubmissionStatus.PENDING

    # === 状态切换 ===

    def _ensure_state(self, db: Session, mentor_id: int) -> MentorQueueState:
        state = db.get(MentorQueueState, mentor_id)
        if state is not None:
            return state
        db.add(MentorQueueState(mentor_id=mentor_id, showing_submission_id=None))
        try:
            db.flush()
        except IntegrityError:
            # another request created it first
            db.rollback()
        return db.get(MentorQueueState, mentor_id)

    def _claim(
        self, db: Session, mentor_id: int, expected: Optional[int], submission_id: Optional[int]
    ) -> bool:
        """Compare-and-swap the mentor's pointer from ``expected`` to ``submission_id``."""
        if expected is None:
            condition = MentorQueueState.showing_submission_id.is_(None)
        else:
            condition = MentorQueueState.showing_submission_id == expected
        swapped = db.execute(
            update(MentorQueueState)
            .where(MentorQueueState.mentor_id == mentor_id, condition)
            .values(showing_submission_id=submission_id, updated_at=self.clock())
            .execution_options(synchronize_session=False)
        ).rowcount
        db.flush()
        return bool(swapped)

    def _release_stale(self, db: Session, mentor_id: int) -> Optional[int]:
        """Free the pointer when it refers to a reviewed or deleted submission."""
        state = self._ensure_state(db, mentor_id)
        db.refresh(state)
        showing = state.showing_submission_id
        if showing is not None and not self._still_pending(db, showing):
            self._claim(db, mentor_id, showing, None)
            return None
        return showing

    # === 对外操作 ===

    def enqueue(self, db: Session, submission: Submission) -> DeliveryReport:
        """Make a confirmed submission eligible; show it now if the mentor is idle."""
        mentor_id = self.mentor_for(db, submission)
        showing = self._release_stale(db, mentor_id)
        if showing is not None:
            db.commit()
            logger.info(
                "Mentor %s busy with %s; submission %s waits", mentor_id, showing, submission.id
            )
            return DeliveryReport(submission_id=None, delivered=False)

        # the oldest eligible item goes first, which is not always the new one
        candidate = self.next_eligible(db, mentor_id)
        if candidate is None or not self._claim(db, mentor_id, None, candidate.id):
            db.commit()
            return DeliveryReport(submission_id=None, delivered=False)
        db.commit()
        return self.deliver(db, candidate, mentor_id)

    def on_verdict(self, db: Session, submission_id: int) -> DeliveryReport:
        """After a verdict, move the mentor on to the next oldest eligible item."""
        submission = db.get(Submission, submission_id)
        if submission is None:
            raise SubmissionNotFound(f"Submission {submission_id} not found")
        return self.advance(db, self.mentor_for(db, submission), submission_id)

    def advance(self, db: Session, mentor_id: int, finished_submission_id: int) -> DeliveryReport:
        state = self._ensure_state(db, mentor_id)
        db.refresh(state)
        if state.showing_submission_id == finished_submission_id:
            self._claim(db, mentor_id, finished_submission_id, None)
        showing = self._release_stale(db, mentor_id)
        if showing is not None:
            # the mentor reviewed something else; whatever is on screen stays
            db.commit()
            return DeliveryReport(submission_id=showing, delivered=False)

        candidate = self.next_eligible(db, mentor_id)
        if candidate is None:
            db.commit()
            logger.info("Queue of mentor %s is empty", mentor_id)
            return DeliveryReport(submission_id=None, delivered=False)
        if not self._claim(db, mentor_id, None, candidate.id):
            db.commit()
            return DeliveryReport(submission_id=None, delivered=False)
        db.commit()
        return self.deliver(db, candidate, mentor_id)

    def deliver(
        self, db: Session, submission: Submission, mentor_id: Optional[int] = None
    ) -> DeliveryReport:
        """Send a submission to its mentor, recording the attempt either way."""
        if mentor_id is None:
            mentor_id = self.mentor_for(db, submission)
        task = db.get(Task, submission.task_id)
        group = db.get(Group, task.group_id)
        mentor = db.get(User, mentor_id)
        student = db.get(User, submission.student_id)
        submitted = task.passed_count + task.failed_count + db.scalar(
            select(func.count(Submission.id)).where(
                Submission.task_id == task.id,
                Submission.status == SubmissionStatus.PENDING,
            )
        )

        submission.delivery_attempts += 1
        error: Optional[str] = None
        try:
            if mentor is None or mentor.chat_id is None:
                raise DeliveryFailed(f"Mentor {mentor_id} has no chat to deliver to")
            content = mentor_review_content(submission, task, student, group, submitted)
            self.channel.deliver(mentor.chat_id, content)
        except DeliveryFailed as exc:
            error = str(exc)

        if error is None:
            submission.delivered_at = self.clock()
            submission.last_delivery_error = None
            logger.info("Delivered submission %s to mentor %s", submission.id, mentor_id)
        else:
            submission.last_delivery_error = error
            # free the slot so a retry or the next enqueue can pick the oldest item again
            self._claim(db, mentor_id, submission.id, None)
            logger.warning(
                "Delivery of submission %s to mentor %s failed (attempt %s): %s",
                submission.id, mentor_id, submission.delivery_attempts, error,
            )
        db.commit()
        return DeliveryReport(
            submission_id=submission.id,
            delivered=error is None,
            attempts=submission.delivery_attempts,
            error=error,
        )

    def retry(self, db: Session, mentor_id: int) -> DeliveryReport:
        """Re-show the current item, or pick the oldest eligible one when idle."""
        showing = self._release_stale(db, mentor_id)
        if showing is not None:
            db.commit()
            return self.deliver(db, db.get(Submission, showing), mentor_id)
        return self.advance(db, mentor_id, finished_submission_id=-1)
