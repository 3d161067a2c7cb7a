"""Glue between the task lifecycle and the mentor review queue.

The lifecycle commits first, the queue reacts afterwards. A failed hand-off
never undoes a recorded submission or verdict.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy.orm import Session

from hifz.errors import DeliveryFailed
from hifz.logging import get_logger
from hifz.models import Submission, SubmissionStatus, User
from hifz.schemas.submissions import SubmissionPayload
from hifz.services.delivery import DeliveryChannel, learner_verdict_content
from hifz.services.review_queue import DeliveryReport, ReviewQueue
from hifz.services.tasks import CancelResult, IntakeResult, TaskService, VerdictResult

logger = get_logger("workflow")


@dataclass
class ReviewOutcome:
    verdict: VerdictResult
    next_item: DeliveryReport
    learner_notified: bool = False


@dataclass
class IntakeOutcome:
    intake: IntakeResult
    deliveries: List[DeliveryReport] = field(default_factory=list)
    learner_notified: bool = False


class SubmissionWorkflow:
    def __init__(
        self,
        tasks: TaskService,
        queue: ReviewQueue,
        channel: Optional[DeliveryChannel] = None,
    ) -> None:
        self.tasks = tasks
        self.queue = queue
        self.channel = channel if channel is not None else queue.channel

    def submit(
        self,
        db: Session,
        task_id: int,
        payload: SubmissionPayload,
        external_message_id: Optional[str] = None,
    ) -> IntakeOutcome:
        intake = self.tasks.intake_submission(db, task_id, payload, external_message_id)
        outcome = IntakeOutcome(intake=intake)
        if intake.duplicate:
            return outcome

        for released in intake.released:
            outcome.deliveries.append(self.queue.enqueue(db, released))

        if intake.verification is not None and intake.verification.is_automatic:
            outcome.learner_notified = self.notify_learner(db, intake.submission)
        return outcome

    def confirm(self, db: Session, submission_id: int) -> tuple[Submission, Optional[DeliveryReport]]:
        submission, changed = self.tasks.confirm_submission(db, submission_id)
        if not changed:
            return submission, None
        return submission, self.queue.enqueue(db, submission)

    def review(
        self,
        db: Session,
        submission_id: int,
        status: SubmissionStatus,
        reviewer_id: Optional[int] = None,
        feedback: Optional[str] = None,
    ) -> ReviewOutcome:
        verdict = self.tasks.record_verdict(db, submission_id, status, reviewer_id, feedback)
        next_item = self.queue.on_verdict(db, submission_id)
        notified = self.notify_learner(db, verdict.submission)
        return ReviewOutcome(verdict=verdict, next_item=next_item, learner_notified=notified)

    def cancel_last(self, db: Session, task_id: int) -> CancelResult:
        result = self.tasks.cancel_last_pending(db, task_id)
        if result.was_queued:
            # the cancelled item may have been on the mentor's screen
            self.queue.advance(db, result.mentor_id, result.submission_id)
        return result

    def retry_delivery(self, db: Session, submission_id: int) -> DeliveryReport:
        submission = self.tasks.get_submission(db, submission_id)
        mentor_id = self.queue.mentor_for(db, submission)
        return self.queue.retry(db, mentor_id)

    def notify_learner(self, db: Session, submission: Submission) -> bool:
        """Best effort; a learner who cannot be reached still has the verdict stored."""
        task = self.tasks.get_task(db, submission.task_id)
        student = db.get(User, submission.student_id)
        if student is None or student.chat_id is None:
            return False
        try:
            self.channel.deliver(student.chat_id, learner_verdict_content(task, submission.status))
        except DeliveryFailed as exc:
            logger.warning("Verdict notice for submission %s not delivered: %s", submission.id, exc)
            return False
        return True
