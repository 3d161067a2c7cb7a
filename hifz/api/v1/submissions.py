"""提交API：确认发送、导师审核、重新投递。"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from hifz.dependencies import get_db, get_workflow
from hifz.models import SubmissionStatus
from hifz.schemas.submissions import (
    DeliveryResponse,
    ReviewRequest,
    ReviewResponse,
    SubmissionResponse,
)
from hifz.services.workflow import SubmissionWorkflow

router = APIRouter()


@router.get("/{submission_id}", response_model=SubmissionResponse)
def get_submission(
    submission_id: int,
    db: Session = Depends(get_db),
    workflow: SubmissionWorkflow = Depends(get_workflow),
):
    return workflow.tasks.get_submission(db, submission_id)


@router.post("/{submission_id}/confirm", response_model=SubmissionResponse)
def confirm_submission(
    submission_id: int,
    db: Session = Depends(get_db),
    workflow: SubmissionWorkflow = Depends(get_workflow),
):
    """学员确认发送，提交进入导师队列。重复确认不会再次入队。"""
    submission, _ = workflow.confirm(db, submission_id)
    db.refresh(submission)
    return submission


@router.post("/{submission_id}/review", response_model=ReviewResponse)
def review_submission(
    submission_id: int,
    data: ReviewRequest,
    db: Session = Depends(get_db),
    workflow: SubmissionWorkflow = Depends(get_workflow),
):
    """导师审核：通过或不通过，随后展示队列中的下一条。"""
    outcome = workflow.review(
        db, submission_id, SubmissionStatus(data.status), data.reviewer_id, data.feedback
    )
    verdict = outcome.verdict
    db.refresh(verdict.submission)
    db.refresh(verdict.task)
    return ReviewResponse(
        submission=SubmissionResponse.model_validate(verdict.submission),
        task_completed=verdict.task_completed,
        passed_count=verdict.task.passed_count,
        failed_count=verdict.task.failed_count,
        required_count=verdict.task.required_count,
        next_submission_id=outcome.next_item.submission_id,
        queue_empty=outcome.next_item.queue_empty,
    )


@router.post("/{submission_id}/retry-delivery", response_model=DeliveryResponse)
def retry_delivery(
    submission_id: int,
    db: Session = Depends(get_db),
    workflow: SubmissionWorkflow = Depends(get_workflow),
):
    """投递失败后重新展示该导师当前（或最早的）待审核提交。"""
    report = workflow.retry_delivery(db, submission_id)
    return DeliveryResponse(
        submission_id=report.submission_id,
        delivered=report.delivered,
        attempts=report.attempts,
        last_error=report.error,
    )
