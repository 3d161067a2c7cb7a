"""任务API：开启任务、查看任务、提交录音与撤销。"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from hifz.dependencies import get_db, get_task_service, get_workflow
from hifz.models import Task
from hifz.schemas.submissions import (
    CancelResponse,
    IntakeResponse,
    SubmissionIntake,
    SubmissionPayload,
    SubmissionResponse,
)
from hifz.schemas.tasks import DeadlineResponse, TaskOpen, TaskResponse
from hifz.services.deadlines import deadline_view
from hifz.services.policy import load_policy
from hifz.services.tasks import TaskService
from hifz.services.workflow import SubmissionWorkflow

router = APIRouter()


# === Helpers ===

def _task_response(db: Session, tasks: TaskService, task: Task) -> TaskResponse:
    response = TaskResponse.model_validate(task)
    response.pending_count = tasks.pending_count(db, task.id)
    view = deadline_view(task.deadline, load_policy(db, task.group_id), tasks.clock())
    if view is not None:
        response.deadline_view = DeadlineResponse(
            deadline=view.deadline,
            remaining_seconds=view.remaining_seconds,
            hours_left=view.hours_left,
            minutes_left=view.minutes_left,
            expired=view.expired,
        )
    return response


# === API 端点 ===

@router.post("/", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
def open_task(
    data: TaskOpen,
    db: Session = Depends(get_db),
    tasks: TaskService = Depends(get_task_service),
):
    """为学员开启（或取回）当前批次的任务。"""
    task = tasks.open_task(db, data.student_id, data.group_id, data.stage, data.page_number)
    return _task_response(db, tasks, task)


@router.get("/{task_id}", response_model=TaskResponse)
def get_task(
    task_id: int,
    db: Session = Depends(get_db),
    tasks: TaskService = Depends(get_task_service),
):
    return _task_response(db, tasks, tasks.get_task(db, task_id))


@router.post(
    "/{task_id}/submissions",
    response_model=IntakeResponse,
    status_code=status.HTTP_201_CREATED,
)
def submit_recording(
    task_id: int,
    data: SubmissionIntake,
    db: Session = Depends(get_db),
    workflow: SubmissionWorkflow = Depends(get_workflow),
):
    """学员提交录音或文本；重复的消息 ID 返回已有提交。"""
    payload = SubmissionPayload(**data.model_dump(exclude={"external_message_id"}))
    outcome = workflow.submit(db, task_id, payload, data.external_message_id)
    intake = outcome.intake
    return IntakeResponse(
        submission=SubmissionResponse.model_validate(intake.submission),
        duplicate=intake.duplicate,
        outcome=intake.verification.outcome.value if intake.verification else None,
        released_submission_ids=[item.id for item in intake.released],
        task_completed=intake.task_completed,
        pending_count=workflow.tasks.pending_count(db, task_id),
    )


@router.post("/{task_id}/cancel-last", response_model=CancelResponse)
def cancel_last(
    task_id: int,
    db: Session = Depends(get_db),
    workflow: SubmissionWorkflow = Depends(get_workflow),
):
    """撤销最近一条待审核提交。"""
    result = workflow.cancel_last(db, task_id)
    return CancelResponse(
        cancelled_submission_id=result.submission_id,
        pending_count=workflow.tasks.pending_count(db, task_id),
    )
