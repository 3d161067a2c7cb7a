"""学员进度API。"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from hifz.dependencies import get_db, get_task_service
from hifz.schemas.tasks import ProgressResponse
from hifz.services.tasks import TaskService

router = APIRouter()


@router.get("/{student_id}/{group_id}", response_model=ProgressResponse)
def get_progress(
    student_id: int,
    group_id: int,
    db: Session = Depends(get_db),
    tasks: TaskService = Depends(get_task_service),
):
    return tasks.get_progress(db, student_id, group_id)
