"""任务与学员进度相关的 Pydantic 模型。"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from hifz.models.enums import StageNumber, TaskStatus


class TaskOpen(BaseModel):
    student_id: int
    group_id: int
    stage: Optional[StageNumber] = None
    page_number: Optional[int] = Field(default=None, ge=1)


class DeadlineResponse(BaseModel):
    deadline: datetime
    remaining_seconds: int
    hours_left: int
    minutes_left: int
    expired: bool


class TaskResponse(BaseModel):
    id: int
    student_id: int
    group_id: int
    page_number: int
    start_line: int
    end_line: int
    stage: StageNumber
    required_count: int
    passed_count: int
    failed_count: int
    pending_count: int = 0
    status: TaskStatus
    deadline: datetime
    created_at: datetime
    completed_at: Optional[datetime]
    deadline_view: Optional[DeadlineResponse] = None

    model_config = ConfigDict(from_attributes=True)


class ProgressResponse(BaseModel):
    student_id: int
    group_id: int
    current_page: int
    current_line: int
    current_stage: StageNumber
    tasks_completed: int
    pages_completed: int
    finished_at: Optional[datetime]

    model_config = ConfigDict(from_attributes=True)
