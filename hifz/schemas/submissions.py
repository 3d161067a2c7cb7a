"""提交、审核与导师队列相关的 Pydantic 模型。"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from hifz.models.enums import FileType, SubmissionStatus


class SubmissionPayload(BaseModel):
    """学员发送的录音或文本。"""

    file_type: FileType
    file_id: Optional[str] = None
    text: Optional[str] = None
    duration_seconds: Optional[int] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _check_content(self) -> "SubmissionPayload":
        if self.file_type is FileType.TEXT and not self.text:
            raise ValueError("text submissions need text")
        if self.file_type is not FileType.TEXT and not self.file_id:
            raise ValueError("voice and video_note submissions need file_id")
        return self


class SubmissionIntake(SubmissionPayload):
    external_message_id: Optional[str] = Field(default=None, max_length=128)


class SubmissionResponse(BaseModel):
    id: int
    task_id: int
    student_id: int
    status: SubmissionStatus
    file_type: FileType
    queued_for_review: bool
    ai_score: Optional[float]
    ai_transcript: Optional[str]
    ai_errors_json: List[Dict[str, Any]] = Field(default_factory=list)
    auto_reviewed: bool
    delivery_attempts: int
    delivered_at: Optional[datetime]
    last_delivery_error: Optional[str]
    created_at: datetime
    reviewed_at: Optional[datetime]

    model_config = ConfigDict(from_attributes=True)


class IntakeResponse(BaseModel):
    submission: SubmissionResponse
    duplicate: bool = False
    outcome: Optional[str] = None
    released_submission_ids: List[int] = Field(default_factory=list)
    task_completed: bool = False
    pending_count: int = 0


class ReviewRequest(BaseModel):
    status: Literal["passed", "failed"]
    reviewer_id: Optional[int] = None
    feedback: Optional[str] = None


class ReviewResponse(BaseModel):
    submission: SubmissionResponse
    task_completed: bool
    passed_count: int
    failed_count: int
    required_count: int
    next_submission_id: Optional[int] = None
    queue_empty: bool = False


class CancelResponse(BaseModel):
    cancelled_submission_id: int
    pending_count: int


class QueueResponse(BaseModel):
    mentor_id: int
    depth: int
    showing_submission_id: Optional[int] = None


class DeliveryResponse(BaseModel):
    submission_id: Optional[int] = None
    delivered: bool
    attempts: int = 0
    last_error: Optional[str] = None
