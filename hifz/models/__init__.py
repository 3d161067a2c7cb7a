"""模型包入口 - 导出所有 SQLAlchemy 模型与枚举。"""

from hifz.models.enums import (
    FileType,
    GroupLevel,
    PageKind,
    StageKind,
    StageNumber,
    SubmissionStatus,
    TaskStatus,
    UserRole,
    VerificationMode,
)
from hifz.models.group import Group, StudentGroupProgress
from hifz.models.submission import MentorQueueState, Submission
from hifz.models.task import Task
from hifz.models.user import User

__all__ = [
    "FileType",
    "GroupLevel",
    "PageKind",
    "StageKind",
    "StageNumber",
    "SubmissionStatus",
    "TaskStatus",
    "UserRole",
    "VerificationMode",
    "Group",
    "StudentGroupProgress",
    "MentorQueueState",
    "Submission",
    "Task",
    "User",
]
