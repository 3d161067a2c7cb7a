"""提交与导师队列状态模型定义。"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import JSON

from hifz.db import Base
from hifz.models.enums import FileType, SubmissionStatus


class Submission(Base):
    """一次录音/文本提交。

    终态（PASSED/FAILED）只能由 AI 自动判定或导师审核设置一次。
    ``queued_for_review`` 为学员确认后的显式标记，只有确认过的提交才会进入导师队列。
    """

    __tablename__ = "submissions"
    __table_args__ = (
        UniqueConstraint("task_id", "external_message_id", name="uq_submission_external_message"),
        # 撤销会物理删除行，SQLite 下 ID 必须单调递增、不可复用
        {"sqlite_autoincrement": True},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # 关联
    task_id: Mapped[int] = mapped_column(
        ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True
    )
    student_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    # 传输层消息 ID，用于重放去重
    external_message_id: Mapped[Optional[str]] = mapped_column(String(128))

    # 内容
    file_type: Mapped[FileType] = mapped_column(Enum(FileType), nullable=False)
    file_id: Mapped[Optional[str]] = mapped_column(String(255))
    text_content: Mapped[Optional[str]] = mapped_column(Text)
    duration_seconds: Mapped[Optional[int]] = mapped_column(Integer)

    # 状态
    status: Mapped[SubmissionStatus] = mapped_column(
        Enum(SubmissionStatus), default=SubmissionStatus.PENDING, nullable=False
    )
    queued_for_review: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # AI 评分
    ai_score: Mapped[Optional[float]] = mapped_column(Float)
    ai_transcript: Mapped[Optional[str]] = mapped_column(Text)
    # 格式: [{"word": "...", "type": "tajweed", "expected": "..."}]
    ai_errors_json: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, default=list)
    auto_reviewed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # 审核
    reviewer_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))
    feedback: Mapped[Optional[str]] = mapped_column(Text)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # 投递诊断
    delivery_attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    delivered_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    last_delivery_error: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    # 关系
    task = relationship("Task", back_populates="submissions")
    student = relationship("User", foreign_keys=[student_id])

    def __repr__(self) -> str:
        return f"<Submission(id={self.id}, task_id={self.task_id}, status={self.status.value})>"


class MentorQueueState(Base):
    """导师当前展示项：``showing_submission_id`` 为空即 Idle，否则为 Showing。

    通过条件更新（compare-and-swap）切换，进程重启后状态仍然有效。
    """

    __tablename__ = "mentor_queue_state"

    mentor_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    showing_submission_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("submissions.id", ondelete="SET NULL")
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<MentorQueueState(mentor_id={self.mentor_id}, showing={self.showing_submission_id})>"
