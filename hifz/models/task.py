"""任务模型定义 - 一页中某阶段、某行段的背诵任务。"""

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import DateTime, Enum, ForeignKey, Index, Integer
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hifz.db import Base
from hifz.models.enums import StageNumber, TaskStatus


class Task(Base):
    """背诵任务。

    ``passed_count >= required_count`` 即完成；``failed_count`` 只是历史记录，
    不影响完成判定。待审数量（pending）由提交表推导，不单独存储。
    """

    __tablename__ = "tasks"
    __table_args__ = (
        Index(
            "ix_tasks_open_lookup",
            "student_id", "group_id", "page_number", "stage", "start_line", "status",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # 关联
    student_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    group_id: Mapped[int] = mapped_column(
        ForeignKey("groups.id", ondelete="CASCADE"), nullable=False
    )

    # 位置
    page_number: Mapped[int] = mapped_column(Integer, nullable=False)
    start_line: Mapped[int] = mapped_column(Integer, nullable=False)
    end_line: Mapped[int] = mapped_column(Integer, nullable=False)
    stage: Mapped[StageNumber] = mapped_column(Enum(StageNumber), nullable=False)

    # 计数
    required_count: Mapped[int] = mapped_column(Integer, nullable=False)
    passed_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    failed_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    status: Mapped[TaskStatus] = mapped_column(
        Enum(TaskStatus), default=TaskStatus.IN_PROGRESS, nullable=False
    )
    deadline: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # 关系
    student = relationship("User", foreign_keys=[student_id])
    group = relationship("Group")
    submissions: Mapped[List["Submission"]] = relationship(
        back_populates="task", cascade="all, delete-orphan", order_by="Submission.id"
    )

    @property
    def is_complete(self) -> bool:
        return self.passed_count >= self.required_count

    def __repr__(self) -> str:
        return (
            f"<Task(id={self.id}, page={self.page_number}, lines={self.start_line}-{self.end_line}, "
            f"stage={self.stage.value}, passed={self.passed_count}/{self.required_count})>"
        )
