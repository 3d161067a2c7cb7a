"""学习小组与学员进度模型。"""

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hifz.db import Base
from hifz.models.enums import GroupLevel, StageNumber, VerificationMode


class Group(Base):
    """学习小组，同时承载小组策略（GroupPolicy）。

    每个小组只有一位导师；策略字段由管理端维护，引擎只读。
    """

    __tablename__ = "groups"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    mentor_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)

    # === 批次与次数 ===
    level: Mapped[GroupLevel] = mapped_column(
        Enum(GroupLevel), default=GroupLevel.LEVEL_1, nullable=False
    )
    learning_required_count: Mapped[int] = mapped_column(Integer, default=80)
    consolidation_required_count: Mapped[int] = mapped_column(Integer, default=80)
    whole_page_required_count: Mapped[int] = mapped_column(Integer, default=80)

    # === 各阶段时限（小时） ===
    learning_hours: Mapped[int] = mapped_column(Integer, default=24)
    stage_1_2_hours: Mapped[int] = mapped_column(Integer, default=48)
    stage_2_2_hours: Mapped[int] = mapped_column(Integer, default=48)
    stage_3_hours: Mapped[int] = mapped_column(Integer, default=48)
    show_deadlines: Mapped[bool] = mapped_column(Boolean, default=True)

    # === AI 核验 ===
    verification_mode: Mapped[VerificationMode] = mapped_column(
        Enum(VerificationMode), default=VerificationMode.MANUAL, nullable=False
    )
    ai_enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    accept_threshold: Mapped[float] = mapped_column(Float, default=85.0)
    reject_threshold: Mapped[float] = mapped_column(Float, default=50.0)

    # 允许的提交格式
    allow_voice: Mapped[bool] = mapped_column(Boolean, default=True)
    allow_video_note: Mapped[bool] = mapped_column(Boolean, default=True)
    allow_text: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    mentor = relationship("User", foreign_keys=[mentor_id])
    progresses: Mapped[List["StudentGroupProgress"]] = relationship(
        back_populates="group", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Group(id={self.id}, name={self.name}, mode={self.verification_mode.value})>"


class StudentGroupProgress(Base):
    """学员在某小组课程中的位置游标。

    只允许由任务完成后的推进算法修改。
    """

    __tablename__ = "student_group_progress"
    __table_args__ = (UniqueConstraint("student_id", "group_id", name="uq_progress_student_group"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    student_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    group_id: Mapped[int] = mapped_column(
        ForeignKey("groups.id", ondelete="CASCADE"), nullable=False
    )

    current_page: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    current_line: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    current_stage: Mapped[StageNumber] = mapped_column(
        Enum(StageNumber), default=StageNumber.STAGE_1_1, nullable=False
    )

    # 统计
    tasks_completed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    pages_completed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    finished_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    group: Mapped[Group] = relationship(back_populates="progresses")
    student = relationship("User", foreign_keys=[student_id])

    def __repr__(self) -> str:
        return (
            f"<StudentGroupProgress(student_id={self.student_id}, page={self.current_page}, "
            f"line={self.current_line}, stage={self.current_stage.value})>"
        )
