"""用户模型定义 - 导师/学员。"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import BigInteger, DateTime, Enum, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from hifz.db import Base
from hifz.models.enums import UserRole


class User(Base):
    """用户模型。

    ``chat_id`` 为投递通道上的收件地址（Telegram chat id），
    导师接收待审提交、学员接收审核结果都通过它。
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    role: Mapped[UserRole] = mapped_column(Enum(UserRole), nullable=False)
    chat_id: Mapped[Optional[int]] = mapped_column(BigInteger, unique=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, name={self.name}, role={self.role.value})>"
