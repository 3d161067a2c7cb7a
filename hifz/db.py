"""数据库连接与会话管理。"""

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from .config import get_settings


settings = get_settings()


class Base(DeclarativeBase):
    """SQLAlchemy 基类。"""

    pass


def _connect_args(url: str) -> dict:
    # SQLite 需要 ``check_same_thread=False`` 以支持多线程；其他数据库可忽略
    if not url.startswith("sqlite"):
        return {}
    db_path = url.split("///", 1)[-1]
    if db_path and db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    return {"check_same_thread": False}


engine = create_engine(settings.database_url, connect_args=_connect_args(settings.database_url))
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@contextmanager
def session_scope() -> Iterator[Session]:
    """提供事务范围的 Session 上下文管理器。"""

    session: Session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_db() -> Iterator[Session]:
    """FastAPI 依赖，用于获取数据库会话。"""

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
