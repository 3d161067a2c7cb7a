"""FastAPI 依赖注入工具。

外部协作方（评分服务、投递通道）都经由这里构造，测试中通过
``app.dependency_overrides`` 替换为假实现。
"""

from collections.abc import Iterator
from typing import Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from hifz.config import Settings, get_settings
from hifz.db import SessionLocal
from hifz.services.delivery import DeliveryChannel, build_delivery_channel
from hifz.services.review_queue import ReviewQueue
from hifz.services.scorer import RecitationScorer, build_scorer
from hifz.services.tasks import TaskService
from hifz.services.verification import VerificationPolicy
from hifz.services.workflow import SubmissionWorkflow


def get_db() -> Iterator[Session]:
    """FastAPI 依赖，用于获取数据库会话。"""

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_scorer(settings: Settings = Depends(get_settings)) -> Optional[RecitationScorer]:
    return build_scorer(settings)


def get_delivery_channel(settings: Settings = Depends(get_settings)) -> DeliveryChannel:
    return build_delivery_channel(settings)


def get_task_service(
    settings: Settings = Depends(get_settings),
    scorer: Optional[RecitationScorer] = Depends(get_scorer),
) -> TaskService:
    return TaskService(VerificationPolicy(scorer), settings=settings)


def get_review_queue(channel: DeliveryChannel = Depends(get_delivery_channel)) -> ReviewQueue:
    return ReviewQueue(channel)


def get_workflow(
    tasks: TaskService = Depends(get_task_service),
    queue: ReviewQueue = Depends(get_review_queue),
) -> SubmissionWorkflow:
    return SubmissionWorkflow(tasks, queue)
