"""API v1 路由包入口。"""

from fastapi import APIRouter

from hifz.api.v1 import mentors, progress, submissions, tasks

router = APIRouter(prefix="/api/v1")

# 注册子路由
router.include_router(tasks.router, prefix="/tasks", tags=["任务"])
router.include_router(submissions.router, prefix="/submissions", tags=["提交"])
router.include_router(mentors.router, prefix="/mentors", tags=["导师"])
router.include_router(progress.router, prefix="/progress", tags=["进度"])
