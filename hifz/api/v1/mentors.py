"""导师队列查询API。"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from hifz.dependencies import get_db, get_review_queue
from hifz.schemas.submissions import QueueResponse
from hifz.services.review_queue import ReviewQueue

router = APIRouter()


@router.get("/{mentor_id}/queue", response_model=QueueResponse)
def get_queue(
    mentor_id: int,
    db: Session = Depends(get_db),
    queue: ReviewQueue = Depends(get_review_queue),
):
    """队列深度与当前展示的提交。"""
    return QueueResponse(
        mentor_id=mentor_id,
        depth=queue.queue_depth(db, mentor_id),
        showing_submission_id=queue.current(db, mentor_id),
    )
