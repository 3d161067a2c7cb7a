"""进度与审核引擎的异常体系。

四类错误对应四种处理方式：

- ``NotFoundError``：任务/提交/页不存在，提示用户重新开始；
- ``InvalidStateError``：状态冲突（已完成、已审核、无可撤销），以提示信息返回；
- ``UpstreamUnavailable``：评分服务或投递通道不可用，内部降级处理；
- ``ConfigurationError``：小组策略缺失或非法，记录日志并提示联系管理员。
"""

from __future__ import annotations


class HifzError(Exception):
    """Base error for the progression engine."""

    code = "error"


class NotFoundError(HifzError):
    code = "not_found"


class TaskNotFound(NotFoundError):
    code = "task_not_found"


class SubmissionNotFound(NotFoundError):
    code = "submission_not_found"


class PageNotFound(NotFoundError):
    code = "page_not_found"


class ProgressNotFound(NotFoundError):
    code = "progress_not_found"


class InvalidStateError(HifzError):
    code = "invalid_state"


class TaskAlreadyComplete(InvalidStateError):
    code = "task_already_complete"


class SubmissionAlreadyReviewed(InvalidStateError):
    code = "submission_already_reviewed"

    def __init__(self, message: str, *, status=None):
        super().__init__(message)
        self.status = status


SubmissionNotPending = SubmissionAlreadyReviewed


class NothingToCancel(InvalidStateError):
    code = "nothing_to_cancel"


class CurriculumFinished(InvalidStateError):
    code = "curriculum_finished"


class FormatNotAllowed(InvalidStateError):
    code = "format_not_allowed"


class UpstreamUnavailable(HifzError):
    code = "upstream_unavailable"


class ScorerUnavailable(UpstreamUnavailable):
    code = "scorer_unavailable"


class DeliveryFailed(UpstreamUnavailable):
    code = "delivery_failed"


class ConfigurationError(HifzError):
    code = "configuration_error"


class GroupPolicyMissing(ConfigurationError):
    code = "group_policy_missing"
