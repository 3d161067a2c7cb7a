"""课程与审核相关枚举定义 - 阶段、小组水平、任务/提交状态、核验模式等。"""

import enum


class StageNumber(str, enum.Enum):
    """课程阶段。

    标准页（15 行）依次经过五个阶段；短页（≤7 行）只有 1.1 与 3。
    """
    STAGE_1_1 = "stage_1_1"      # 学习 1-7 行（按批次）
    STAGE_1_2 = "stage_1_2"      # 巩固 1-7 行（整体）
    STAGE_2_1 = "stage_2_1"      # 学习 8-15 行（按批次）
    STAGE_2_2 = "stage_2_2"      # 巩固 8-15 行（整体）
    STAGE_3 = "stage_3"          # 整页


class StageKind(str, enum.Enum):
    """阶段类别，决定批次规则、所需次数与是否调用 AI。"""
    LEARNING = "learning"
    CONSOLIDATION = "consolidation"
    WHOLE_PAGE = "whole_page"


class PageKind(str, enum.Enum):
    """页面形态。"""
    STANDARD = "standard"        # 超过 7 行
    SHORT = "short"              # 不超过 7 行


class GroupLevel(int, enum.Enum):
    """小组水平：决定学习阶段每批的行数。"""
    LEVEL_1 = 1                  # 每批 1 行
    LEVEL_2 = 2                  # 半页分两批
    LEVEL_3 = 3                  # 半页一批


class TaskStatus(str, enum.Enum):
    """任务状态。"""
    IN_PROGRESS = "in_progress"
    PASSED = "passed"


class SubmissionStatus(str, enum.Enum):
    """提交状态。"""
    PENDING = "pending"          # 待审核
    PASSED = "passed"            # 通过
    FAILED = "failed"            # 未通过


class VerificationMode(str, enum.Enum):
    """核验模式：AI 参与审核的程度。"""
    MANUAL = "manual"            # 全部人工
    SEMI_AUTO = "semi_auto"      # AI 给出提示，导师最终决定
    FULL_AUTO = "full_auto"      # 阈值外自动判定，阈值内回落人工


class FileType(str, enum.Enum):
    """提交内容类型。"""
    VOICE = "voice"
    VIDEO_NOTE = "video_note"
    TEXT = "text"


class UserRole(str, enum.Enum):
    """用户角色枚举。"""
    ADMIN = "admin"
    MENTOR = "mentor"
    STUDENT = "student"
