"""Delivery channel: hands submissions to mentors and verdicts to learners.

``TelegramDeliveryChannel`` talks to the Bot API. Message builders are plain
functions so the review queue and the workflow share one wording.
"""

from __future__ import annotations

from typing import List, Optional, Protocol, Tuple

import httpx
from pydantic import BaseModel, Field

from hifz.config import Settings
from hifz.errors import DeliveryFailed
from hifz.logging import get_logger
from hifz.models import FileType, Group, Submission, SubmissionStatus, Task, User
from hifz.services.curriculum import STAGE_LABELS

logger = get_logger("delivery")

AI_GOOD_SCORE = 85
AI_WEAK_SCORE = 50


class Button(BaseModel):
    text: str
    callback_data: str


class DeliveryContent(BaseModel):
    text: str
    media_type: Optional[FileType] = None
    media_file_id: Optional[str] = None
    buttons: List[Button] = Field(default_factory=list)


class DeliveryChannel(Protocol):
    def deliver(self, recipient: int, content: DeliveryContent) -> None:
        ...


class TelegramDeliveryChannel:
    """Bot API transport. Any transport or API error becomes ``DeliveryFailed``."""

    def __init__(self, settings: Settings, client: httpx.Client | None = None) -> None:
        self.settings = settings
        self._client = client

    def _post(self, url: str, body: dict) -> httpx.Response:
        if self._client is not None:
            return self._client.post(url, json=body)
        with httpx.Client(timeout=self.settings.delivery_timeout_seconds) as client:
            return client.post(url, json=body)

    def _call(self, method: str, body: dict) -> dict:
        if not self.settings.telegram_bot_token:
            raise DeliveryFailed("Telegram bot token is not configured")
        url = f"{self.settings.telegram_api_base}/bot{self.settings.telegram_bot_token}/{method}"
        try:
            response = self._post(url, body)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as exc:
            raise DeliveryFailed(f"{method} failed: {exc}") from exc
        except ValueError as exc:
            raise DeliveryFailed(f"{method} returned a non-JSON body") from exc
        if not data.get("ok", False):
            raise DeliveryFailed(f"{method} rejected: {data.get('description', 'unknown error')}")
        return data.get("result") or {}

    def deliver(self, recipient: int, content: DeliveryContent) -> None:
        markup = None
        if content.buttons:
            markup = {
                "inline_keyboard": [
                    [button.model_dump() for button in content.buttons]
                ]
            }

        if content.media_type is FileType.VOICE and content.media_file_id:
            body = {
                "chat_id": recipient,
                "voice": content.media_file_id,
                "caption": content.text,
                "parse_mode": "HTML",
            }
            if markup:
                body["reply_markup"] = markup
            self._call("sendVoice", body)
            return

        reply_to = None
        if content.media_type is FileType.VIDEO_NOTE and content.media_file_id:
            # video notes take no caption, details follow as a reply
            sent = self._call(
                "sendVideoNote", {"chat_id": recipient, "video_note": content.media_file_id}
            )
            reply_to = sent.get("message_id")

        body = {"chat_id": recipient, "text": content.text, "parse_mode": "HTML"}
        if markup:
            body["reply_markup"] = markup
        if reply_to:
            body["reply_parameters"] = {"message_id": reply_to}
        self._call("sendMessage", body)


def build_delivery_channel(settings: Settings) -> TelegramDeliveryChannel:
    return TelegramDeliveryChannel(settings)


def line_range_label(start_line: int, end_line: int) -> str:
    if start_line == end_line:
        return f"line {start_line}"
    return f"lines {start_line}-{end_line}"


def progress_bar(done: int, total: int) -> Tuple[str, int]:
    percent = round(done / total * 100) if total else 0
    percent = max(0, min(100, percent))
    filled = round(percent / 10)
    return f"[{'▓' * filled}{'░' * (10 - filled)}]", percent


def score_marker(score: float) -> str:
    if score >= AI_GOOD_SCORE:
        return "🟢"
    if score >= AI_WEAK_SCORE:
        return "🟡"
    return "🔴"


def mentor_review_content(
    submission: Submission, task: Task, student: User, group: Group, submitted_count: int
) -> DeliveryContent:
    """Hand-off message with the recording and pass/fail buttons."""
    bar, percent = progress_bar(submitted_count, task.required_count)
    lines = [
        "📥 <b>New recording</b>",
        "",
        f"📚 <b>{group.name}</b>",
        f"👤 {student.name}",
        f"📖 Page {task.page_number}, {line_range_label(task.start_line, task.end_line)}",
        f"🎯 {STAGE_LABELS[task.stage]}",
        "",
        f"{bar} {percent}%",
        f"📊 <b>{submitted_count}/{task.required_count}</b>",
    ]
    if task.passed_count or task.failed_count:
        counts = f"✅ {task.passed_count}"
        if task.failed_count:
            counts += f" | ❌ {task.failed_count}"
        lines.append(counts)

    if submission.ai_score is not None:
        lines.append("")
        lines.append(f"{score_marker(submission.ai_score)} <b>AI: {round(submission.ai_score)}%</b>")
        if submission.ai_transcript:
            excerpt = submission.ai_transcript[:100]
            if len(submission.ai_transcript) > 100:
                excerpt += "..."
            lines.append(f"<i>{excerpt}</i>")

    if submission.file_type is FileType.TEXT and submission.text_content:
        lines.append("")
        lines.append(f"💬 <i>{submission.text_content}</i>")

    pass_text = "✅ Pass"
    if submission.ai_score is not None and submission.ai_score >= AI_GOOD_SCORE:
        pass_text = "✅ Pass (AI: ✓)"
    buttons = [
        Button(text=pass_text, callback_data=f"review:pass:{submission.id}"),
        Button(text="❌ Fail", callback_data=f"review:fail:{submission.id}"),
    ]

    media_type = submission.file_type if submission.file_type is not FileType.TEXT else None
    return DeliveryContent(
        text="\n".join(lines),
        media_type=media_type,
        media_file_id=submission.file_id if media_type else None,
        buttons=buttons,
    )


def learner_verdict_content(task: Task, status: SubmissionStatus) -> DeliveryContent:
    """Verdict notice sent to the learner after each review."""
    location = f"📖 Page {task.page_number}, {line_range_label(task.start_line, task.end_line)}"
    if task.is_complete:
        text = "\n".join(
            [
                "🎉 <b>Task complete</b>",
                "",
                location,
                f"📊 Accepted: <b>{task.passed_count}/{task.required_count}</b>",
            ]
        )
        return DeliveryContent(text=text)

    if status is SubmissionStatus.FAILED:
        lines = [
            "❌ <b>Recording rejected</b>",
            "",
            location,
            f"📊 Accepted: <b>{task.passed_count}/{task.required_count}</b>",
            f"❌ Failed so far: <b>{task.failed_count}</b>",
            "",
            "<i>Please send the recording again.</i>",
        ]
    else:
        lines = [
            "✅ <b>Recording accepted</b>",
            "",
            location,
            f"📊 Accepted: <b>{task.passed_count}/{task.required_count}</b>",
        ]
        left = task.required_count - task.passed_count
        if left > 0:
            lines.append(f"⏳ Remaining: <b>{left}</b>")
    return DeliveryContent(text="\n".join(lines))
