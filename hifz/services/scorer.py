"""External recitation scorer client.

The scorer is a black box: it receives the recording (or text) and the expected
passage and answers with a 0-100 score, a transcript and word-level errors.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol

import httpx
from pydantic import BaseModel, Field, ValidationError

from hifz.config import Settings
from hifz.errors import ScorerUnavailable
from hifz.logging import get_logger

logger = get_logger("scorer")


class ScoreError(BaseModel):
    word: str = ""
    position: Optional[int] = None
    type: str = "wrong"
    expected: Optional[str] = None
    actual: Optional[str] = None


class ScoreResult(BaseModel):
    score: float = Field(ge=0, le=100)
    transcript: str = ""
    errors: List[ScoreError] = Field(default_factory=list)


class RecitationScorer(Protocol):
    def score(self, payload: Dict[str, Any], expected_text: str) -> ScoreResult:
        ...


class HttpRecitationScorer:
    """Posts submissions to the scoring service over HTTP."""

    def __init__(self, settings: Settings, client: httpx.Client | None = None) -> None:
        self.settings = settings
        self._client = client

    @property
    def is_available(self) -> bool:
        return bool(self.settings.scorer_url)

    def _headers(self) -> Dict[str, str]:
        if self.settings.scorer_api_key:
            return {"Authorization": f"Bearer {self.settings.scorer_api_key}"}
        return {}

    def _post(self, url: str, body: Dict[str, Any]) -> httpx.Response:
        if self._client is not None:
            return self._client.post(url, json=body, headers=self._headers())
        with httpx.Client(
            timeout=self.settings.scorer_timeout_seconds, headers=self._headers()
        ) as client:
            return client.post(url, json=body)

    def score(self, payload: Dict[str, Any], expected_text: str) -> ScoreResult:
        if not self.is_available:
            raise ScorerUnavailable("Scorer URL is not configured")
        body = {"payload": payload, "expected_text": expected_text}
        try:
            response = self._post(f"{self.settings.scorer_url}/v1/score", body)
            response.raise_for_status()
            return ScoreResult.model_validate(response.json())
        except httpx.HTTPError as exc:
            raise ScorerUnavailable(f"Scorer request failed: {exc}") from exc
        except (ValidationError, ValueError) as exc:
            logger.warning("Scorer returned an unexpected body: %s", exc)
            raise ScorerUnavailable("Scorer returned an unexpected body") from exc


def build_scorer(settings: Settings) -> HttpRecitationScorer | None:
    scorer = HttpRecitationScorer(settings)
    return scorer if scorer.is_available else None


def passage_reference(page_number: int, start_line: int, end_line: int) -> str:
    """Reference the scorer resolves to the expected text of a passage."""
    return f"page:{page_number}:lines:{start_line}-{end_line}"
