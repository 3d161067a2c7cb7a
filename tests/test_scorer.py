import json

import httpx
import pytest

from hifz.config import Settings
from hifz.errors import ScorerUnavailable
from hifz.services.scorer import HttpRecitationScorer, build_scorer, passage_reference


def _scorer(handler) -> HttpRecitationScorer:
    settings = Settings(scorer_url="http://scorer.test", scorer_api_key="secret")
    return HttpRecitationScorer(settings, client=httpx.Client(transport=httpx.MockTransport(handler)))


def test_score_parses_response() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "score": 88.5,
                "transcript": "alhamdu lillahi",
                "errors": [{"word": "rabbi", "type": "tajweed"}],
            },
        )

    result = _scorer(handler).score({"file_id": "f1"}, passage_reference(3, 1, 3))

    assert seen["path"] == "/v1/score"
    assert seen["body"]["expected_text"] == "page:3:lines:1-3"
    assert result.score == 88.5
    assert result.errors[0].word == "rabbi"


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, text="boom"),
        httpx.Response(200, text="not json"),
        httpx.Response(200, json={"score": 140}),
    ],
)
def test_bad_responses_raise_scorer_unavailable(response) -> None:
    with pytest.raises(ScorerUnavailable):
        _scorer(lambda request: response).score({}, "page:1:lines:1-1")


def test_build_scorer_requires_url() -> None:
    assert build_scorer(Settings(scorer_url=None)) is None
    assert build_scorer(Settings(scorer_url="http://scorer.test")) is not None


def test_each_score_call_closes_its_client(monkeypatch) -> None:
    created = []
    real_client = httpx.Client

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["Authorization"] == "Bearer secret"
        return httpx.Response(200, json={"score": 70})

    def tracking_client(**kwargs):
        client = real_client(transport=httpx.MockTransport(handler), **kwargs)
        created.append(client)
        return client

    monkeypatch.setattr(httpx, "Client", tracking_client)
    scorer = HttpRecitationScorer(Settings(scorer_url="http://scorer.test", scorer_api_key="secret"))

    for _ in range(3):
        assert scorer.score({}, "page:1:lines:1-1").score == 70

    assert len(created) == 3
    assert all(client.is_closed for client in created)
