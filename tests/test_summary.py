import threading
import pytest
import requests

from eduos.core.services.summary import (
    SummaryKind, SummaryService, GeminiClient, TextGenerationError, FALLBACKS
)
from conftest import FakeGenerator


class FakeResponse:
    def __init__(self, body, status_code=200):
        self.body = body
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self.body


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def post(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response


def test_narrate_returns_generated_text():
    generator = FakeGenerator(reply="Doing well overall.")
    service = SummaryService(generator)

    text = service.narrate(SummaryKind.STUDENT, {
        "name": "Asha", "attendance": 91, "subjects": ["Math"], "marks": {"Math": 88}
    })

    assert text == "Doing well overall."
    assert "Asha" in generator.prompts[0]
    assert '{"Math": 88}' in generator.prompts[0]


@pytest.mark.parametrize("kind", [SummaryKind.STUDENT, SummaryKind.CLASS, SummaryKind.INSTITUTION])
def test_generator_failure_yields_fallback(kind):
    service = SummaryService(FakeGenerator(error=TimeoutError("timed out")))

    assert service.narrate(kind, {}) == FALLBACKS[kind]


def test_medical_fallback_is_the_reason():
    service = SummaryService(FakeGenerator(error=TextGenerationError("quota")))

    assert service.narrate(SummaryKind.MEDICAL_REQUEST, {"reason": "High fever"}) == "High fever"


def test_client_without_key_refuses():
    with pytest.raises(TextGenerationError):
        GeminiClient(api_key="", session=FakeSession()).generate("hello")


def test_client_posts_prompt_and_reads_candidate():
    session = FakeSession(FakeResponse({
        "candidates": [{"content": {"parts": [{"text": "Short "}, {"text": "answer."}]}}]
    }))
    client = GeminiClient(api_key="k", model="m", timeout=3, base_url="https://gen.test/v1/", session=session)

    assert client.generate("prompt") == "Short answer."
    url, kwargs = session.calls[0]
    assert url == "https://gen.test/v1/models/m:generateContent"
    assert kwargs["params"] == {"key": "k"}
    assert kwargs["timeout"] == 3
    assert kwargs["json"]["contents"][0]["parts"][0]["text"] == "prompt"


@pytest.mark.parametrize("session", [
    FakeSession(error=requests.Timeout("slow")),
    FakeSession(FakeResponse({"error": "quota"}, status_code=429)),
    FakeSession(FakeResponse({"candidates": []})),
    FakeSession(FakeResponse({"candidates": [{"content": {"parts": [{"text": "  "}]}}]})),
])
def test_client_failures_raise_generation_error(session):
    with pytest.raises(TextGenerationError):
        GeminiClient(api_key="k", session=session).generate("prompt")


def test_narrate_many_runs_calls_together():
    generator = FakeGenerator(reply="Summary.")
    generator.barrier = threading.Barrier(4, timeout=5)
    service = SummaryService(generator)

    summaries = service.narrate_many(SummaryKind.MEDICAL_REQUEST, [{"reason": f"r{i}"} for i in range(4)])

    # sequential calls would break the barrier and fall back to the reasons
    assert summaries == ["Summary."] * 4


def test_narrate_many_keeps_order_on_failure():
    service = SummaryService(FakeGenerator(error=RuntimeError("down")))

    assert service.narrate_many(SummaryKind.MEDICAL_REQUEST, [{"reason": "a"}, {"reason": "b"}]) == ["a", "b"]
    assert service.narrate_many(SummaryKind.MEDICAL_REQUEST, []) == []
