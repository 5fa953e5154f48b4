# tests/test_advice_service.py
import httpx
import pytest

from clinic import config
from clinic.services.advice_service import ADVICE_EMPTY, ADVICE_FALLBACK, AdviceService, GeminiClient


class StubClient:
    def __init__(self, reply="", error=None):
        self.reply = reply
        self.error = error
        self.prompts = []

    async def complete(self, prompt):
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return self.reply


def gemini_transport(payload, status_code=200, seen=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(status_code, json=payload)
    return httpx.MockTransport(handler)


@pytest.mark.asyncio
async def test_health_advice_returns_reply():
    client = StubClient("- Drink warm water")
    advice = AdviceService(client)

    assert await advice.get_health_advice("Cough", "Bronchitis") == "- Drink warm water"
    assert "Cough" in client.prompts[0]
    assert "Bronchitis" in client.prompts[0]

@pytest.mark.asyncio
async def test_health_advice_fallbacks():
    assert await AdviceService(StubClient("")).get_health_advice("a", "b") == ADVICE_EMPTY
    assert await AdviceService(StubClient(error=httpx.ConnectError("down"))).get_health_advice("a", "b") == ADVICE_FALLBACK
    assert await AdviceService(None).get_health_advice("a", "b") == ADVICE_FALLBACK

@pytest.mark.asyncio
async def test_summary_falls_back_to_raw_notes():
    notes = "pt c/o headache x3d, better w/ rest"

    assert await AdviceService(StubClient("Headache for three days.")).summarize_notes(notes) == "Headache for three days."
    assert await AdviceService(StubClient("")).summarize_notes(notes) == notes
    assert await AdviceService(StubClient(error=RuntimeError("quota"))).summarize_notes(notes) == notes
    assert await AdviceService(None).summarize_notes(notes) == notes

def test_service_disabled_without_api_key():
    assert not AdviceService.from_settings(config.TestingConfig(gemini_api_key=None)).enabled
    assert AdviceService.from_settings(config.TestingConfig(gemini_api_key="key")).enabled

@pytest.mark.asyncio
async def test_gemini_client_parses_candidates():
    seen = []
    payload = {"candidates": [{"content": {"parts": [{"text": "- Rest well\n"}, {"text": "- Stay hydrated"}]}}]}
    client = GeminiClient("secret", model="gemini-test", transport=gemini_transport(payload, seen=seen))

    assert await client.complete("advice please") == "- Rest well\n- Stay hydrated"
    assert seen[0].url.path == "/v1beta/models/gemini-test:generateContent"
    assert seen[0].headers["x-goog-api-key"] == "secret"

@pytest.mark.asyncio
async def test_gemini_client_empty_and_error_responses():
    empty = GeminiClient("secret", transport=gemini_transport({"candidates": []}))
    assert await empty.complete("x") == ""

    failing = GeminiClient("secret", transport=gemini_transport({"error": "quota"}, status_code=429))
    with pytest.raises(httpx.HTTPStatusError):
        await failing.complete("x")

    advice = AdviceService(failing)
    assert await advice.get_health_advice("a", "b") == ADVICE_FALLBACK
