# clinic/services/advice_service.py - Generative text collaborator
import logging
from typing import Optional, Protocol

import httpx

from ..config import Settings

logger = logging.getLogger(__name__)

ADVICE_FALLBACK = "Could not generate advice at this time."
ADVICE_EMPTY = "No advice generated."


class TextCompletionClient(Protocol):
    async def complete(self, prompt: str) -> str: ...


class GeminiClient:
    """Minimal client for the Gemini ``generateContent`` REST call."""

    BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

    def __init__(self, api_key: str, model: str = "gemini-2.5-flash", timeout: float = 20.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._transport = transport

    async def complete(self, prompt: str) -> str:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(
                f"{self.BASE_URL}/models/{self.model}:generateContent",
                headers={"x-goog-api-key": self.api_key},
                json={"contents": [{"parts": [{"text": prompt}]}]},
            )
            response.raise_for_status()
            data = response.json()

        candidates = data.get("candidates") or []
        if not candidates:
            return ""
        parts = (candidates[0].get("content") or {}).get("parts") or []
        return "".join(part.get("text", "") for part in parts).strip()


class AdviceService:
    """Advice and note summaries for the visit screen.

    Never raises: every failure collapses to the documented fallback text.
    """

    def __init__(self, client: Optional[TextCompletionClient] = None):
        self.client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "AdviceService":
        if not settings.ai_enabled:
            logger.info("GEMINI_API_KEY not set; advice service disabled")
            return cls(None)
        return cls(GeminiClient(settings.gemini_api_key, settings.gemini_model, settings.ai_timeout_seconds))

    @property
    def enabled(self) -> bool:
        return self.client is not None

    async def get_health_advice(self, symptoms: str, diagnosis: str) -> str:
        if not self.enabled:
            return ADVICE_FALLBACK
        prompt = (
            "You assist a homeopathic physician (BHMS).\n"
            f"Patient symptoms: \"{symptoms}\".\n"
            f"Doctor's diagnosis: \"{diagnosis}\".\n\n"
            "Give three short bullet points of lifestyle or diet guidance that can help recovery. "
            "Be friendly and professional and do not recommend any medicine."
        )
        try:
            text = await self.client.complete(prompt)
        except Exception as e:
            logger.error(f"Advice generation failed: {e}")
            return ADVICE_FALLBACK
        return text or ADVICE_EMPTY

    async def summarize_notes(self, raw_notes: str) -> str:
        if not self.enabled or not raw_notes.strip():
            return raw_notes
        prompt = (
            "Rewrite these clinical notes as a concise, professional entry for a patient's history record.\n"
            f"Notes: \"{raw_notes}\""
        )
        try:
            text = await self.client.complete(prompt)
        except Exception as e:
            logger.error(f"Note summary failed: {e}")
            return raw_notes
        return text or raw_notes
