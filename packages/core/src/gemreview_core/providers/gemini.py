from __future__ import annotations

import requests

from gemreview_core.errors import EmptyResponseError
from gemreview_core.providers.base import RESPONSE_SCHEMA, BaseReviewer

API_BASE = "https://generativelanguage.googleapis.com/v1beta"


class GeminiReviewer(BaseReviewer):
    MODEL = "gemini-2.5-flash"

    def __init__(self, api_key: str, model: str | None = None, timeout: int = 120, session=None):
        if not api_key:
            raise ValueError("A Gemini API key is required (input 'gemini-api-key' or GEMINI_API_KEY).")
        self.api_key = api_key
        self.model = model or self.MODEL
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def url(self) -> str:
        return f"{API_BASE}/models/{self.model}:generateContent"

    def _build_payload(self, system_prompt: str, user_prompt: str) -> dict:
        return {
            "contents": [{"parts": [{"text": user_prompt}]}],
            "systemInstruction": {"parts": [{"text": system_prompt}]},
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": RESPONSE_SCHEMA,
            },
        }

    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        # The key goes in a header only, never in the URL or the body.
        response = self.session.post(
            self.url,
            headers={"Content-Type": "application/json", "X-Goog-Api-Key": self.api_key},
            json=self._build_payload(system_prompt, user_prompt),
            timeout=self.timeout,
        )
        response.raise_for_status()
        return self._extract_text(response.json())

    @staticmethod
    def _extract_text(result: dict) -> str:
        """Return candidates[0].content.parts[0].text or raise EmptyResponseError."""
        try:
            text = result["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            text = None
        if not text:
            raise EmptyResponseError("No text found in Gemini response")
        return text
