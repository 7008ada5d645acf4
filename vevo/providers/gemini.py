"""Google generative-language text generation provider."""
from __future__ import annotations

from typing import Any, Dict

from vevo.providers.base import ProviderClient


class GeminiClient(ProviderClient):
    """Calls ``models/{model}:generateContent`` with the key in the query string."""

    kind = "generation"

    MODEL_MAP = {
        "2.5-flash": "gemini-2.5-flash",
        "2.5-pro": "gemini-2.5-pro",
        "2.0-flash": "gemini-2.0-flash",
        "1.5-flash": "gemini-1.5-flash",
        "1.5-pro": "gemini-1.5-pro",
    }

    @property
    def model_id(self) -> str:
        model = str(self.options.get("model", "2.0-flash"))
        return self.MODEL_MAP.get(model, model)

    async def complete(self, credential: str, prompt: str, system: str | None = None) -> str:
        url = f"{self.url.rstrip('/')}/models/{self.model_id}:generateContent?key={credential}"
        body: Dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {"temperature": float(self.options.get("temperature", 0.2))},
        }
        if system:
            body["systemInstruction"] = {"parts": [{"text": system}]}
        data = await self.transport.post(url, body, {"content-type": "application/json"})
        return self._require_content(self._extract_text(data), data)

    @staticmethod
    def _extract_text(data: Any) -> str | None:
        if not isinstance(data, dict):
            return None
        candidates = data.get("candidates")
        if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
            return None
        content = candidates[0].get("content")
        parts = content.get("parts") if isinstance(content, dict) else None
        if not isinstance(parts, list):
            return None
        text = "".join(p["text"] for p in parts if isinstance(p, dict) and isinstance(p.get("text"), str))
        return text or None
