"""Hosted text-inference provider (Hugging Face style ``inputs`` payloads)."""
from __future__ import annotations

from typing import Any

from vevo.providers.base import ProviderClient


class TextInferenceClient(ProviderClient):
    kind = "inference"

    async def complete(self, credential: str, prompt: str, system: str | None = None) -> str:
        inputs = f"{system}\nUser: {prompt}" if system else prompt
        data = await self.transport.post(self.url, {"inputs": inputs}, self.bearer(credential))
        return self._require_content(self._generated_text(data), data)

    @staticmethod
    def _generated_text(data: Any) -> str | None:
        if isinstance(data, list) and data:
            first = data[0]
            if isinstance(first, dict):
                data = first
        if isinstance(data, dict) and isinstance(data.get("generated_text"), str):
            return data["generated_text"]
        return None
