"""Chat-completion providers (OpenRouter, xAI and compatible endpoints)."""
from __future__ import annotations

from typing import Any, Dict, List

from vevo.providers.base import ProviderClient


def extract_chat_text(data: Any) -> str | None:
    if not isinstance(data, dict):
        return None
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return None
    message = choices[0].get("message")
    if not isinstance(message, dict):
        return None
    content = message.get("content")
    return content if isinstance(content, str) else None


class ChatCompletionClient(ProviderClient):
    kind = "chat"

    @property
    def model(self) -> str:
        return str(self.options.get("model", "openai/gpt-4"))

    def build_messages(self, prompt: str, system: str | None = None, extra: List[str] | None = None) -> List[Dict[str, str]]:
        messages: List[Dict[str, str]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        for item in extra or []:
            messages.append({"role": "user", "content": item})
        return messages

    async def complete(self, credential: str, prompt: str, system: str | None = None) -> str:
        return await self.chat(credential, self.build_messages(prompt, system))

    async def chat(self, credential: str, messages: List[Dict[str, str]]) -> str:
        payload = {"model": self.model, "messages": messages}
        data = await self.transport.post(self.url, payload, self.bearer(credential))
        return self._require_content(extract_chat_text(data), data)
