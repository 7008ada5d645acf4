"""Base provider client abstraction."""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from vevo.errors import ContentFailure, ProviderError
from vevo.providers.transport import HttpTransport


class ProviderClient(ABC):
    """One network call per invocation, given a credential and a prompt.

    Returns the text content on success. Raises a ``ProviderFailure`` subclass
    on failure; an empty answer raises ``ContentFailure``.
    """

    kind: str = "base"

    def __init__(
        self,
        name: str,
        url: str,
        transport: HttpTransport,
        credential_slots: Optional[List[str]] = None,
        **options: Any,
    ) -> None:
        self.name = name
        self.url = url
        self.transport = transport
        self.credential_slots = list(credential_slots or [])
        self.options = options

    @abstractmethod
    async def complete(self, credential: str, prompt: str, system: str | None = None) -> str:
        ...

    def _require_content(self, content: Any, raw: Any) -> str:
        if content is None or (isinstance(content, str) and not content.strip()):
            raise ContentFailure(ProviderError("content", None, f"{self.name} returned no content", raw))
        return content if isinstance(content, str) else str(content)

    @staticmethod
    def bearer(credential: str) -> Dict[str, str]:
        return {"authorization": f"Bearer {credential}", "content-type": "application/json"}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r}, url={self.url!r})"
