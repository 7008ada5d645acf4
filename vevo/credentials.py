"""Credential pools for provider failover."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Mapping, Optional
import os
import re

_INVISIBLE = re.compile(r"[\ufeff\u200b\u200c\u200d\u2060\s]+")


def normalize_credential(raw: Optional[str]) -> str:
    """Strip byte-order marks, zero-width characters and all whitespace."""
    if not raw:
        return ""
    return _INVISIBLE.sub("", str(raw))


@dataclass(frozen=True)
class CredentialPool:
    """Ordered credentials for one provider, most preferred first."""

    provider: str
    credentials: List[str] = field(default_factory=list)

    @classmethod
    def from_values(cls, provider: str, values: Iterable[Optional[str]]) -> "CredentialPool":
        cleaned = [normalize_credential(value) for value in values]
        return cls(provider=provider, credentials=[value for value in cleaned if value])

    @classmethod
    def from_env(
        cls,
        provider: str,
        slots: Iterable[str],
        environ: Mapping[str, str] | None = None,
    ) -> "CredentialPool":
        env = os.environ if environ is None else environ
        return cls.from_values(provider, (env.get(slot) for slot in slots))

    def __iter__(self) -> Iterator[str]:
        return iter(self.credentials)

    def __len__(self) -> int:
        return len(self.credentials)

    def __bool__(self) -> bool:
        return bool(self.credentials)

    @property
    def first(self) -> Optional[str]:
        return self.credentials[0] if self.credentials else None
