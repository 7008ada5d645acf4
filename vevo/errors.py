"""Error taxonomy shared by the dispatcher and the self-edit pipeline.

Every failure coming back from a provider is normalized into a single
:class:`ProviderError` record at the transport boundary. Downstream code only
ever reads that record, never the raw httpx exception.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

AUTH_STATUSES = frozenset({401, 403})


@dataclass(frozen=True)
class ProviderError:
    kind: str  # transport, auth, content, configuration
    status: Optional[int]
    message: str
    raw_body: Any = None

    @classmethod
    def from_status(cls, status: Optional[int], message: str, raw_body: Any = None) -> "ProviderError":
        kind = "auth" if status in AUTH_STATUSES else "transport"
        return cls(kind=kind, status=status, message=message, raw_body=raw_body)

    @property
    def retryable(self) -> bool:
        """Only authorization failures move on to the next credential."""
        return self.kind == "auth"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class VevoError(Exception):
    """Base class for Vevo errors."""


class ProviderFailure(VevoError):
    """A provider call failed; carries the normalized error record."""

    def __init__(self, error: ProviderError) -> None:
        super().__init__(error.message)
        self.error = error


class TransportFailure(ProviderFailure):
    """Network or HTTP-level failure."""


class AuthFailure(TransportFailure):
    """HTTP 401/403 from a provider."""


class ContentFailure(ProviderFailure):
    """Provider answered but returned no usable content."""


class ValidationFailure(VevoError):
    """A self-edit candidate failed its syntax check."""

    def __init__(self, diagnostic: str) -> None:
        super().__init__(diagnostic)
        self.diagnostic = diagnostic


class ConfigurationFailure(VevoError, ValueError):
    """A provider entry in the config cannot be used for the requested role."""


def failure_for(error: ProviderError) -> ProviderFailure:
    if error.kind == "auth":
        return AuthFailure(error)
    if error.kind == "content":
        return ContentFailure(error)
    return TransportFailure(error)
