"""Credential failover for a single provider."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional
import logging

from vevo.audit import AuditLog
from vevo.credentials import CredentialPool
from vevo.errors import ProviderError, ProviderFailure

logger = logging.getLogger(__name__)

ProviderCall = Callable[[str, int], Awaitable[Optional[str]]]


@dataclass(frozen=True)
class ProviderAttempt:
    provider: str
    index: int
    ok: bool
    content: Optional[str] = None
    error: Optional[ProviderError] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            "index": self.index,
            "ok": self.ok,
            "error": self.error.to_dict() if self.error else None,
        }


@dataclass
class DispatchResult:
    provider: str
    content: Optional[str] = None
    index: Optional[int] = None
    attempts: List[ProviderAttempt] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.content is not None


class ReasoningTrace:
    """Per-request trace of what the backend did, in order."""

    def __init__(self) -> None:
        self.lines: List[str] = []

    def add(self, line: str) -> None:
        self.lines.append(line)

    def summary(self) -> str:
        return " | ".join(self.lines)

    def __len__(self) -> int:
        return len(self.lines)


class FailoverDispatcher:
    """Walks a credential pool until one call succeeds.

    Authorization failures (401/403) move on to the next credential. Any
    other failure, including a call that returns no content or raises
    something other than ``ProviderFailure``, aborts the provider for this
    request. There is no backoff: the provider is tried again on the next
    user request.
    """

    def __init__(self, error_log: Optional[AuditLog] = None) -> None:
        self.error_log = error_log

    async def dispatch(
        self,
        pool: CredentialPool,
        call: ProviderCall,
        trace: Optional[ReasoningTrace] = None,
    ) -> DispatchResult:
        provider = pool.provider
        result = DispatchResult(provider=provider)
        for index, credential in enumerate(pool):
            try:
                content = await call(credential, index)
                if content is None:
                    raise ProviderFailure(ProviderError("content", None, f"{provider} returned no content"))
            except ProviderFailure as exc:
                if self._failed(result, index, credential, exc.error, trace):
                    continue
                break
            except Exception as exc:
                error = ProviderError("transport", None, f"{exc.__class__.__name__}: {exc}")
                logger.error("%s call raised unexpectedly (key %d)", provider, index + 1, exc_info=exc)
                self._failed(result, index, credential, error, trace)
                break
            result.attempts.append(ProviderAttempt(provider, index, ok=True, content=content))
            result.content = content
            result.index = index
            if trace is not None:
                trace.add(f"Used {provider} key {index + 1}")
            return result
        return result

    def _failed(
        self,
        result: DispatchResult,
        index: int,
        credential: str,
        error: ProviderError,
        trace: Optional[ReasoningTrace],
    ) -> bool:
        """Record one failed attempt; True when the next credential should be tried."""
        provider = result.provider
        result.attempts.append(ProviderAttempt(provider, index, ok=False, error=error))
        result.errors.append(self._error_entry(provider, index, error))
        self._record_failure(provider, index, credential, error)
        if trace is not None:
            trace.add(f"{provider} error (key {index + 1}): {error.message}")
        return error.retryable

    @staticmethod
    def _error_entry(provider: str, index: int, error: ProviderError) -> Dict[str, Any]:
        return {
            "source": provider,
            "key": f"KEY_{index + 1}",
            "kind": error.kind,
            "message": error.message,
            "status": error.status,
            "data": error.raw_body,
        }

    def _record_failure(self, provider: str, index: int, credential: str, error: ProviderError) -> None:
        logger.warning("%s API failure (key %d): %s", provider, index + 1, error.message)
        if self.error_log is None:
            return
        self.error_log.log("provider.failure", {
            "provider": provider,
            "key": f"KEY_{index + 1}",
            "key_value": credential,
            **error.to_dict(),
        })
