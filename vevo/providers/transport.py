"""Async HTTP transport shared by all provider clients."""
from __future__ import annotations

from typing import Any, Dict, Optional
import httpx

from vevo.errors import ProviderError, failure_for


def _body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text[:2000]


def _error_message(status: int, body: Any) -> str:
    if isinstance(body, dict):
        detail = body.get("error")
        if isinstance(detail, dict):
            detail = detail.get("message")
        if detail:
            return f"HTTP {status}: {detail}"
    return f"HTTP {status}"


class HttpTransport:
    """Issues one request and normalizes any failure into a ProviderError.

    Successful responses return the decoded JSON body. Non-2xx responses raise
    ``AuthFailure`` (401/403) or ``TransportFailure``; network errors and
    requests that cannot be built raise ``TransportFailure`` with no status.
    """

    def __init__(self, timeout: float = 60.0, client: Optional[httpx.AsyncClient] = None) -> None:
        self.timeout = timeout
        self._client = client

    async def post(self, url: str, payload: Dict[str, Any], headers: Dict[str, str] | None = None) -> Any:
        return await self._request("POST", url, json=payload, headers=headers or {})

    async def get(self, url: str, headers: Dict[str, str] | None = None) -> Any:
        return await self._request("GET", url, headers=headers or {})

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        try:
            if self._client is not None:
                response = await self._client.request(method, url, **kwargs)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            raise failure_for(ProviderError("transport", None, f"timeout: {exc}")) from exc
        except httpx.HTTPError as exc:
            raise failure_for(ProviderError("transport", None, str(exc) or exc.__class__.__name__)) from exc
        except Exception as exc:
            # invalid URLs and headers that cannot be encoded fail before any request is sent
            raise failure_for(ProviderError("transport", None, f"{exc.__class__.__name__}: {exc}")) from exc

        if response.status_code >= 400:
            body = _body(response)
            error = ProviderError.from_status(response.status_code, _error_message(response.status_code, body), body)
            raise failure_for(error)
        return _body(response)
