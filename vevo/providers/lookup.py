"""Data-lookup providers (market data and brokerage account snapshots)."""
from __future__ import annotations

import json
from urllib.parse import urlencode

from vevo.providers.base import ProviderClient


class DataLookupClient(ProviderClient):
    """GET a JSON document and return it serialized.

    The credential travels either as a query parameter (``auth: query``) or in
    a named header (``auth: header``). The prompt is ignored.
    """

    kind = "lookup"

    async def complete(self, credential: str, prompt: str, system: str | None = None) -> str:
        url = self.url
        headers: dict[str, str] = {}
        if self.options.get("auth", "query") == "header":
            headers[str(self.options.get("auth_header", "authorization"))] = credential
        else:
            sep = "&" if "?" in url else "?"
            url = f"{url}{sep}{urlencode({self.options.get('auth_param', 'apiKey'): credential})}"
        data = await self.transport.get(url, headers)
        if not data:
            return self._require_content(None, data)
        return json.dumps(data)
