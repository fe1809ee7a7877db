"""HTTP client for hosted analyzer functions.

Each hosted function takes the analysis context as JSON and answers with
its own payload shape; an extractor turns that payload into a score.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Callable

import httpx

from core.errors import SourceUnavailable

from decision.sources.base import AnalysisContext, SourceResult, finite_score
from decision.sources.local import risk_label, risk_score_from_total

logger = logging.getLogger(__name__)

Extractor = Callable[[str, dict[str, Any]], SourceResult]


class RemoteAnalyzerClient:
    """Async client for the analyzer function host."""

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            headers = {}
            if self.api_key:
                headers["Authorization"] = f"Bearer {self.api_key}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _request(
        self, method: str, endpoint: str, json: dict[str, Any] | None = None
    ) -> Any:
        client = await self._get_client()
        response = await client.request(method, endpoint, json=json)
        response.raise_for_status()
        return response.json()

    async def post(self, endpoint: str, payload: dict[str, Any]) -> Any:
        return await self._request("POST", endpoint, json=payload)


def default_extractor(name: str, payload: dict[str, Any]) -> SourceResult:
    """Read ``{"score": float | null, "label": str}`` from a payload."""
    if not isinstance(payload, dict) or "score" not in payload:
        raise SourceUnavailable(f"{name}: response has no score")
    score = payload["score"]
    return SourceResult(
        source=name,
        score=None if score is None else finite_score(name, score),
        label=str(payload.get("label", "")),
        details={k: v for k, v in payload.items() if k not in ("score", "label")},
    )


def risk_extractor(name: str, payload: dict[str, Any]) -> SourceResult:
    """Read ``{"total_risk": 0..10}`` and map it like the local risk source."""
    if not isinstance(payload, dict) or "total_risk" not in payload:
        raise SourceUnavailable(f"{name}: response has no total_risk")
    total = float(payload["total_risk"])
    if not math.isfinite(total):
        raise SourceUnavailable(f"{name}: non-finite total_risk {total}")
    return SourceResult(
        source=name,
        score=risk_score_from_total(total),
        label=risk_label(total),
        details={"total_risk": total},
    )


class RemoteAnalyzerSource:
    """An analyzer source served by a hosted function."""

    def __init__(
        self,
        name: str,
        endpoint: str,
        client: RemoteAnalyzerClient,
        extractor: Extractor = default_extractor,
    ):
        self.name = name
        self.endpoint = endpoint
        self.client = client
        self.extractor = extractor

    async def analyze(self, context: AnalysisContext) -> SourceResult:
        payload = await self.client.post(self.endpoint, context.model_dump(mode="json"))
        logger.debug(f"{self.name}: remote payload {payload}")
        return self.extractor(self.name, payload)
