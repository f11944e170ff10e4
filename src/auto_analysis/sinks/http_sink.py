# src/auto_analysis/sinks/http_sink.py

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx

logger = logging.getLogger(__name__)


def result_to_json(result: Any) -> Any:
    to_dict = getattr(result, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return result


class HttpAnalysisSink:
    """
    PersistenceSink that posts each analysis to the question backend:

        POST {base_url}/question-evaluation/save-analysis/{key}

    Non-2xx answers raise (httpx.HTTPStatusError), so the queue treats them
    as a failed attempt.
    """

    def __init__(
        self,
        base_url: str,
        *,
        token: str | None = None,
        timeout_seconds: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not base_url or not base_url.strip():
            raise ValueError("base_url is required")
        self.base_url = base_url.strip().rstrip("/")
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._owns_client = client is None
        if client is None:
            client = httpx.AsyncClient(timeout=timeout_seconds, headers=headers)
        elif headers:
            client.headers.update(headers)
        self._client = client

    def url_for(self, key: str) -> str:
        return f"{self.base_url}/question-evaluation/save-analysis/{quote(key, safe='')}"

    async def persist(self, key: str, result: Any) -> None:
        resp = await self._client.post(self.url_for(key), json=result_to_json(result))
        resp.raise_for_status()
        logger.debug("Saved analysis key=%s status=%s", key, resp.status_code)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
