import logging

import httpx

from .config import settings

logger = logging.getLogger(__name__)


class UpstreamClient:
    """Shared async HTTP client for upstream GETs. No retries: one attempt, bounded by a timeout."""

    def __init__(self, timeout: float | None = None) -> None:
        self._client: httpx.AsyncClient | None = None
        self._timeout = timeout if timeout is not None else settings.upstream_timeout_seconds

    async def start(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._client = httpx.AsyncClient(
            follow_redirects=True,
            limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
            transport=transport,
        )

    async def stop(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def _require_client(self) -> httpx.AsyncClient:
        """Return initialized client or raise a clear runtime error."""
        if self._client is None:
            raise RuntimeError("Upstream client is not started")
        return self._client

    async def get(self, url: str) -> httpx.Response:
        logger.info("[Proxy] Requesting: %s", url)
        return await self._require_client().get(url, timeout=self._timeout)


# Singleton
client = UpstreamClient()
