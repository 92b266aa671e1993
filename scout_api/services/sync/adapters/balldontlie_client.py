"""
BallDontLie client.

The free tier allows a handful of requests per minute, so every request waits
until ``60 / requests_per_minute`` seconds have passed since the previous one.
List endpoints are cursor-paginated (``meta.next_cursor``); ``iter_pages``
walks the whole sequence and yields records as they arrive.
"""
import asyncio
import time
from datetime import date
from typing import Any, AsyncIterator, Dict, Optional

import httpx

from scout_api.core.config import settings
from scout_api.core.logging import get_logger
from scout_api.services.sync.adapters.base_client import BaseProviderClient

logger = get_logger(__name__)


class BallDontLieClient(BaseProviderClient):
    """Client for the BallDontLie NBA API (teams, players, games)."""

    provider = "balldontlie"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        requests_per_minute: Optional[int] = None,
        page_size: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        api_key = api_key or settings.require_api_key("BALLDONTLIE_API_KEY")
        super().__init__(
            base_url=base_url or settings.BALLDONTLIE_BASE_URL,
            timeout=timeout or settings.BALLDONTLIE_TIMEOUT,
            headers={"Authorization": api_key},
            transport=transport,
        )
        rpm = requests_per_minute if requests_per_minute is not None else settings.BALLDONTLIE_REQUESTS_PER_MINUTE
        self.min_interval = 60.0 / rpm if rpm > 0 else 0.0
        self.page_size = page_size or settings.BALLDONTLIE_PAGE_SIZE
        self._last_request_at: Optional[float] = None

    async def _throttle(self) -> None:
        if self._last_request_at is not None and self.min_interval > 0:
            wait = self.min_interval - (time.monotonic() - self._last_request_at)
            if wait > 0:
                logger.debug(f"Rate limit: sleeping {wait:.1f}s before next BallDontLie request")
                await asyncio.sleep(wait)
        self._last_request_at = time.monotonic()

    async def iter_pages(self, path: str, params: Optional[Dict[str, Any]] = None) -> AsyncIterator[Dict[str, Any]]:
        """
        Yield every record of a paginated list endpoint.

        Args:
            path: Endpoint path, e.g. "/games"
            params: Extra query parameters

        Yields:
            Raw records, in provider order
        """
        query = dict(params or {}, per_page=self.page_size)
        pages = 0
        while True:
            await self._throttle()
            data = await self.get_json(path, params=query)
            pages += 1
            for record in (data or {}).get("data") or []:
                yield record

            cursor = ((data or {}).get("meta") or {}).get("next_cursor")
            if not cursor:
                break
            query["cursor"] = cursor

        logger.info(f"Fetched {pages} page(s) from BallDontLie {path}")

    def teams(self) -> AsyncIterator[Dict[str, Any]]:
        return self.iter_pages("/teams")

    def players(self) -> AsyncIterator[Dict[str, Any]]:
        return self.iter_pages("/players")

    def games(self, start_date: date, end_date: date) -> AsyncIterator[Dict[str, Any]]:
        return self.iter_pages(
            "/games",
            params={"start_date": start_date.isoformat(), "end_date": end_date.isoformat()},
        )
