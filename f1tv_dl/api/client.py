"""
Async client for the F1TV web API: token liveness, content metadata, playback
URLs and manifests.
"""

import asyncio
import logging
import time
from typing import Any, Dict, Optional

import aiohttp

from f1tv_dl.exceptions import (
    F1tvDlError,
    RateLimitedError,
    TokenRejectedError,
    TransientTransportError,
)

from .rate_limiter import AdaptiveRateLimiter

log = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class F1TVAPIClient:
    """
    Async client for the F1TV JSON API.

    Features:
    - Shared connection pool
    - Adaptive rate limiting driven by 429 responses
    - Explicit timeouts on every request; network failures surface as
      TransientTransportError so the queue can retry them
    """

    BASE_URL = "https://f1tv.formula1.com/2.0/R/ENG/"
    CONTENT_PATH = "WEB_DASH/ALL/CONTENT/VIDEO/{content_id}/F1_TV_Pro_Annual/14"
    PLAY_PATH = "WEB_HLS/ALL/CONTENT/PLAY"
    LIVENESS_URL = "https://f1tv-api.formula1.com/api/content-items"

    LIVENESS_TIMEOUT = 10
    METADATA_TIMEOUT = 30

    def __init__(self, rate_limiter: AdaptiveRateLimiter | None = None):
        self._session: Optional[aiohttp.ClientSession] = None
        self._rate_limiter = rate_limiter or AdaptiveRateLimiter()

    async def _initialize_session(self) -> aiohttp.ClientSession:
        """Ensures an active aiohttp session is available."""
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                limit=10,
                ttl_dns_cache=300,
                enable_cleanup_closed=True,
            )
            self._session = aiohttp.ClientSession(
                connector=connector,
                headers={
                    "User-Agent": USER_AGENT,
                    "Accept-Encoding": "gzip, deflate, br",
                },
            )
        return self._session

    async def close(self) -> None:
        """Gracefully closes the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "F1TVAPIClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _request(
        self,
        url: str,
        *,
        params: Dict[str, Any] | None = None,
        headers: Dict[str, str] | None = None,
        timeout: float = METADATA_TIMEOUT,
        as_json: bool = True,
    ) -> Any:
        """
        Makes a rate-limited GET request and maps failures onto the error taxonomy.
        """
        session = await self._initialize_session()
        await self._rate_limiter.acquire()
        start_time = time.monotonic()
        try:
            async with session.get(
                url,
                params=params,
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=timeout, connect=10),
            ) as r:
                duration_ms = (time.monotonic() - start_time) * 1000
                log.debug(f"GET {url} -> {r.status} ({duration_ms:.0f} ms)")

                if r.status == 429:
                    retry_after = _parse_retry_after(r.headers.get("Retry-After"))
                    await self._rate_limiter.on_429(retry_after)
                    raise RateLimitedError(
                        f"F1TV rate limited the request to {url}.", retry_after
                    )
                if r.status in (401, 403):
                    raise TokenRejectedError(
                        f"F1TV rejected the access token (HTTP {r.status})."
                    )

                r.raise_for_status()
                if as_json:
                    return await r.json(content_type=None)
                return await r.text()
        except F1tvDlError:
            raise
        except aiohttp.ClientResponseError as e:
            raise TransientTransportError(f"HTTP {e.status} from {url}: {e.message}") from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransientTransportError(
                f"Request to {url} failed: {e or type(e).__name__}"
            ) from e

    async def check_token(self, token: str) -> bool:
        """
        Liveness check: a lightweight authenticated request. Only the status
        matters; any failure, including a network error, counts as "not live".
        """
        try:
            await self._request(
                self.LIVENESS_URL,
                headers={"Authorization": f"Bearer {token}"},
                timeout=self.LIVENESS_TIMEOUT,
                as_json=False,
            )
            return True
        except Exception as e:
            log.debug(f"Token validation failed: {e}")
            return False

    async def get_content(self, content_id: str) -> Dict[str, Any]:
        """Fetches the content container for an id."""
        response = await self._request(
            self.BASE_URL + self.CONTENT_PATH.format(content_id=content_id)
        )
        containers = (response.get("resultObj") or {}).get("containers") or []
        if not containers:
            raise TransientTransportError(f"No content returned for id {content_id}.")
        return containers[0]

    async def get_stream_url(
        self, content_id: str, token: str, channel_id: Optional[str] = None
    ) -> str:
        """Requests a tokenized playback URL for content (and optional channel)."""
        params = {"contentId": content_id}
        if channel_id:
            params["channelId"] = channel_id
        response = await self._request(
            self.BASE_URL + self.PLAY_PATH,
            params=params,
            headers={"ascendontoken": token},
        )
        url = (response.get("resultObj") or {}).get("url")
        if not url:
            raise TransientTransportError(
                f"No playback URL returned for content {content_id}."
            )
        return url

    async def get_manifest(self, url: str) -> str:
        """Downloads a manifest (HLS playlist or DASH MPD) as text."""
        return await self._request(url, as_json=False)


def _parse_retry_after(value: str | None) -> float | None:
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None
