import asyncio
import logging
import time
from collections import deque
from typing import List, Optional
from urllib.parse import quote

import aiohttp

from grnds.services.matchmaker import ExternalRankSample

logger = logging.getLogger(__name__)


class ValorantAPI:
    """
    HenrikDev Valorant API client.
    Every lookup returns None (or []) when there is no data: 404, other
    statuses and transport errors are all "no data" for the callers.
    """

    RATE_LIMIT = 30       # requests
    RATE_WINDOW = 60.0    # seconds

    def __init__(self, base_url: str = "https://api.henrikdev.xyz/valorant",
                 api_key: Optional[str] = None, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._request_times = deque()

        if not api_key:
            logger.warning("VALORANT_API_KEY is not set - requests may be rate limited upstream")

    async def _wait_for_rate_limit(self):
        # Sliding window: the oldest request has to leave the window before a new one goes out
        while True:
            now = time.monotonic()
            while self._request_times and now - self._request_times[0] >= self.RATE_WINDOW:
                self._request_times.popleft()

            if len(self._request_times) < self.RATE_LIMIT:
                self._request_times.append(now)
                return

            wait = self.RATE_WINDOW - (now - self._request_times[0])
            logger.warning("Rate limit reached (%s/%ss), waiting %.1fs", self.RATE_LIMIT, self.RATE_WINDOW, wait)
            await asyncio.sleep(wait)

    async def _request(self, path: str):
        url = f"{self.base_url}{path}"
        headers = {"User-Agent": "GrndsHub/1.0"}
        if self.api_key:
            headers["Authorization"] = self.api_key

        await self._wait_for_rate_limit()
        logger.debug("GET %s", url)

        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.get(url, headers=headers) as response:

                    if response.status == 200:
                        payload = await response.json()
                        return payload.get("data") if isinstance(payload, dict) else None

                    elif response.status == 404:
                        return None

                    elif response.status == 403:
                        logger.error("Stats API refused the key (403): %s", url)
                        return None

                    else:
                        logger.warning("Stats API error %s: %s", response.status, url)
                        return None

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning("Stats API unreachable (%s): %s", url, e)
            return None
        except ValueError as e:
            # 200 with a body that is not JSON
            logger.warning("Stats API sent an unreadable body (%s): %s", url, e)
            return None

    # --- RANK LOOKUPS ---

    async def get_mmr(self, region: str, name: str, tag: str) -> Optional[ExternalRankSample]:
        """Current season tier + ELO. None when the account has no data."""
        data = await self._request(f"/v1/mmr/{quote(region.lower())}/{quote(name)}/{quote(tag)}")
        if not isinstance(data, dict):
            return None
        return ExternalRankSample.from_payload(data)

    async def get_mmr_history(self, name: str, tag: str) -> List[ExternalRankSample]:
        """Tier history, most recent first. Empty when there is none."""
        data = await self._request(f"/v1/mmr-history/{quote(name)}/{quote(tag)}")
        if not isinstance(data, list):
            return []
        return [ExternalRankSample.from_payload(item) for item in data if isinstance(item, dict)]
