import asyncio
import logging
from typing import Optional

import httpx

from cores.config import coincap_url

logger = logging.getLogger(__name__)


class EthUsdRateProvider:

    URL = coincap_url
    RETRIES = 2
    TIMEOUT = 3

    @classmethod
    async def fetch_rate(cls) -> Optional[float]:
        async with httpx.AsyncClient(timeout=cls.TIMEOUT) as client:
            for attempt in range(cls.RETRIES + 1):
                try:
                    resp = await client.get(cls.URL)
                    resp.raise_for_status()
                    payload = resp.json()
                    break
                except (httpx.HTTPError, ValueError) as e:
                    if attempt < cls.RETRIES:
                        await asyncio.sleep(0.5 * (attempt + 1))
                    else:
                        logger.warning(f"ETH/USD rate unavailable: {e}")
                        return None

        try:
            return float(payload["data"]["priceUsd"])
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Unexpected CoinCap payload: {e}")
            return None
