"""
Native token price in USD from a public HTTP price feed.

The feed is advisory (used to show fiat prices next to rent quotes), so any
failure is logged and reported as None rather than raised.
"""

import asyncio
import logging
from typing import Optional

import requests

from tnsclient.config import DEFAULT_PRICE_FEED_FIELD, DEFAULT_PRICE_FEED_URL

logger = logging.getLogger(__name__)


class PriceOracle:
    def __init__(
        self,
        url: str = DEFAULT_PRICE_FEED_URL,
        field: str = DEFAULT_PRICE_FEED_FIELD,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self.url = url
        self.field = field
        self.timeout = timeout
        self._http = session or requests.Session()

    def fetch_price(self) -> Optional[float]:
        """Blocking fetch; returns None when the feed is unreachable or malformed."""
        try:
            r = self._http.get(self.url, timeout=self.timeout)
            r.raise_for_status()
            return float(r.json()[self.field])
        except requests.RequestException as e:
            logger.warning("Price feed %s unavailable: %s", self.url, e)
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Price feed %s returned no usable %r field: %s", self.url, self.field, e)
        return None

    async def get_price(self) -> Optional[float]:
        return await asyncio.to_thread(self.fetch_price)
