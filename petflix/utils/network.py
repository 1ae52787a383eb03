"""
Network Utilities
=================

Reachability check run before any remote work starts.
"""

import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)


class ConnectivityChecker:
    """
    Answers whether the generation service is reachable at all.

    Any HTTP response, even an error status, counts as reachable; only
    transport failures (DNS, refused connection, timeout) do not.
    """

    def __init__(
        self,
        probe_url: str = "https://api.vidu.com",
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.probe_url = probe_url
        self.timeout = timeout
        self._transport = transport

    async def is_reachable(self) -> bool:
        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
            ) as client:
                response = await client.head(self.probe_url)
            logger.debug(f"Connectivity probe {self.probe_url}: HTTP {response.status_code}")
            return True
        except httpx.TransportError as e:
            logger.warning(f"Connectivity probe failed: {e.__class__.__name__}: {e}")
            return False
