import logging
from typing import Optional

import httpx

logger = logging.getLogger("batchmaker.fetch")


class ConnectivityChecker:
    """Cheap reachability probe run before spending any quota.

    Any HTTP response means we are online; only transport failures count
    as offline.
    """

    def __init__(
        self,
        probe_url: str,
        timeout: float = 5.0,
        enabled: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.probe_url = probe_url
        self.timeout = timeout
        self.enabled = enabled
        self.transport = transport

    async def is_online(self) -> bool:
        if not self.enabled:
            return True
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as cli:
                await cli.head(self.probe_url)
            return True
        except httpx.HTTPError as e:
            logger.warning(f"Connectivity probe to {self.probe_url} failed: {e.__class__.__name__}")
            return False
