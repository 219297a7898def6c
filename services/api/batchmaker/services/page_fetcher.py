import logging
from typing import Optional

import httpx

from ..core.text import clean_html
from ..parsing.errors import InputValidationError, PageFetchError

logger = logging.getLogger("batchmaker.fetch")


class PageFetcher:
    """Fetches a recipe page and reduces it to plain text for the model."""

    def __init__(
        self,
        user_agent: str,
        timeout: float = 20.0,
        max_chars: int = 12_000,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.headers = {
            "User-Agent": user_agent,
            "Accept": "text/html,application/xhtml+xml",
        }
        self.timeout = timeout
        self.max_chars = max_chars
        self.transport = transport

    async def fetch_html(self, url: str) -> str:
        try:
            async with httpx.AsyncClient(
                headers=self.headers,
                timeout=self.timeout,
                follow_redirects=True,
                transport=self.transport,
            ) as cli:
                r = await cli.get(url)
                r.raise_for_status()
                return r.text
        except httpx.TimeoutException:
            raise PageFetchError("Could not fetch the page: timeout while loading it.")
        except httpx.HTTPStatusError as e:
            raise PageFetchError(f"Could not fetch the page: HTTP {e.response.status_code}.")
        except httpx.HTTPError as e:
            raise PageFetchError(f"Could not fetch the page: network error ({e.__class__.__name__}).")

    async def fetch_text(self, url: str) -> str:
        html = await self.fetch_html(url)
        text = clean_html(html, self.max_chars)
        logger.info("Fetched %s: %d html chars -> %d text chars", url, len(html), len(text))
        if not text:
            raise InputValidationError("The page did not contain any readable text.")
        return text
