from abc import ABC, abstractmethod
from typing import Dict, Optional

import httpx
import logging

from m3u8_extractor.configs import settings
from m3u8_extractor.utils.http_utils import create_httpx_client

logger = logging.getLogger(__name__)


class ExtractorError(Exception):
    """Base exception for all extractors."""
    pass


class NetworkError(ExtractorError):
    """The page could not be fetched: connection failure, timeout or non-2xx status."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(message)


class SandboxExecutionError(ExtractorError):
    """The sandbox could not be built or inspected."""
    pass


class BaseExtractor(ABC):
    """Base class for all URL extractors.

    Requests are sent exactly once: a failed fetch fails the whole extraction,
    and the caller decides whether to try again.
    """

    def __init__(self, request_headers: dict):
        self.base_headers = {
            "user-agent": settings.user_agent,
        }
        # merge incoming headers (e.g. Accept-Language / Referer) with default base headers
        self.base_headers.update(request_headers or {})

    async def _make_request(
        self,
        url: str,
        method: str = "GET",
        headers: Optional[Dict] = None,
        timeout: Optional[float] = None,
        **kwargs,
    ) -> httpx.Response:
        """
        Make a single HTTP request bounded by a timeout.

        Parameters
        ----------
        timeout : float | None
            Seconds to wait for the request (applied to httpx.Timeout). Defaults to settings.extract_timeout.

        Raises
        ------
        NetworkError
            On timeout, transport failure or a non-2xx response.
        """
        request_headers = self.base_headers.copy()
        if headers:
            request_headers.update(headers)

        timeout = timeout or settings.extract_timeout

        try:
            async with create_httpx_client(timeout=httpx.Timeout(timeout)) as client:
                response = await client.request(method, url, headers=request_headers, **kwargs)
                response.raise_for_status()
                return response
        except httpx.HTTPStatusError as e:
            body_preview = e.response.text[:500]
            logger.debug(
                "HTTPStatusError for %s (status=%s) -- body preview: %s",
                url,
                e.response.status_code,
                body_preview,
            )
            raise NetworkError(
                e.response.status_code, f"Connection Error: HTTP error {e.response.status_code} while requesting {url}"
            ) from e
        except httpx.TimeoutException as e:
            logger.warning("Timeout after %.1fs while requesting %s", timeout, url)
            raise NetworkError(504, f"Connection Error: timeout of {timeout}s exceeded while requesting {url}") from e
        except httpx.HTTPError as e:
            logger.warning("Network error while requesting %s: %s", url, e)
            raise NetworkError(502, f"Connection Error: {e}") from e

    @abstractmethod
    async def extract(self, url: str, **kwargs):
        """Extract the final URL."""
        pass
