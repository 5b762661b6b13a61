import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

import config

logger = logging.getLogger(__name__)

# Provider request timeout in seconds
API_TIMEOUT = 10


class ShortenProviderError(Exception):
    """Raised when the shortening provider cannot shorten a URL"""

    def __init__(self, url: str, cause: BaseException | str):
        self.url = url
        self.cause = cause
        super().__init__(f"Failed to shorten {url}: {cause}")


@dataclass(frozen=True)
class ShortenedLink:
    long_url: str
    short_url: str
    metadata: dict[str, Any] = field(default_factory=dict, compare=False)


class BitlyShortener:
    """Client for the Bitly v4 shorten endpoint.

    Each call opens its own HTTP client and issues exactly one request; no
    state is kept between calls and nothing is retried or cached.
    """

    def __init__(self, access_token: str, api_url: str = config.DEFAULT_BITLY_API_URL,
                 timeout: float = API_TIMEOUT, logger: logging.Logger | None = None,
                 transport: httpx.AsyncBaseTransport | None = None):
        self.access_token = access_token
        self.api_url = api_url
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)
        self._transport = transport

    async def shorten(self, url: str) -> ShortenedLink:
        """Shorten a single URL.

        Args:
            url: Long URL, as found by the extractor

        Returns:
            ShortenedLink with the provider's `link` field as short URL

        Raises:
            ShortenProviderError: on transport failure, non-2xx status or
                a payload without a usable `link`
        """
        headers = {'Authorization': f'Bearer {self.access_token}'}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.api_url, json={'long_url': url}, headers=headers)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            self.logger.error('Shortening provider returned %s for %s', e.response.status_code, url)
            raise ShortenProviderError(url, e) from e
        except (httpx.HTTPError, ValueError) as e:
            self.logger.error('Shortening request failed for %s: %s', url, e)
            raise ShortenProviderError(url, e) from e

        short_url = data.get('link') if isinstance(data, dict) else None
        if not isinstance(short_url, str) or not short_url:
            self.logger.error('Shortening provider response has no link for %s: %r', url, data)
            raise ShortenProviderError(url, 'response payload has no link')

        self.logger.debug('Shortened %s -> %s', url, short_url)
        return ShortenedLink(long_url=url, short_url=short_url, metadata=data)
