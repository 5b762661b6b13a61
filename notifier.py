import logging

import requests

import config

logger = logging.getLogger(__name__)

# API request timeout in seconds
API_TIMEOUT = 10


class RelayError(Exception):
    """Raised when the rewritten message could not be pushed to its channel"""

    def __init__(self, url: str, cause: BaseException | str):
        self.url = url
        self.cause = cause
        super().__init__(f"Relay to {url} failed: {cause}")


class TelexNotifier:
    """Pushes a rewritten message back to the originating Telex channel"""

    def __init__(self, base_url: str = config.DEFAULT_TELEX_API_URL, timeout: float = API_TIMEOUT,
                 logger: logging.Logger | None = None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)

    def channel_url(self, channel_id: str) -> str:
        return f'{self.base_url}/channels/{channel_id}/messages'

    def relay(self, channel_id: str, content: str) -> int:
        """Replace the channel message content.

        Args:
            channel_id: Telex channel id
            content: Rewritten message

        Returns:
            HTTP status code of the channel update

        Raises:
            RelayError: on transport failure or non-2xx response
        """
        url = self.channel_url(channel_id)
        try:
            response = requests.put(url, json={'content': content}, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            self.logger.error('Error relaying message: %s', e,
                              extra={'url': url, 'request_body': {'content': content}})
            raise RelayError(url, e) from e
        return response.status_code
