import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from typing import Protocol

from extractor import LinkOccurrence
from shortener import ShortenedLink, ShortenProviderError

logger = logging.getLogger(__name__)

STATUS_SUCCESS = 'success'
STATUS_UNCHANGED = 'unchanged'


class Shortener(Protocol):
    async def shorten(self, url: str) -> ShortenedLink: ...


class RewriteError(Exception):
    """Raised when any link in a batch could not be located or shortened.

    Carries the untouched original message; no partial rewrite is produced.
    """

    def __init__(self, message: str, cause: BaseException, url: str | None = None):
        self.message = message
        self.cause = cause
        self.url = url
        super().__init__(f"Failed to rewrite message: {cause}")


@dataclass
class RewriteResult:
    message: str
    status: str
    links: list[ShortenedLink] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return self.status == STATUS_SUCCESS


class LinkNotFoundError(Exception):
    """Raised when an occurrence cannot be located in its message"""

    def __init__(self, occurrence: LinkOccurrence):
        self.occurrence = occurrence
        super().__init__(f"Link {occurrence.url} (#{occurrence.index}) not found in message")


def _locate(message: str, occurrence: LinkOccurrence, cursor: int) -> tuple[int, int]:
    """Find where an occurrence sits in the message at or after cursor.

    Returns the (start, end) span of its literal text, or (-1, -1).
    """
    literal = occurrence.literal
    start = occurrence.start
    if start is not None and start >= cursor and message.startswith(literal, start):
        return start, start + len(literal)
    for text in dict.fromkeys((literal, occurrence.url)):
        pos = message.find(text, cursor)
        if pos >= 0:
            return pos, pos + len(text)
    return -1, -1


def locate_spans(message: str, occurrences: list[LinkOccurrence]) -> list[tuple[int, int]]:
    """Map each occurrence, in scan order, to the span it will replace.

    Every occurrence takes the first remaining copy of its text after the
    previous span, so a URL that appears twice is replaced exactly twice.

    Raises:
        LinkNotFoundError: if any occurrence cannot be located
    """
    spans = []
    cursor = 0
    for occurrence in occurrences:
        start, end = _locate(message, occurrence, cursor)
        if start < 0:
            raise LinkNotFoundError(occurrence)
        spans.append((start, end))
        cursor = end
    return spans


def splice(message: str, spans: list[tuple[int, int]], links: list[ShortenedLink]) -> str:
    """Replace each span with its short URL; text between spans is kept as is"""
    parts = []
    cursor = 0
    for (start, end), link in zip(spans, links):
        parts.append(message[cursor:start])
        parts.append(link.short_url)
        cursor = end
    parts.append(message[cursor:])
    return ''.join(parts)


def substitute(message: str, occurrences: list[LinkOccurrence], links: list[ShortenedLink]) -> str:
    """Replace each occurrence, in scan order, with its short URL.

    Raises:
        LinkNotFoundError: if any occurrence cannot be located
    """
    return splice(message, locate_spans(message, occurrences), links)


class BatchRewriter:
    """Shortens every link of a message concurrently, all or nothing.

    Args:
        shortener: object with an async shorten(url) -> ShortenedLink
        timeout: per-call timeout in seconds (None disables it)
        max_concurrency: max simultaneous provider calls (0 = unbounded)
        logger: logger used for batch diagnostics
    """

    def __init__(self, shortener: Shortener, timeout: float | None = None,
                 max_concurrency: int = 0, logger: logging.Logger | None = None):
        self.shortener = shortener
        self.timeout = timeout
        self.max_concurrency = max_concurrency
        self.logger = logger or logging.getLogger(__name__)

    async def _shorten_one(self, occurrence: LinkOccurrence,
                           semaphore: asyncio.Semaphore | None) -> ShortenedLink:
        async with semaphore if semaphore is not None else contextlib.nullcontext():
            try:
                return await asyncio.wait_for(self.shortener.shorten(occurrence.url), self.timeout)
            except asyncio.TimeoutError as e:
                raise ShortenProviderError(occurrence.url, f'timed out after {self.timeout}s') from e

    async def rewrite(self, message: str, occurrences: list[LinkOccurrence]) -> RewriteResult:
        """Shorten all occurrences and rebuild the message.

        Raises:
            RewriteError: if an occurrence cannot be located in the message
                (raised before any call is issued) or if any single
                shortening call failed; wraps the first failure in scan order
        """
        if not occurrences:
            return RewriteResult(message=message, status=STATUS_UNCHANGED)

        try:
            spans = locate_spans(message, occurrences)
        except LinkNotFoundError as e:
            self.logger.error('%s: %r', e, message)
            raise RewriteError(message, e, url=e.occurrence.url) from e

        semaphore = asyncio.Semaphore(self.max_concurrency) if self.max_concurrency > 0 else None
        results = await asyncio.gather(
            *(self._shorten_one(occurrence, semaphore) for occurrence in occurrences),
            return_exceptions=True,
        )

        for occurrence, result in zip(occurrences, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, BaseException):
                self.logger.error('Shortening failed for %s in message %r: %s',
                                  occurrence.url, message, result)
                raise RewriteError(message, result, url=occurrence.url) from result

        rewritten = splice(message, spans, results)
        self.logger.debug('Rewrote %d link(s)', len(occurrences))
        return RewriteResult(message=rewritten, status=STATUS_SUCCESS, links=list(results))
