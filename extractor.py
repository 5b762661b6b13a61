import logging
import re
from dataclasses import dataclass
from typing import Callable

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

KIND_PATTERN = 'pattern'
KIND_MARKUP = 'markup'

_URL_RE = re.compile(r'https?://\S+')

# One attribute of a start tag, laid out the way html.parser tokenizes it
_ATTR_RE = re.compile(r'''([^\s/>][^\s/=>]*)(?:\s*=+\s*(?:"([^"]*)"|'([^']*)'|(?!['"])([^>\s]*)))?''')


@dataclass(frozen=True)
class LinkOccurrence:
    """A single link found in a message.

    index is the ordinal of the occurrence in scan order. start is the
    character offset of the link's literal text in the message and raw is
    that literal text when it differs from url (an anchor target as written,
    before entity decoding). start is None when no offset could be found.
    """
    url: str
    index: int
    kind: str
    start: int | None = None
    raw: str | None = None

    @property
    def literal(self) -> str:
        return self.raw if self.raw is not None else self.url


def extract_pattern(message: str) -> list[LinkOccurrence]:
    """Find bare http(s) URLs, each greedy up to the next whitespace"""
    return [
        LinkOccurrence(url=match.group(0), index=i, kind=KIND_PATTERN, start=match.start())
        for i, match in enumerate(_URL_RE.finditer(message))
    ]


def _line_offsets(message: str) -> list[int]:
    return [0] + [match.end() for match in re.finditer('\n', message)]


def _href_span(message: str, tag, line_offsets: list[int]) -> tuple[int, int] | None:
    """Locate the raw href value of an anchor start tag in the message.

    Returns (start, end) of the attribute value, or None if the parser did
    not report a source position.
    """
    if tag.sourceline is None or tag.sourcepos is None or tag.sourceline > len(line_offsets):
        return None
    pos = line_offsets[tag.sourceline - 1] + tag.sourcepos
    if not message.startswith('<', pos) or message[pos + 1:pos + 2].lower() != 'a':
        return None

    pos += 2
    span = None
    while pos < len(message):
        while pos < len(message) and (message[pos].isspace() or message[pos] == '/'):
            pos += 1
        if pos >= len(message) or message[pos] == '>':
            break
        match = _ATTR_RE.match(message, pos)
        if not match or match.end() == pos:
            break
        if match.group(1).lower() == 'href':
            # Duplicate attributes: the last one wins, as in the parsed tree
            for group in (2, 3, 4):
                if match.group(group) is not None:
                    span = (match.start(group), match.end(group))
                    break
        pos = match.end()
    return span


def extract_markup(message: str) -> list[LinkOccurrence]:
    """Collect anchor href targets in document order, duplicates included.

    Each target keeps the offset and literal text of its attribute value so
    it can be replaced in place even when it was written with entities.
    Unparseable input yields no occurrences.
    """
    try:
        soup = BeautifulSoup(message, 'html.parser')
        anchors = soup.find_all('a', href=True)
    except Exception as e:
        logger.warning('Could not parse message as markup: %s', e)
        return []

    line_offsets = _line_offsets(message)
    occurrences = []
    for anchor in anchors:
        href = anchor['href']
        # bs4 returns a list for multi-valued attributes; href is never one
        url = href.strip() if isinstance(href, str) else ''
        if not url:
            continue
        span = _href_span(message, anchor, line_offsets)
        start = raw = None
        if span is not None:
            start, raw = span[0], message[span[0]:span[1]]
        occurrences.append(LinkOccurrence(url=url, index=len(occurrences), kind=KIND_MARKUP,
                                          start=start, raw=raw))
    return occurrences


EXTRACTORS: dict[str, Callable[[str], list[LinkOccurrence]]] = {
    KIND_PATTERN: extract_pattern,
    KIND_MARKUP: extract_markup,
}


def get_extractor(mode: str) -> Callable[[str], list[LinkOccurrence]]:
    """Return the extraction strategy for a configured mode"""
    try:
        return EXTRACTORS[mode]
    except KeyError:
        raise ValueError(f"Unknown extract mode: {mode!r}") from None


def extract(message: str, mode: str = KIND_PATTERN) -> list[LinkOccurrence]:
    """Extract link occurrences from a message using the given mode"""
    if not message:
        return []
    return get_extractor(mode)(message)
