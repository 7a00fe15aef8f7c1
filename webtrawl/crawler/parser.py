"""
Link extraction from fetched markup.
"""

import logging
import warnings
from typing import Iterator, Optional
from urllib.parse import urljoin, urlsplit

from bs4 import BeautifulSoup, XMLParsedAsHTMLWarning


MARKUP_TYPES = (
    'text/html',
    'application/xhtml+xml',
    'application/xml',
    'text/xml'
)

SKIPPED_SCHEMES = ('javascript:', 'mailto:', 'tel:', 'data:')

LINK_ATTRIBUTES = ('href', 'src')


def is_markup(content_type: Optional[str]) -> bool:
    """Check if a content type is a markup type worth parsing for links."""
    if not content_type:
        return False
    media_type = content_type.split(';', 1)[0].strip().lower()
    return media_type in MARKUP_TYPES


class LinkExtractor:
    """
    Extracts absolute hyperlink targets from HTML and XML documents.

    Links come from `href` and `src` attributes on any element and from
    form `action` attributes, resolved against the page URL or its
    `<base href>`.
    """

    def __init__(self, parser_features: str = 'lxml'):
        self.parser_features = parser_features
        self.logger = logging.getLogger(__name__)

    def extract(self, base_url: str, content_type: Optional[str], body: bytes,
                encoding: Optional[str] = None) -> Iterator[str]:
        """
        Lazily yield absolute URLs referenced by a document.

        Args:
            base_url: URL the document was served from (after redirects)
            content_type: Content-Type header of the response
            body: Raw response body
            encoding: Charset from the response, if known

        Yields:
            Absolute http(s) URLs, in document order, not deduplicated
        """
        if not body or not is_markup(content_type):
            return

        try:
            with warnings.catch_warnings():
                warnings.simplefilter('ignore', XMLParsedAsHTMLWarning)
                soup = BeautifulSoup(body, self.parser_features, from_encoding=encoding)
        except Exception as e:
            self.logger.debug(f"Could not parse markup from {base_url}: {e}")
            return

        base_tag = soup.find('base', href=True)
        if base_tag:
            base_url = self._resolve(base_url, base_tag['href']) or base_url

        for element in soup.find_all(True):
            for attribute in LINK_ATTRIBUTES:
                link = self._resolve(base_url, element.get(attribute))
                if link:
                    yield link

            if element.name == 'form':
                link = self._resolve(base_url, element.get('action'))
                if link:
                    yield link

    def _resolve(self, base_url: str, reference) -> Optional[str]:
        """Resolve a reference against the base URL, dropping unusable ones."""
        if not isinstance(reference, str):
            return None

        reference = reference.strip()
        if not reference or reference.startswith('#'):
            return None
        if reference.lower().startswith(SKIPPED_SCHEMES):
            return None

        try:
            absolute_url = urljoin(base_url, reference)
            parsed = urlsplit(absolute_url)
            if parsed.scheme not in ('http', 'https') or not parsed.hostname:
                return None
        except ValueError:
            return None

        return absolute_url
