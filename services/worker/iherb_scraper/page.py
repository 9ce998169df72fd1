"""
Page representation handed from the crawl driver to the extraction core.
"""
from typing import Optional

from bs4 import BeautifulSoup

EMBEDDED_SCRIPT_ID = '__NEXT_DATA__'


class Page:
    """
    A fetched page: URL, status, HTML and the embedded Next.js payload text.

    The BeautifulSoup document is built lazily since most pages are fully
    served by the embedded payload.
    """

    def __init__(self, url: str, status: int = 200, html: str = '', embedded_json: Optional[str] = None):
        self.url = url
        self.status = status
        self.html = html or ''
        self.embedded_json = embedded_json
        self._soup = None

    @classmethod
    def from_html(cls, url: str, html: str, status: int = 200) -> 'Page':
        page = cls(url, status=status, html=html)
        script = page.soup.find('script', id=EMBEDDED_SCRIPT_ID)
        if script is not None:
            page.embedded_json = script.string or script.get_text()
        return page

    @classmethod
    def from_response(cls, response) -> 'Page':
        """Build a Page from a Scrapy response; non-text bodies give an empty page."""
        try:
            html = response.text
        except AttributeError:
            # Plain Response (binary body) has no text/css
            html = ''
        embedded = None
        if html:
            embedded = response.css(f'script#{EMBEDDED_SCRIPT_ID}::text').get()
        return cls(response.url, status=response.status, html=html, embedded_json=embedded)

    @property
    def soup(self) -> BeautifulSoup:
        if self._soup is None:
            self._soup = BeautifulSoup(self.html, 'html.parser')
        return self._soup

    @property
    def is_empty(self) -> bool:
        return not self.html.strip()

    def __repr__(self):
        return f'<Page {self.status} {self.url}>'
