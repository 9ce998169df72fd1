"""
Pagination driver for listing sequences.
"""
import logging
from typing import Any, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from iherb_scraper.crawl import CrawlRequest, LISTING
from iherb_scraper.fields import clean_text, parse_count, resolve_path
from iherb_scraper.state import RunState
from iherb_scraper.urls import PAGE_PARAMS, absolute_url

logger = logging.getLogger(__name__)

PAGINATION_PATHS = (
    'pagination',
    'productsMeta.pagination',
    'searchResults.pagination',
    'meta.pagination',
)
TOTAL_PAGES_KEYS = ('totalPages', 'pageCount', 'lastPage', 'total', 'totalPageCount')
CURRENT_PAGE_KEYS = ('currentPage', 'page')
NEXT_URL_KEYS = ('nextPageUrl', 'nextPage', 'next')


def find_pagination(page_props: Any) -> dict:
    """The pagination object of a listing payload, or an empty dict."""
    for path in PAGINATION_PATHS:
        value = resolve_path(page_props, path)
        if isinstance(value, dict):
            return value
    return {}


def _first_count(pagination: dict, keys) -> Optional[int]:
    for key in keys:
        value = parse_count(pagination.get(key))
        if value:
            return value
    return None


def total_pages(pagination: dict) -> int:
    """Total page count read through its known aliases; 1 when unknown."""
    return _first_count(pagination or {}, TOTAL_PAGES_KEYS) or 1


def current_page(pagination: dict, fallback: int = 1) -> int:
    return _first_count(pagination or {}, CURRENT_PAGE_KEYS) or fallback


def next_page_url(url: str, next_page: int, pagination: dict, origin: str) -> Optional[str]:
    """
    URL of the next listing page.

    An explicit next-page URL in the payload wins; otherwise the page query
    parameter of the current URL is set (``page`` or ``p``, whichever is
    present; ``page`` is added when neither is).
    """
    for key in NEXT_URL_KEYS:
        # nextPage is sometimes a bare number; only strings are URLs
        explicit = clean_text(pagination.get(key)) if isinstance(pagination.get(key), str) else None
        if explicit and not explicit.isdigit():
            return absolute_url(origin, explicit)

    try:
        parts = urlsplit(url)
    except ValueError as e:
        logger.debug(f'Cannot build next page URL from {url}: {e}')
        return None
    if not parts.scheme or not parts.netloc:
        return None
    query = parse_qsl(parts.query, keep_blank_values=True)
    names = [name for name, _ in query]
    param = next((name for name in PAGE_PARAMS if name in names), PAGE_PARAMS[0])
    if param in names:
        query = [(name, str(next_page) if name == param else value) for name, value in query]
    else:
        query.append((param, str(next_page)))
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))


class Paginator:
    """
    Decides whether a listing sequence continues and builds the next request.

    Bookkeeping lives in the RunState, keyed by listing key, so two handlers
    computing the same next page only enqueue it once.
    """

    def __init__(self, state: RunState, max_pages: int = 20, origin: str = ''):
        self.state = state
        self.max_pages = max_pages
        self.origin = origin

    def next_request(self, url: str, page: int, listing_key: str, page_props: Any) -> Optional[CrawlRequest]:
        pagination = find_pagination(page_props)
        page = page or current_page(pagination)
        total = total_pages(pagination)
        if page >= total:
            logger.debug(f'Listing {listing_key} finished at page {page}/{total}')
            return None

        next_page = page + 1
        if self.max_pages and next_page > self.max_pages:
            logger.info(f'Reached max pages ({self.max_pages}) for {listing_key}')
            return None
        if self.state.should_stop():
            return None

        next_url = next_page_url(url, next_page, pagination, self.origin)
        if not next_url or next_url == url:
            return None
        if not self.state.register_next_page(listing_key, next_url, next_page):
            logger.debug(f'Next page already enqueued: {next_url}')
            return None
        return CrawlRequest(url=next_url, label=LISTING, page=next_page, listing_key=listing_key)
