"""
Run configuration read from the input document.

The input keeps the key names of the hosted actor input (``startUrls``,
``results_wanted``, ``collectDetails``, ...); snake_case spellings are
accepted as well.
"""
import json
import math
import os
from typing import Any, List, Optional

from iherb_scraper.crawl import CrawlRequest, PRODUCT
from iherb_scraper.fields import clean_text
from iherb_scraper.urls import (
    absolute_url,
    category_url,
    is_product_url,
    normalise_origin,
    search_url,
)

DEFAULT_RESULTS_WANTED = 100
DEFAULT_MAX_PAGES = 20
DEFAULT_MAX_CONCURRENCY = 8

_UNSET = object()


class ConfigurationError(ValueError):
    """Raised before crawling when no usable run can be built from the input."""


def as_positive_integer(value: Any, fallback):
    """Floor of a finite positive number, else the fallback."""
    if value is None or isinstance(value, bool):
        return fallback
    try:
        number = float(value)
    except (TypeError, ValueError):
        return fallback
    if not math.isfinite(number) or number <= 0:
        return fallback
    return int(math.floor(number))


def as_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'yes', 'y', 'on')
    return bool(value)


def _get(data: dict, *keys, default=_UNSET):
    for key in keys:
        if key in data:
            return data[key]
    return default


class RunConfig:
    """Validated run options plus seed request construction."""

    def __init__(self, start_urls=None, url=None, keyword='', category='', location='',
                 collect_details=True, results_wanted=DEFAULT_RESULTS_WANTED,
                 max_pages=DEFAULT_MAX_PAGES, dedupe=True, max_concurrency=DEFAULT_MAX_CONCURRENCY):
        self.start_urls = start_urls or []
        self.url = url
        self.keyword = clean_text(keyword) or ''
        self.category = clean_text(category) or ''
        self.location = location or ''
        self.origin = normalise_origin(location)
        self.collect_details = collect_details
        # None means unbounded
        self.results_wanted = results_wanted
        self.max_pages = max_pages
        self.dedupe = dedupe
        self.max_concurrency = max_concurrency

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> 'RunConfig':
        data = data or {}
        if not isinstance(data, dict):
            raise ConfigurationError('Run input must be a JSON object')

        raw_results = _get(data, 'results_wanted', 'resultsWanted')
        if raw_results is _UNSET:
            results_wanted = DEFAULT_RESULTS_WANTED
        elif raw_results is None:
            results_wanted = None
        else:
            results_wanted = as_positive_integer(raw_results, None)

        start_urls = _get(data, 'startUrls', 'start_urls', default=[])
        if isinstance(start_urls, (str, dict)):
            start_urls = [start_urls]
        elif not isinstance(start_urls, list):
            start_urls = []

        return cls(
            start_urls=start_urls,
            url=_get(data, 'url', default=None),
            keyword=_get(data, 'keyword', default=None),
            category=_get(data, 'category', default=None),
            location=_get(data, 'location', default='') or '',
            collect_details=as_bool(_get(data, 'collectDetails', 'collect_details', default=None), True),
            results_wanted=results_wanted,
            max_pages=as_positive_integer(_get(data, 'max_pages', 'maxPages', default=None), DEFAULT_MAX_PAGES),
            dedupe=as_bool(_get(data, 'dedupe', default=None), True),
            max_concurrency=as_positive_integer(
                _get(data, 'maxConcurrency', 'max_concurrency', default=None), DEFAULT_MAX_CONCURRENCY
            ),
        )

    @classmethod
    def from_env(cls, path: Optional[str] = None) -> 'RunConfig':
        """
        Load the input document from ``path``, ``IHERB_INPUT`` (file path) or
        ``IHERB_INPUT_JSON`` (inline JSON), in that order.
        """
        path = path or os.environ.get('IHERB_INPUT')
        try:
            if path:
                with open(path, encoding='utf-8') as f:
                    data = json.load(f)
            else:
                data = json.loads(os.environ.get('IHERB_INPUT_JSON') or '{}')
        except OSError as e:
            raise ConfigurationError(f'Cannot read input file {path}: {e}') from e
        except ValueError as e:
            raise ConfigurationError(f'Input is not valid JSON: {e}') from e
        return cls.from_dict(data)

    def _request_for(self, url: str, user_data: Optional[dict] = None) -> Optional[CrawlRequest]:
        absolute = absolute_url(self.origin, url)
        if not absolute:
            return None
        user_data = user_data or {}
        if user_data.get('label') == PRODUCT or is_product_url(absolute):
            return CrawlRequest.product(absolute)
        page = as_positive_integer(user_data.get('page'), None)
        return CrawlRequest.listing(absolute, page=page, listing_key=user_data.get('listingKey'))

    def seed_requests(self) -> List[CrawlRequest]:
        """
        Seed requests: start URLs, else the single URL, else a keyword search,
        else a category listing.
        """
        requests = []
        for source in self.start_urls:
            if isinstance(source, str):
                request = self._request_for(source)
            elif isinstance(source, dict):
                user_data = source.get('userData') if isinstance(source.get('userData'), dict) else {}
                request = self._request_for(source.get('url'), user_data)
            else:
                request = None
            if request is not None:
                requests.append(request)

        if not requests and self.url:
            request = self._request_for(self.url)
            if request is not None:
                requests.append(request)
        if not requests and self.keyword.strip():
            requests.append(CrawlRequest.listing(search_url(self.origin, self.keyword.strip())))
        if not requests and self.category.strip():
            requests.append(CrawlRequest.listing(category_url(self.origin, self.category)))

        if not requests:
            raise ConfigurationError('No valid start URLs supplied. Provide keyword/category/startUrls/url.')
        return requests

    def to_dict(self) -> dict:
        """Plain dict handed to the spider as its run_config argument."""
        return {
            'startUrls': self.start_urls,
            'url': self.url,
            'keyword': self.keyword,
            'category': self.category,
            'location': self.location,
            'collectDetails': self.collect_details,
            'results_wanted': self.results_wanted,
            'max_pages': self.max_pages,
            'dedupe': self.dedupe,
            'maxConcurrency': self.max_concurrency,
        }
