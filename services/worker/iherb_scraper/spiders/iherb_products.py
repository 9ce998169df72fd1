"""
iHerb product spider.

Reads the run input (start URLs, keyword, category, result budget, ...),
walks listing pages with pagination and either follows every product to its
detail page or saves listing-level records directly.
"""
import json

import scrapy
from scrapy.exceptions import CloseSpider
from scrapy.utils.project import get_project_settings

from iherb_scraper.config import RunConfig
from iherb_scraper.crawl import CrawlRequest, LISTING, PRODUCT
from iherb_scraper.listing import find_listing_candidates
from iherb_scraper.locators import (
    dom_product,
    embedded_product,
    linked_data_product,
    load_embedded_payload,
    looks_like_named_node,
    page_props,
)
from iherb_scraper.merger import build_listing_item, build_product
from iherb_scraper.page import Page
from iherb_scraper.pagination import Paginator
from iherb_scraper.state import RunState
from iherb_scraper.urls import derive_listing_meta


class IherbProductsSpider(scrapy.Spider):
    """
    Config-driven iHerb spider.
    Run input keys (see RunConfig):
    - startUrls / url / keyword / category: where to start
    - location: market token, hostname or origin URL
    - collectDetails: follow product pages (default) or save listing data
    - results_wanted: stop after this many saved records (null = no limit)
    - max_pages: listing pages per sequence
    - dedupe: skip products already saved in this run
    """
    name = 'iherb_products'

    def __init__(self, run_config=None, *args, **kwargs):
        super(IherbProductsSpider, self).__init__(*args, **kwargs)
        if run_config is None:
            settings = get_project_settings()
            run_config = settings.get('RUN_CONFIG', {})
        if isinstance(run_config, str):
            # scrapy crawl iherb_products -a run_config='{"keyword": "..."}'
            run_config = json.loads(run_config)
        if isinstance(run_config, RunConfig):
            self.config = run_config
        else:
            self.config = RunConfig.from_dict(run_config)

        self.origin = self.config.origin
        self.state = RunState(results_wanted=self.config.results_wanted, dedupe=self.config.dedupe)
        self.paginator = Paginator(self.state, max_pages=self.config.max_pages, origin=self.origin)
        # Raises ConfigurationError before anything is crawled
        self.seeds = self.config.seed_requests()

        self.logger.info(
            f'Spider initialized with {len(self.seeds)} seed request(s), origin: {self.origin}, '
            f'details: {self.config.collect_details}, target: {self.config.results_wanted}'
        )

    def _inc_stat(self, key, count=1):
        crawler = getattr(self, 'crawler', None)
        if crawler is not None and crawler.stats is not None:
            crawler.stats.inc_value(key, count)

    def to_request(self, crawl_request):
        """Turn a CrawlRequest into a Scrapy request routed by its label."""
        callback = self.parse_product if crawl_request.label == PRODUCT else self.parse_listing
        return scrapy.Request(
            url=crawl_request.url,
            callback=callback,
            errback=self.handle_error,
            meta=crawl_request.meta,
        )

    def start_requests(self):
        for seed in self.seeds:
            self.logger.info(f'Starting crawl from: {seed.url} ({seed.label})')
            yield self.to_request(seed)

    def _record_saved(self, item):
        self.state.record_saved()
        self._inc_stat('products/saved')
        self.logger.info(f'Saved product {self.state.progress_text()}: {item.get("url")}')

    def _stop_if_needed(self):
        if self.state.should_stop():
            self.logger.info('Result limit reached, stopping crawler...')
            raise CloseSpider('results_wanted_reached')

    def parse_listing(self, response):
        """
        Listing page: collect product candidates, then enqueue detail pages
        or save listing records, then follow pagination.
        """
        if self.state.should_stop():
            return
        page = Page.from_response(response)
        payload = load_embedded_payload(page)
        props = page_props(payload)

        # Listing URLs sometimes redirect straight to a product page
        if looks_like_named_node(props.get('product')):
            yield from self._handle_product(response, page, payload)
            return

        candidates, source = find_listing_candidates(page, payload, self.origin)
        if not candidates:
            self.logger.warning(f'No products found on listing page {response.url}')
            return
        self.logger.info(f'Found {len(candidates)} products on {response.url} (source: {source})')

        for candidate in candidates:
            if self.state.should_stop():
                break
            key = str(candidate.get('external_id') or candidate['url'])
            if self.state.should_skip(key):
                self.logger.debug(f'Skipping duplicate product {key}')
                self._inc_stat('products/duplicates')
                continue

            if self.config.collect_details:
                yield self.to_request(CrawlRequest.product(candidate['url']))
                continue

            item = build_listing_item(candidate)
            if item is None or not self.state.claim(key):
                self._inc_stat('products/duplicates')
                continue
            self._record_saved(item)
            yield item

        self._stop_if_needed()

        listing_key, url_page = derive_listing_meta(response.url)
        listing_key = response.meta.get('listing_key') or listing_key
        current_page = response.meta.get('page') or url_page
        next_request = self.paginator.next_request(response.url, current_page, listing_key, props)
        if next_request is not None:
            self._inc_stat('listing/pages_enqueued')
            self.logger.info(f'Following pagination to page {next_request.page}: {next_request.url}')
            yield self.to_request(next_request)

    def parse_product(self, response):
        """Product detail page."""
        page = Page.from_response(response)
        payload = load_embedded_payload(page)
        yield from self._handle_product(response, page, payload)

    def _handle_product(self, response, page, payload):
        if self.state.should_stop():
            return

        partials = [embedded_product(payload), linked_data_product(page)]
        item = build_product(response.url, partials)
        if item is None:
            # Markup is only consulted when the structured sources lack a title
            item = build_product(response.url, partials + [dom_product(page)])
        if item is None:
            self.logger.warning(f'No title found for {response.url}, skipping')
            self._inc_stat('products/invalid')
            return

        key = str(item.get('external_id') or item['url'])
        if not self.state.claim(key):
            self.logger.debug(f'Skipping duplicate product {key}')
            self._inc_stat('products/duplicates')
            return

        self._record_saved(item)
        yield item
        self._stop_if_needed()

    def handle_error(self, failure):
        """Log failed requests; retries already happened in the middleware."""
        request = failure.request
        label = request.meta.get('label', LISTING)
        self.logger.warning(f'Failed to fetch {label} page {request.url}: {failure.value}')
        self._inc_stat(f'errors/{label.lower()}')

    def closed(self, reason):
        """Report the run outcome; an empty run is reported but not an error."""
        saved = self.state.saved_count
        if saved == 0:
            self.logger.warning(f'Run finished ({reason}) without saving any products')
        else:
            self.logger.info(f'Completed ({reason}). Saved {saved} products.')
