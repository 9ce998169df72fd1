"""
Listing pool collector.

Listing payloads keep their product arrays in different places depending on
the page template (category grid, search results, ...). Every known location
is probed in a fixed order and the items are pooled by product URL.
"""
import logging
from typing import Any, Dict, List, Tuple

from iherb_scraper.fields import resolve_path
from iherb_scraper.locators import (
    dom_listing,
    embedded_listing,
    linked_data_listing,
    listing_candidate,
    page_props,
)
from iherb_scraper.page import Page

logger = logging.getLogger(__name__)

LISTING_POOL_PATHS = (
    'products',
    'productsMeta.products',
    'searchResults.products',
    'search.products',
    'category.products',
    'grid.products',
    'productGrid.products',
    'data.products',
    'items',
    'results',
)


def collect_listing_pool(props: Any, origin: str) -> List[Dict[str, Any]]:
    """
    Pool every qualifying item from the known collection locations.

    The first occurrence of a product URL wins as a whole; later occurrences
    are ignored even when they carry extra fields, because each one is
    already a complete candidate.
    """
    if not isinstance(props, dict):
        return []
    pool: Dict[str, Dict[str, Any]] = {}
    for path in LISTING_POOL_PATHS:
        collection = resolve_path(props, path)
        if not isinstance(collection, list):
            continue
        for element in collection:
            candidate = listing_candidate(element, origin)
            if candidate is None or candidate['url'] in pool:
                continue
            pool[candidate['url']] = candidate
    return list(pool.values())


def find_listing_candidates(page: Page, payload: Any, origin: str) -> Tuple[List[Dict[str, Any]], str]:
    """
    Run the listing fallback chain: known pool locations, embedded deep
    search, linked data, DOM. Returns (candidates, source name).
    """
    candidates = collect_listing_pool(page_props(payload), origin)
    if candidates:
        return candidates, 'pool'
    candidates = embedded_listing(payload, origin)
    if candidates:
        return candidates, 'embedded'
    candidates = linked_data_listing(page, origin)
    if candidates:
        return candidates, 'linked-data'
    candidates = dom_listing(page, origin)
    if candidates:
        return candidates, 'dom'
    return [], 'none'
