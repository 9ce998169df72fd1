"""
Field merger: combines partial records from several locators into one item.

Sources are given in priority order (embedded payload, linked data, DOM).
Scalar fields keep the first non-empty value; array fields are the
order-preserving union of every source.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional
from urllib.parse import urljoin, urlparse

from iherb_scraper.fields import (
    ARRAY_FIELDS,
    clean_text,
    collect_strings,
    normalise_availability,
    normalise_currency,
    parse_count,
    parse_decimal,
    parse_rating,
    strip_html,
    unique,
)
from iherb_scraper.items import ListingItem, ProductItem
from iherb_scraper.urls import SCHEME_RE


def _trim(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return clean_text(value)
    return value.strip() or None


SCALAR_COERCERS = {
    'external_id': clean_text,
    'title': clean_text,
    'brand': clean_text,
    'price': parse_decimal,
    'currency': normalise_currency,
    'rating': parse_rating,
    'review_count': parse_count,
    'availability': normalise_availability,
    'description_html': _trim,
    'description_text': clean_text,
}

LISTING_COERCERS = {
    'external_id': clean_text,
    'slug': clean_text,
    'title': clean_text,
    'brand': clean_text,
    'price': parse_decimal,
    'currency': normalise_currency,
    'rating': parse_rating,
    'review_count': parse_count,
    'image': clean_text,
}


def _absolute_image(value: str, base_url: Optional[str]) -> Optional[str]:
    url = urljoin(base_url, value) if base_url else value
    if url.startswith('//'):
        url = f'https:{url}'
    return url if SCHEME_RE.match(url) else None


def merge_fields(partials: Iterable[Dict[str, Any]], base_url: Optional[str] = None) -> Dict[str, Any]:
    """
    Merge partial records in priority order into canonical field values.

    Pure function: merging again with an extra empty partial yields the
    same result.
    """
    merged: Dict[str, Any] = {}
    arrays: Dict[str, list] = {field: [] for field in ARRAY_FIELDS}

    for partial in partials:
        if not isinstance(partial, dict):
            continue
        for field, coercer in SCALAR_COERCERS.items():
            if field in merged:
                continue
            value = coercer(partial.get(field))
            if value is not None:
                merged[field] = value
        for field in ARRAY_FIELDS:
            arrays[field].extend(collect_strings(partial.get(field)))

    images = (_absolute_image(img, base_url) for img in arrays['images'])
    merged['images'] = unique(img for img in images if img)
    merged['categories'] = unique(arrays['categories'])

    if 'description_text' not in merged and 'description_html' in merged:
        text = strip_html(merged['description_html'])
        if text:
            merged['description_text'] = text
    return merged


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def build_product(url: str, partials: Iterable[Dict[str, Any]], source: Optional[str] = None,
                  scraped_at: Optional[str] = None) -> Optional[ProductItem]:
    """
    Merge partials into a ProductItem for ``url``.

    Returns None when no source supplied a title; such records must not be
    persisted.
    """
    fields = merge_fields(partials, base_url=url)
    if not fields.get('title'):
        return None

    item = ProductItem()
    item['url'] = url
    for field in SCALAR_COERCERS:
        item[field] = fields.get(field)
    item['images'] = fields['images']
    item['categories'] = fields['categories']
    item['scraped_at'] = scraped_at or utc_now_iso()
    item['source'] = source or urlparse(url).netloc
    return item


def build_listing_item(candidate: Dict[str, Any], source: Optional[str] = None,
                       scraped_at: Optional[str] = None) -> Optional[ListingItem]:
    """Project a listing candidate into a ListingItem (None without a URL)."""
    url = candidate.get('url') if isinstance(candidate, dict) else None
    if not url:
        return None
    item = ListingItem()
    item['url'] = url
    for field, coercer in LISTING_COERCERS.items():
        item[field] = coercer(candidate.get(field))
    item['scraped_at'] = scraped_at or utc_now_iso()
    item['source'] = source or urlparse(url).netloc
    return item
