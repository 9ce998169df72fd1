"""Tests for iherb_scraper.urls."""

import pytest

from iherb_scraper.urls import (
    DEFAULT_ORIGIN,
    absolute_url,
    build_product_url,
    canonical_product_url,
    category_url,
    derive_listing_meta,
    is_product_url,
    normalise_origin,
    product_id_from_url,
    search_url,
)


@pytest.mark.parametrize("location,expected", [
    ("", DEFAULT_ORIGIN),
    (None, DEFAULT_ORIGIN),
    ("   ", DEFAULT_ORIGIN),
    ("https://kr.iherb.com/", "https://kr.iherb.com"),
    ("https://de.iherb.com/c/vitamins?p=2", "https://de.iherb.com"),
    ("HTTP://www.iherb.com//", "http://www.iherb.com"),
    ("de", "https://de.iherb.com"),
    ("KR", "https://kr.iherb.com"),
    ("uk.iherb.com/", "https://uk.iherb.com"),
    ("vitamins", DEFAULT_ORIGIN),
    ("not a host", DEFAULT_ORIGIN),
    ("https://", DEFAULT_ORIGIN),
])
def test_normalise_origin(location, expected):
    assert normalise_origin(location) == expected


def test_absolute_url_joins_relative_paths_only():
    assert absolute_url(DEFAULT_ORIGIN, "/pr/x/1") == "https://www.iherb.com/pr/x/1"
    assert absolute_url(DEFAULT_ORIGIN, "pr/x/1") == "https://www.iherb.com/pr/x/1"
    assert absolute_url(DEFAULT_ORIGIN, "https://kr.iherb.com/pr/x/1") == "https://kr.iherb.com/pr/x/1"
    assert absolute_url(DEFAULT_ORIGIN, "//cdn.iherb.com/a.jpg") == "https://cdn.iherb.com/a.jpg"
    assert absolute_url(DEFAULT_ORIGIN, "") is None
    assert absolute_url(DEFAULT_ORIGIN, None) is None


def test_build_product_url():
    assert build_product_url(DEFAULT_ORIGIN, "now-foods-vitamin-d", 10421) == \
        "https://www.iherb.com/pr/now-foods-vitamin-d/10421"
    assert build_product_url(DEFAULT_ORIGIN, None, "5") == "https://www.iherb.com/pr/product/5"
    assert build_product_url(DEFAULT_ORIGIN, "/slug/", "5") == "https://www.iherb.com/pr/slug/5"
    assert build_product_url(DEFAULT_ORIGIN, "https://www.iherb.com/pr/a/1", "1") == "https://www.iherb.com/pr/a/1"
    assert build_product_url(DEFAULT_ORIGIN, "slug", None) is None
    assert build_product_url(DEFAULT_ORIGIN, "slug", "") is None


def test_product_url_helpers():
    url = "https://www.iherb.com/pr/california-gold-nutrition-gold-c/61864?rec=home#reviews"
    assert is_product_url(url)
    assert not is_product_url("https://www.iherb.com/c/vitamins")
    assert not is_product_url(None)
    assert canonical_product_url(url, DEFAULT_ORIGIN) == \
        "https://www.iherb.com/pr/california-gold-nutrition-gold-c/61864"
    assert product_id_from_url(url) == "61864"
    assert product_id_from_url("https://www.iherb.com/pr/slug/CGN-01065") is None


def test_derive_listing_meta():
    assert derive_listing_meta("https://www.iherb.com/c/vitamins?p=3") == ("https://www.iherb.com/c/vitamins", 3)
    assert derive_listing_meta("https://www.iherb.com/c/vitamins?page=2&p=5") == ("https://www.iherb.com/c/vitamins", 2)
    assert derive_listing_meta("https://www.iherb.com/search?kw=zinc") == ("https://www.iherb.com/search", 1)
    assert derive_listing_meta("not a url") == ("not a url", 1)


def test_seed_urls():
    assert search_url(DEFAULT_ORIGIN, "vitamin c") == "https://www.iherb.com/search?kw=vitamin+c"
    assert category_url("https://de.iherb.com", "/vitamins") == "https://de.iherb.com/c/vitamins"
