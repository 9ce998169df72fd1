"""Tests for the listing pool and the listing fallback chain."""

from conftest import (
    ORIGIN,
    html_page,
    iherb_product,
    ld_json_script,
    listing_payload,
    make_response,
    next_data_script,
)

from iherb_scraper.listing import collect_listing_pool, find_listing_candidates
from iherb_scraper.locators import load_embedded_payload, page_props
from iherb_scraper.page import Page
from iherb_scraper.spiders.iherb_products import IherbProductsSpider

LISTING_URL = "https://www.iherb.com/c/vitamins"


def candidates_for(*parts):
    page = Page.from_html(LISTING_URL, html_page(*parts))
    return find_listing_candidates(page, load_embedded_payload(page), ORIGIN)


def test_pool_keeps_first_occurrence_per_url():
    props = {
        "products": [{"url": "/pr/x/1", "name": "X"}],
        "searchResults": {"products": [{"url": "/pr/x/1", "name": "X", "price": "5.00"}]},
    }
    pool = collect_listing_pool(props, ORIGIN)
    assert len(pool) == 1
    assert pool[0]["url"] == "https://www.iherb.com/pr/x/1"
    assert "price" not in pool[0]


def test_pool_builds_urls_from_ids_and_slugs():
    payload = listing_payload([
        iherb_product("CGN-01065", "california-gold-nutrition-gold-c", "Gold C"),
        iherb_product("NOW-00373", "now-foods-vitamin-d3", "Vitamin D-3", price=7.0),
        {"displayName": "No id or url"},
    ])
    pool = collect_listing_pool(page_props(payload), ORIGIN)
    assert [c["url"] for c in pool] == [
        "https://www.iherb.com/pr/california-gold-nutrition-gold-c/CGN-01065",
        "https://www.iherb.com/pr/now-foods-vitamin-d3/NOW-00373",
    ]
    first = pool[0]
    assert first["external_id"] == "CGN-01065"
    assert first["title"] == "Gold C"
    assert first["brand"] == "California Gold Nutrition"
    assert first["price"] == 9.99
    assert first["review_count"] == 1520
    assert first["image"] == "https://cloudinary.images-iherb.com/CGN-01065.jpg"


def test_pool_ignores_non_product_urls():
    props = {"items": [{"url": "/c/vitamins", "name": "Vitamins"}], "results": "not a list"}
    assert collect_listing_pool(props, ORIGIN) == []
    assert collect_listing_pool(None, ORIGIN) == []


def test_pool_does_not_build_product_urls_for_other_links():
    props = {
        "items": [
            {"id": 12, "name": "Vitamins", "url": "/c/vitamins"},
            {"brandCode": "CGN", "id": 7, "name": "California Gold Nutrition", "href": "/brands/cgn"},
        ],
        "results": [{"id": 61864, "name": "Gold C", "slug": "gold-c"}],
    }
    pool = collect_listing_pool(props, ORIGIN)
    assert [c["url"] for c in pool] == ["https://www.iherb.com/pr/gold-c/61864"]


def test_listing_mode_skips_category_facets():
    payload = {"props": {"pageProps": {"items": [{"id": 12, "name": "Vitamins", "url": "/c/vitamins"}]}}}
    response = make_response(LISTING_URL, html_page(next_data_script(payload)), meta={"page": 1})
    spider = IherbProductsSpider(run_config={"startUrls": [LISTING_URL], "collectDetails": False})
    assert list(spider.parse_listing(response)) == []


def test_chain_prefers_pool():
    payload = listing_payload([iherb_product("CGN-01065", "gold-c", "Gold C")])
    candidates, source = candidates_for(next_data_script(payload))
    assert source == "pool"
    assert len(candidates) == 1


def test_chain_falls_back_to_embedded_deep_search():
    payload = {"props": {"pageProps": {"widgets": [{"tiles": [{"url": "/pr/zinc/10", "name": "Zinc"}]}]}}}
    candidates, source = candidates_for(next_data_script(payload))
    assert source == "embedded"
    assert candidates[0]["url"] == "https://www.iherb.com/pr/zinc/10"


def test_chain_falls_back_to_linked_data():
    item_list = {
        "@type": "ItemList",
        "itemListElement": [
            {"@type": "ListItem", "item": {"@type": "Product", "name": "Zinc", "url": "/pr/zinc/10"}},
        ],
    }
    candidates, source = candidates_for(ld_json_script(item_list))
    assert source == "linked-data"
    assert candidates[0]["title"] == "Zinc"


def test_chain_falls_back_to_dom():
    html = '<div class="product-cell"><a href="/pr/zinc/10" title="Zinc">Zinc</a></div>'
    candidates, source = candidates_for(html)
    assert source == "dom"
    assert candidates[0]["external_id"] == "10"


def test_chain_with_nothing_found():
    assert candidates_for("<p>No results</p>") == ([], "none")
