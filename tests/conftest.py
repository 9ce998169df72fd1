"""Shared fixtures for the iherb_scraper test suite."""

import json
import sys
from pathlib import Path

import pytest
from scrapy.http import HtmlResponse, Request

# Ensure services/worker is on the path so "import iherb_scraper" works from the repo root.
repo_root = Path(__file__).resolve().parents[1]
worker_path = repo_root / "services" / "worker"
if str(worker_path) not in sys.path:
    sys.path.insert(0, str(worker_path))

ORIGIN = "https://www.iherb.com"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def next_data_script(payload):
    return f'<script id="__NEXT_DATA__" type="application/json">{json.dumps(payload)}</script>'


def ld_json_script(data):
    text = data if isinstance(data, str) else json.dumps(data)
    return f'<script type="application/ld+json">{text}</script>'


def html_page(*parts, title="iHerb"):
    return f"<html><head><title>{title}</title></head><body>{''.join(parts)}</body></html>"


def make_response(url, html, meta=None, status=200):
    request = Request(url, meta=meta or {})
    return HtmlResponse(url=url, body=html.encode("utf-8"), encoding="utf-8", request=request, status=status)


def listing_payload(products, pagination=None):
    page_props = {"products": products}
    if pagination is not None:
        page_props["pagination"] = pagination
    return {"props": {"pageProps": page_props}, "page": "/c/[...slug]"}


def iherb_product(part_number, slug, name, price=9.99, currency="USD"):
    return {
        "partNumber": part_number,
        "slug": slug,
        "displayName": name,
        "brand": {"name": "California Gold Nutrition"},
        "pricing": {"price": price, "currency": currency},
        "rating": 4.7,
        "numberOfReviews": 1520,
        "images": [{"url": f"https://cloudinary.images-iherb.com/{part_number}.jpg"}],
    }


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def product_payload():
    """Next.js payload of a product detail page."""
    return {
        "props": {
            "pageProps": {
                "breadcrumbs": [{"id": 1855, "name": "Supplements"}, {"id": 1856, "name": "Vitamins"}],
                "product": {
                    "id": 61864,
                    "partNumber": "CGN-01065",
                    "displayName": "California Gold Nutrition, Gold C, Vitamin C, 1,000 mg, 60 Veggie Capsules",
                    "brand": {"name": "California Gold Nutrition"},
                    "pricing": {"price": 6.5, "currency": "usd"},
                    "rating": 4.8,
                    "numberOfReviews": 352101,
                    "inventory": {"availability": "http://schema.org/InStock"},
                    "overview": "<ul><li>Vitamin C</li><li>Immune support</li></ul>",
                    "images": [
                        {"url": "https://cloudinary.images-iherb.com/cgn01065.jpg"},
                        {"url": "/images/cgn01065-back.jpg"},
                    ],
                    "categories": [{"name": "Supplements"}, {"name": "Vitamin C"}],
                },
            }
        }
    }


@pytest.fixture
def product_ld_json():
    """schema.org Product block for the same product."""
    return {
        "@context": "https://schema.org",
        "@graph": [
            {"@type": "BreadcrumbList", "itemListElement": []},
            {
                "@type": "Product",
                "name": "Gold C Vitamin C 1000 mg",
                "sku": "CGN-01065",
                "brand": {"@type": "Brand", "name": "California Gold Nutrition"},
                "image": ["https://cloudinary.images-iherb.com/cgn01065.jpg", "https://cloudinary.images-iherb.com/cgn01065-side.jpg"],
                "description": "Vitamin C for immune support.",
                "category": "Vitamins",
                "offers": [{"@type": "Offer", "price": "6.50", "priceCurrency": "USD",
                            "availability": "https://schema.org/InStock"}],
                "aggregateRating": {"@type": "AggregateRating", "ratingValue": "4.8", "reviewCount": "352101"},
            },
        ],
    }
