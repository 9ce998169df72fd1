"""
Crawl requests exchanged between the extraction core and the spider.
"""
from dataclasses import dataclass
from typing import Optional

from iherb_scraper.urls import derive_listing_meta

LISTING = 'LISTING'
PRODUCT = 'PRODUCT'
LABELS = (LISTING, PRODUCT)


@dataclass(frozen=True)
class CrawlRequest:
    url: str
    label: str
    page: int = 1
    listing_key: Optional[str] = None

    @classmethod
    def listing(cls, url: str, page: Optional[int] = None, listing_key: Optional[str] = None) -> 'CrawlRequest':
        """Listing request; page and key default to what the URL says."""
        derived_key, derived_page = derive_listing_meta(url)
        return cls(
            url=url,
            label=LISTING,
            page=page if page is not None else derived_page,
            listing_key=listing_key or derived_key,
        )

    @classmethod
    def product(cls, url: str) -> 'CrawlRequest':
        return cls(url=url, label=PRODUCT)

    @property
    def meta(self) -> dict:
        """Request meta for Scrapy."""
        meta = {'label': self.label, 'page': self.page}
        if self.listing_key:
            meta['listing_key'] = self.listing_key
        return meta
