"""
Scrapy items for the persisted record shapes.
"""
import scrapy


class ProductItem(scrapy.Item):
    """Product detail record (entity_type: product.v1)."""
    url = scrapy.Field()  # Required
    external_id = scrapy.Field()  # Site product id, optional
    title = scrapy.Field()  # Required
    brand = scrapy.Field()
    price = scrapy.Field()  # Decimal as string
    currency = scrapy.Field()  # Upper-cased 3-letter code
    rating = scrapy.Field()  # 0..5
    review_count = scrapy.Field()
    availability = scrapy.Field()  # Short status token, e.g. "InStock"
    description_html = scrapy.Field()
    description_text = scrapy.Field()
    images = scrapy.Field()  # List of absolute URLs
    categories = scrapy.Field()  # List of strings
    scraped_at = scrapy.Field()  # ISO timestamp
    source = scrapy.Field()  # Host the record was scraped from


class ListingItem(scrapy.Item):
    """Listing-level record, persisted when product details are not collected (listing.v1)."""
    url = scrapy.Field()  # Required
    external_id = scrapy.Field()
    slug = scrapy.Field()
    title = scrapy.Field()
    brand = scrapy.Field()
    price = scrapy.Field()
    currency = scrapy.Field()
    rating = scrapy.Field()
    review_count = scrapy.Field()
    image = scrapy.Field()
    scraped_at = scrapy.Field()
    source = scrapy.Field()


ENTITY_TYPES = {
    ProductItem: 'product.v1',
    ListingItem: 'listing.v1',
}
