"""
Scrapy pipelines for persisting items.
"""
import hashlib
import logging
import os
from urllib.parse import urlparse

import psycopg2
from psycopg2.extras import Json
from scrapy.exceptions import NotConfigured

from iherb_scraper.items import ENTITY_TYPES

logger = logging.getLogger(__name__)

# Columns stored outside the JSONB data document
METADATA_FIELDS = ('url', 'source')

UPSERT_SQL = """
    INSERT INTO items (dataset_id, entity_type, source, url, hash, data)
    VALUES (%s, %s, %s, %s, %s, %s)
    ON CONFLICT (dataset_id, url)
    DO UPDATE SET
        observed_at = now(),
        data = EXCLUDED.data,
        hash = EXCLUDED.hash
"""


def item_row(item, dataset_id):
    """Build the upsert parameters for one item."""
    url = item.get('url')
    data = {key: value for key, value in item.items() if key not in METADATA_FIELDS}
    return (
        dataset_id,
        ENTITY_TYPES.get(type(item), 'product.v1'),
        item.get('source') or urlparse(url).netloc,
        url,
        hashlib.sha256(url.encode()).hexdigest(),
        Json(data),
    )


class PostgresPipeline:
    """
    Pipeline that upserts items into Postgres.
    Uses INSERT ... ON CONFLICT (dataset_id, url) DO UPDATE.
    Disabled when DATABASE_URL is not configured.
    """

    def __init__(self, database_url, dataset_id=None):
        self.database_url = database_url
        self.dataset_id = dataset_id
        self.conn = None
        self.items_count = 0

    @classmethod
    def from_crawler(cls, crawler):
        settings = crawler.settings
        database_url = settings.get('DATABASE_URL') or os.environ.get('DATABASE_URL')
        if not database_url:
            raise NotConfigured('DATABASE_URL not set')
        dataset_id = settings.get('DATASET_ID') or os.environ.get('DATASET_ID') or 'iherb'
        return cls(database_url, dataset_id)

    def open_spider(self, spider=None):
        """Open database connection when spider starts."""
        logger.info(f'PostgresPipeline: Connecting to database (dataset: {self.dataset_id})')
        self.conn = psycopg2.connect(self.database_url)

    def close_spider(self, spider=None):
        """Close database connection when spider finishes."""
        if self.conn:
            self.conn.close()
            self.conn = None
        logger.info(f'PostgresPipeline: Processed {self.items_count} items')

    def process_item(self, item, spider=None):
        """Upsert the item; errors roll back and propagate to Scrapy."""
        if not item.get('url'):
            logger.warning('Item missing URL, skipping database write')
            return item
        if self.conn is None:
            self.open_spider(spider)

        try:
            with self.conn.cursor() as cur:
                cur.execute(UPSERT_SQL, item_row(item, self.dataset_id))
            self.conn.commit()
        except psycopg2.Error as e:
            # Rollback so later items can still be written
            self.conn.rollback()
            logger.error(f"Error inserting item {item.get('url')}: {e}")
            raise

        self.items_count += 1
        if self.items_count % 10 == 0:
            logger.info(f'PostgresPipeline: Processed {self.items_count} items so far')
        return item
