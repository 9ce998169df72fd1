"""Tests for the Postgres upsert pipeline (no database needed)."""

import hashlib
from unittest.mock import MagicMock

import psycopg2
import pytest
from scrapy.exceptions import NotConfigured
from scrapy.utils.test import get_crawler

from iherb_scraper.items import ListingItem, ProductItem
from iherb_scraper.pipelines import UPSERT_SQL, PostgresPipeline, item_row

URL = "https://www.iherb.com/pr/gold-c/61864"


def product_item():
    item = ProductItem()
    item["url"] = URL
    item["source"] = "www.iherb.com"
    item["external_id"] = "CGN-01065"
    item["title"] = "Gold C"
    item["images"] = []
    item["categories"] = []
    return item


def test_from_crawler_requires_database_url(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    with pytest.raises(NotConfigured):
        PostgresPipeline.from_crawler(get_crawler())


def test_from_crawler_reads_settings(monkeypatch):
    monkeypatch.delenv("DATASET_ID", raising=False)
    crawler = get_crawler(settings_dict={"DATABASE_URL": "postgresql://localhost/scraper"})
    pipeline = PostgresPipeline.from_crawler(crawler)
    assert pipeline.database_url == "postgresql://localhost/scraper"
    assert pipeline.dataset_id == "iherb"


def test_item_row():
    row = item_row(product_item(), "iherb")
    dataset_id, entity_type, source, url, url_hash, data = row
    assert dataset_id == "iherb"
    assert entity_type == "product.v1"
    assert source == "www.iherb.com"
    assert url == URL
    assert url_hash == hashlib.sha256(URL.encode()).hexdigest()
    assert data.adapted == {"external_id": "CGN-01065", "title": "Gold C", "images": [], "categories": []}


def test_item_row_for_listing_items():
    item = ListingItem(url="https://kr.iherb.com/pr/zinc/10", title="Zinc")
    _, entity_type, source, _, _, data = item_row(item, "iherb")
    assert entity_type == "listing.v1"
    assert source == "kr.iherb.com"
    assert data.adapted == {"title": "Zinc"}


def test_process_item_upserts_and_commits():
    pipeline = PostgresPipeline("postgresql://localhost/scraper", "iherb")
    pipeline.conn = MagicMock()
    cursor = pipeline.conn.cursor.return_value.__enter__.return_value

    item = product_item()
    assert pipeline.process_item(item) is item
    sql, params = cursor.execute.call_args[0]
    assert sql == UPSERT_SQL
    assert params[3] == URL
    pipeline.conn.commit.assert_called_once()
    assert pipeline.items_count == 1


def test_process_item_rolls_back_and_raises():
    pipeline = PostgresPipeline("postgresql://localhost/scraper", "iherb")
    pipeline.conn = MagicMock()
    cursor = pipeline.conn.cursor.return_value.__enter__.return_value
    cursor.execute.side_effect = psycopg2.Error("duplicate key")

    with pytest.raises(psycopg2.Error):
        pipeline.process_item(product_item())
    pipeline.conn.rollback.assert_called_once()
    pipeline.conn.commit.assert_not_called()
    assert pipeline.items_count == 0


def test_item_without_url_is_passed_through():
    pipeline = PostgresPipeline("postgresql://localhost/scraper", "iherb")
    pipeline.conn = MagicMock()
    item = ProductItem(title="No url")
    assert pipeline.process_item(item) is item
    pipeline.conn.cursor.assert_not_called()


def test_close_spider_closes_connection():
    pipeline = PostgresPipeline("postgresql://localhost/scraper", "iherb")
    conn = MagicMock()
    pipeline.conn = conn
    pipeline.close_spider()
    conn.close.assert_called_once()
    assert pipeline.conn is None
