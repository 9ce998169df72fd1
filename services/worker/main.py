"""
Entry point: runs one iHerb crawl from a JSON input document.

    python services/worker/main.py input.json

Without an argument the input is read from IHERB_INPUT (file path) or
IHERB_INPUT_JSON (inline JSON). Records go to OUTPUT_PATH (JSON lines) and,
when DATABASE_URL is set, to Postgres.
"""
import os
import sys

from dotenv import load_dotenv
from scrapy.crawler import CrawlerProcess
from scrapy.utils.project import get_project_settings

# Add the worker directory to Python path so Scrapy can find the project
worker_dir = os.path.dirname(os.path.abspath(__file__))
if worker_dir not in sys.path:
    sys.path.insert(0, worker_dir)

from iherb_scraper.config import ConfigurationError, RunConfig
from iherb_scraper.spiders.iherb_products import IherbProductsSpider

# Load environment variables
load_dotenv()

OUTPUT_PATH = os.getenv('OUTPUT_PATH', 'data/products.jsonl')
DATABASE_URL = os.getenv('DATABASE_URL')
DATASET_ID = os.getenv('DATASET_ID', 'iherb')

# Exit codes
EXIT_OK = 0
EXIT_CONFIG_ERROR = 2


def build_settings(config):
    """Project settings adjusted for one run."""
    os.environ.setdefault('SCRAPY_SETTINGS_MODULE', 'iherb_scraper.settings')
    settings = get_project_settings()
    settings.set('CONCURRENT_REQUESTS', config.max_concurrency)
    settings.set('CONCURRENT_REQUESTS_PER_DOMAIN', config.max_concurrency)
    settings.set('FEEDS', {
        OUTPUT_PATH: {'format': 'jsonlines', 'encoding': 'utf8', 'overwrite': True},
    })
    settings.set('RUN_CONFIG', config.to_dict())
    settings.set('DATASET_ID', DATASET_ID)
    if DATABASE_URL:
        settings.set('DATABASE_URL', DATABASE_URL)
    return settings


def run_crawl(config):
    """Run the spider to completion and return the number of saved records."""
    process = CrawlerProcess(build_settings(config))
    crawler = process.create_crawler(IherbProductsSpider)
    process.crawl(crawler, run_config=config.to_dict())
    process.start()
    return crawler.stats.get_value('products/saved', 0) if crawler.stats else 0


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    input_path = argv[0] if argv else None

    try:
        config = RunConfig.from_env(input_path)
        seeds = config.seed_requests()
    except ConfigurationError as e:
        print(f'Configuration error: {e}')
        return EXIT_CONFIG_ERROR

    print(f'Using origin: {config.origin}')
    print(f'Seeded {len(seeds)} initial request{"" if len(seeds) == 1 else "s"}.')

    saved = run_crawl(config)
    if saved == 0:
        # Reported, but an empty run is not a process failure
        print('Run finished without saving any products')
    else:
        print(f'Completed. Saved {saved} products to {OUTPUT_PATH}.')
    return EXIT_OK


if __name__ == '__main__':
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print('\nCrawl stopped by user')
        sys.exit(0)
