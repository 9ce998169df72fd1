"""
Scrapy settings for iherb_scraper project.
"""
import os

BOT_NAME = 'iherb_scraper'

SPIDER_MODULES = ['iherb_scraper.spiders']
NEWSPIDER_MODULE = 'iherb_scraper.spiders'

ROBOTSTXT_OBEY = False

# Configure pipelines (enabled only when DATABASE_URL is set)
ITEM_PIPELINES = {
    'iherb_scraper.pipelines.PostgresPipeline': 300,
}

DOWNLOADER_MIDDLEWARES = {
    'iherb_scraper.middlewares.ChallengePageMiddleware': 600,
}

# Dataset written as JSON lines; main.py overrides the path from OUTPUT_PATH
FEEDS = {
    os.environ.get('OUTPUT_PATH', 'data/products.jsonl'): {
        'format': 'jsonlines',
        'encoding': 'utf8',
        'overwrite': True,
    },
}

# Concurrency; maxConcurrency from the run input overrides it
CONCURRENT_REQUESTS = 8
CONCURRENT_REQUESTS_PER_DOMAIN = 8
DOWNLOAD_DELAY = 0.5
RANDOMIZE_DOWNLOAD_DELAY = True
DOWNLOAD_TIMEOUT = 45

AUTOTHROTTLE_ENABLED = True
AUTOTHROTTLE_START_DELAY = 1.0
AUTOTHROTTLE_MAX_DELAY = 10.0
AUTOTHROTTLE_TARGET_CONCURRENCY = 4.0

# Retry settings for temporary errors and bot challenges
RETRY_ENABLED = True
RETRY_TIMES = 3
RETRY_HTTP_CODES = [403, 408, 429, 500, 502, 503, 504]
RETRY_PRIORITY_ADJUST = -1

# Logging
LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
