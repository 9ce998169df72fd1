"""
Downloader middleware that turns bot-challenge pages into retries.
"""
import logging

from scrapy.downloadermiddlewares.retry import get_retry_request
from scrapy.exceptions import IgnoreRequest
from scrapy.http import TextResponse

logger = logging.getLogger(__name__)

CHALLENGE_TITLE_MARKERS = ('just a moment', 'please wait', 'attention required')
CHALLENGE_BODY_MARKERS = ('cf-chl', 'cloudflare', 'bot detection', 'verify you are human')
BODY_SAMPLE_CHARS = 4000


def looks_like_challenge_page(response) -> bool:
    """True for interstitial pages served instead of the requested content."""
    if not isinstance(response, TextResponse):
        return False
    title = (response.css('title::text').get() or '').strip().lower()
    if any(marker in title for marker in CHALLENGE_TITLE_MARKERS):
        return True
    # Visible text only; script URLs often mention CDN hosts
    texts = response.xpath(
        '//body//text()[not(ancestor::script) and not(ancestor::style) and not(ancestor::noscript)]'
    ).getall()
    sample = ' '.join(t.strip() for t in texts if t.strip())[:BODY_SAMPLE_CHARS].lower()
    if any(marker in sample for marker in CHALLENGE_BODY_MARKERS):
        return True
    return response.css('#challenge-form, #cf-challenge-running').get() is not None


class ChallengePageMiddleware:
    """
    Retry requests answered with a challenge page through Scrapy's retry
    machinery; give up with IgnoreRequest once retries are exhausted.
    """

    def __init__(self, stats=None):
        self.stats = stats

    @classmethod
    def from_crawler(cls, crawler):
        return cls(crawler.stats)

    def process_response(self, request, response, spider):
        if not looks_like_challenge_page(response):
            return response
        spider.logger.warning(f'Bot challenge detected on {response.url}')
        if self.stats is not None:
            self.stats.inc_value('challenge/detected')
        retry = get_retry_request(request, spider=spider, reason='bot_challenge')
        if retry is not None:
            return retry
        raise IgnoreRequest(f'Encountered bot challenge on {request.url}')
