"""
URL helpers: origin normalisation, product/listing URL construction.
"""
import re
from typing import Optional, Tuple
from urllib.parse import quote_plus, urlsplit, urlunsplit, parse_qs

DEFAULT_SITE = 'iherb.com'
DEFAULT_ORIGIN = f'https://www.{DEFAULT_SITE}'

# Two-letter market tokens map to subdomains, e.g. "de" -> https://de.iherb.com
MARKET_TOKEN_RE = re.compile(r'^[a-z]{2}$', re.IGNORECASE)
HOSTNAME_RE = re.compile(r'^[a-z0-9-]+(\.[a-z0-9-]+)+(:\d+)?$', re.IGNORECASE)
SCHEME_RE = re.compile(r'^https?://', re.IGNORECASE)

PRODUCT_PATH_RE = re.compile(r'/pr/[^?#\s]+')
PAGE_PARAMS = ('page', 'p')


def normalise_origin(location: Optional[str]) -> str:
    """
    Turn a loose location hint into an origin (scheme + host, no trailing slash).

    Accepts an empty value, a market token ("de"), a hostname ("kr.iherb.com")
    or a full URL. Unrecognised input falls back to the default origin.
    """
    if not location or not isinstance(location, str):
        return DEFAULT_ORIGIN
    value = location.strip()
    if not value:
        return DEFAULT_ORIGIN

    if SCHEME_RE.match(value):
        parts = urlsplit(value.rstrip('/'))
        if not parts.netloc:
            return DEFAULT_ORIGIN
        return f'{parts.scheme.lower()}://{parts.netloc}'

    cleaned = value.rstrip('/')
    if MARKET_TOKEN_RE.match(cleaned):
        return f'https://{cleaned.lower()}.{DEFAULT_SITE}'
    if '.' in cleaned and HOSTNAME_RE.match(cleaned):
        return f'https://{cleaned}'
    return DEFAULT_ORIGIN


def is_absolute(url: str) -> bool:
    return bool(url) and (SCHEME_RE.match(url) is not None or url.startswith('//'))


def absolute_url(origin: str, path: Optional[str]) -> Optional[str]:
    """Join a relative path to the origin; absolute URLs are returned as-is."""
    if not path or not isinstance(path, str):
        return None
    path = path.strip()
    if not path:
        return None
    if path.startswith('//'):
        return f'https:{path}'
    if SCHEME_RE.match(path):
        return path
    return f"{origin.rstrip('/')}/{path.lstrip('/')}"


def build_product_url(origin: str, slug, product_id) -> Optional[str]:
    """Build a detail page URL from a slug and the site's product id."""
    if product_id is None or str(product_id).strip() == '':
        return None
    if isinstance(slug, str) and SCHEME_RE.match(slug):
        return slug
    safe_slug = (slug or '').strip('/') if isinstance(slug, str) else ''
    return f"{origin.rstrip('/')}/pr/{safe_slug or 'product'}/{str(product_id).strip()}"


def is_product_url(url: Optional[str]) -> bool:
    if not url or not isinstance(url, str):
        return False
    try:
        path = urlsplit(url).path
    except ValueError:
        return False
    return PRODUCT_PATH_RE.search(path) is not None


def canonical_product_url(url: Optional[str], origin: str) -> Optional[str]:
    """Absolute product URL without query string or fragment."""
    absolute = absolute_url(origin, url)
    if not absolute:
        return None
    try:
        parts = urlsplit(absolute)
    except ValueError:
        return None
    return urlunsplit((parts.scheme, parts.netloc, parts.path, '', ''))


def product_id_from_url(url: Optional[str]) -> Optional[str]:
    """Trailing numeric path segment of a /pr/ URL, if any."""
    if not is_product_url(url):
        return None
    segment = urlsplit(url).path.rstrip('/').rsplit('/', 1)[-1]
    return segment if segment.isdigit() else None


def derive_listing_meta(url: str) -> Tuple[str, int]:
    """
    Return (listing_key, page) for a listing URL.

    The key is origin + path so every page of one sequence shares it.
    """
    try:
        parts = urlsplit(url)
        if not parts.scheme or not parts.netloc:
            return url, 1
        query = parse_qs(parts.query)
        page = 1
        for name in PAGE_PARAMS:
            values = query.get(name)
            if values and values[0].isdigit() and int(values[0]) > 0:
                page = int(values[0])
                break
        return f'{parts.scheme}://{parts.netloc}{parts.path}', page
    except ValueError:
        return url, 1


def search_url(origin: str, keyword: str) -> str:
    return f"{origin.rstrip('/')}/search?kw={quote_plus(keyword)}"


def category_url(origin: str, category: str) -> str:
    return f"{origin.rstrip('/')}/c/{category.strip().lstrip('/')}"
