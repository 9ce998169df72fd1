"""
Structured-data locators.

Three independent sources are read from a fetched page:

* the embedded Next.js payload (``script#__NEXT_DATA__``),
* linked-data markup (``application/ld+json`` blocks),
* the DOM itself, as a last resort.

Each locator returns a partial record (dict keyed by canonical field names,
raw values) or a list of listing candidates. None of them raises on malformed
input; a parse failure yields empty data so the caller can fall through to the
next source.
"""
import json
import logging
from typing import Any, Dict, Iterator, List, Optional, Tuple

from iherb_scraper.fields import (
    ARRAY_ALIASES,
    FIELD_ALIASES,
    clean_text,
    is_empty,
    lookup,
    lookup_all,
    parse_price_text,
    unique,
)
from iherb_scraper.page import Page
from iherb_scraper.urls import (
    absolute_url,
    build_product_url,
    canonical_product_url,
    is_product_url,
    product_id_from_url,
)

logger = logging.getLogger(__name__)

ID_KEYS = ('partNumber', 'id', 'productId', 'productID', 'sku')
NAME_KEYS = ('displayName', 'name', 'title', 'productName')
URL_KEYS = ('url', 'productUrl', 'href', 'link', 'canonicalUrl')

# Known places of the product node in a detail page payload, tried before
# the heuristic deep search.
PRODUCT_NODE_KEYS = ('product', 'productDetail', 'productData')

LISTING_FIELDS = (
    'external_id', 'slug', 'title', 'brand', 'price', 'currency',
    'rating', 'review_count',
)

MAX_DEPTH = 64


# ---------------------------------------------------------------------------
# Node classification
# ---------------------------------------------------------------------------

def _has_scalar(node: dict, keys) -> bool:
    for key in keys:
        value = node.get(key)
        if isinstance(value, (str, int)) and not isinstance(value, bool) and not is_empty(value):
            return True
    return False


def looks_like_product_node(node: Any) -> bool:
    """
    Heuristic: a dict carrying both an id-like and a name-like field.

    The payload shape differs between page templates, so no fixed schema is
    assumed. Category or brand nodes with an id and a name also match; callers
    try known locations first to keep that risk low.
    """
    if not isinstance(node, dict):
        return False
    return _has_scalar(node, ID_KEYS) and _has_scalar(node, NAME_KEYS)


def looks_like_named_node(node: Any) -> bool:
    """Looser check for nodes found at a known product location: a name is enough."""
    return isinstance(node, dict) and _has_scalar(node, NAME_KEYS)


def looks_like_listing_node(node: Any) -> bool:
    """Heuristic: a dict with a URL to a product page plus an id or a name."""
    if not isinstance(node, dict):
        return False
    has_product_url = any(
        isinstance(node.get(key), str) and is_product_url(node.get(key))
        for key in URL_KEYS
    )
    if not has_product_url:
        return False
    return _has_scalar(node, ID_KEYS) or _has_scalar(node, NAME_KEYS)


def iter_nodes(tree: Any) -> Iterator[dict]:
    """Yield every dict in the tree, depth-first in document order."""
    stack: List[Tuple[Any, int]] = [(tree, 0)]
    while stack:
        node, depth = stack.pop()
        if depth > MAX_DEPTH:
            continue
        if isinstance(node, dict):
            yield node
            children = list(node.values())
        elif isinstance(node, list):
            children = node
        else:
            continue
        for child in reversed(children):
            if isinstance(child, (dict, list)):
                stack.append((child, depth + 1))


# ---------------------------------------------------------------------------
# Node projection
# ---------------------------------------------------------------------------

def partial_from_node(node: dict) -> Dict[str, Any]:
    """Read every canonical field of a node through the alias table."""
    partial: Dict[str, Any] = {}
    for field in FIELD_ALIASES:
        value = lookup(node, field)
        if value is not None:
            partial[field] = value
    for field in ARRAY_ALIASES:
        values = lookup_all(node, field)
        if values:
            partial[field] = values
    return partial


def listing_candidate(node: dict, origin: str) -> Optional[Dict[str, Any]]:
    """
    Project a node into a listing candidate, or None when no product URL can
    be derived from it.
    """
    if not isinstance(node, dict):
        return None
    external_id = lookup(node, 'external_id')
    slug = lookup(node, 'slug')
    raw_url = lookup(node, 'url')

    url = None
    if isinstance(raw_url, str):
        absolute = absolute_url(origin, raw_url)
        # A link elsewhere (category, brand) means this is not a product
        if not is_product_url(absolute):
            return None
        url = canonical_product_url(absolute, origin)
    elif external_id is not None:
        url = canonical_product_url(build_product_url(origin, slug, external_id), origin)
    if url is None:
        return None

    candidate: Dict[str, Any] = {'url': url}
    for field in LISTING_FIELDS:
        value = lookup(node, field)
        if value is not None:
            candidate[field] = value
    if 'external_id' not in candidate:
        derived = product_id_from_url(url)
        if derived:
            candidate['external_id'] = derived
    images = lookup_all(node, 'images')
    if images:
        candidate['image'] = absolute_url(origin, images[0])
    return candidate


def _fill_missing(target: dict, source: dict):
    for key, value in source.items():
        if key not in target and not is_empty(value):
            target[key] = value


# ---------------------------------------------------------------------------
# Embedded payload
# ---------------------------------------------------------------------------

def load_embedded_payload(page: Page) -> Optional[dict]:
    """Parse the embedded Next.js payload; None when absent or malformed."""
    text = page.embedded_json if page is not None else None
    if not text or not text.strip():
        return None
    try:
        payload = json.loads(text)
    except (ValueError, TypeError) as e:
        logger.debug(f'Malformed embedded payload on {page.url}: {e}')
        return None
    return payload if isinstance(payload, dict) else None


def page_props(payload: Any) -> dict:
    """``props.pageProps`` of a Next.js payload, or the payload itself."""
    if not isinstance(payload, dict):
        return {}
    props = payload.get('props')
    if isinstance(props, dict) and isinstance(props.get('pageProps'), dict):
        return props['pageProps']
    return payload


def embedded_product(payload: Any) -> Dict[str, Any]:
    """Partial record of the first product-looking node of the payload."""
    if not isinstance(payload, dict):
        return {}
    props = page_props(payload)
    for key in PRODUCT_NODE_KEYS:
        node = props.get(key)
        if looks_like_named_node(node):
            return partial_from_node(node)
    products = props.get('products')
    if isinstance(products, list) and products and looks_like_product_node(products[0]):
        return partial_from_node(products[0])

    for node in iter_nodes(payload):
        if looks_like_product_node(node):
            return partial_from_node(node)
    return {}


def embedded_listing(payload: Any, origin: str) -> List[Dict[str, Any]]:
    """
    Every listing-looking node of the payload, one entry per product URL.
    Several nodes may describe the same product; the first value seen wins
    per field.
    """
    if not isinstance(payload, dict):
        return []
    found: Dict[str, Dict[str, Any]] = {}
    for node in iter_nodes(payload):
        if not looks_like_listing_node(node):
            continue
        candidate = listing_candidate(node, origin)
        if candidate is None:
            continue
        existing = found.get(candidate['url'])
        if existing is None:
            found[candidate['url']] = candidate
        else:
            _fill_missing(existing, candidate)
    return list(found.values())


# ---------------------------------------------------------------------------
# Linked data
# ---------------------------------------------------------------------------

def _node_types(node: dict) -> set:
    declared = node.get('@type')
    if isinstance(declared, str):
        declared = [declared]
    if not isinstance(declared, list):
        return set()
    types = set()
    for value in declared:
        if isinstance(value, str):
            types.add(value.rstrip('/').rsplit('/', 1)[-1].rsplit(':', 1)[-1])
    return types


def _flatten_linked_data(data: Any, in_list: bool = False, depth: int = 0) -> Iterator[Tuple[dict, bool]]:
    if depth > MAX_DEPTH:
        return
    if isinstance(data, list):
        for element in data:
            yield from _flatten_linked_data(element, in_list, depth + 1)
        return
    if not isinstance(data, dict):
        return
    if '@graph' in data:
        yield from _flatten_linked_data(data['@graph'], in_list, depth + 1)
    types = _node_types(data)
    if 'ItemList' in types:
        yield from _flatten_linked_data(data.get('itemListElement'), True, depth + 1)
        return
    if 'ListItem' in types:
        if isinstance(data.get('item'), dict):
            yield from _flatten_linked_data(data['item'], in_list, depth + 1)
        return
    if isinstance(data.get('mainEntity'), (dict, list)):
        yield from _flatten_linked_data(data['mainEntity'], in_list, depth + 1)
    if types:
        yield data, in_list


def linked_data_nodes(page: Page) -> List[Tuple[dict, bool]]:
    """
    Parse every ld+json block of the page and flatten list, @graph and
    ItemList wrappers. Returns (node, nested_in_item_list) pairs.
    """
    if page is None or page.is_empty:
        return []
    nodes = []
    scripts = page.soup.find_all('script', type=lambda t: t and 'ld+json' in t.lower())
    for script in scripts:
        text = script.string or script.get_text()
        if not text or not text.strip():
            continue
        try:
            data = json.loads(text)
        except (ValueError, TypeError) as e:
            logger.debug(f'Skipping malformed ld+json block on {page.url}: {e}')
            continue
        nodes.extend(_flatten_linked_data(data))
    return nodes


def linked_data_product(page: Page) -> Dict[str, Any]:
    for node, _ in linked_data_nodes(page):
        if 'Product' in _node_types(node):
            return partial_from_node(node)
    return {}


def linked_data_listing(page: Page, origin: str) -> List[Dict[str, Any]]:
    found: Dict[str, Dict[str, Any]] = {}
    for node, in_list in linked_data_nodes(page):
        if not in_list or 'Product' not in _node_types(node):
            continue
        candidate = listing_candidate(node, origin)
        if candidate is not None and candidate['url'] not in found:
            found[candidate['url']] = candidate
    return list(found.values())


# ---------------------------------------------------------------------------
# DOM fallback
# ---------------------------------------------------------------------------

TITLE_SELECTORS = ('h1', 'h2', 'h3', 'h4', '[class*="title"]', '[class*="name"]')
PRICE_SELECTORS = ('[itemprop="price"]', '[class*="price"]', '[data-price]')
BREADCRUMB_SELECTORS = (
    'nav[aria-label*="readcrumb"] a',
    '.breadcrumb a',
    '.breadcrumbs a',
    '[itemtype*="BreadcrumbList"] [itemprop="name"]',
)
CONTAINER_DEPTH = 4


def _text(element) -> Optional[str]:
    if element is None:
        return None
    return clean_text(element.get('content') or element.get_text(' ', strip=True))


def _meta(soup, *names) -> Optional[str]:
    for name in names:
        tag = soup.find('meta', attrs={'property': name}) or soup.find('meta', attrs={'name': name})
        if tag is not None and clean_text(tag.get('content')):
            return clean_text(tag.get('content'))
    return None


def _image_src(element) -> Optional[str]:
    if element is None:
        return None
    for attr in ('src', 'data-src', 'data-lazy-src', 'data-original'):
        value = element.get(attr)
        if value and not value.startswith('data:'):
            return value.strip()
    return None


def _product_container(anchor):
    """Closest ancestor that looks like a product tile (or the anchor's parent)."""
    node = anchor
    for _ in range(CONTAINER_DEPTH):
        parent = node.parent
        if parent is None or parent.name in ('body', 'html', '[document]'):
            break
        node = parent
        classes = ' '.join(node.get('class') or []).lower()
        if node.name in ('li', 'article') or 'product' in classes or 'item' in classes:
            return node
    return anchor.parent or anchor


def _first_text(root, selectors) -> Optional[str]:
    for selector in selectors:
        text = _text(root.select_one(selector))
        if text:
            return text
    return None


def dom_listing(page: Page, origin: str) -> List[Dict[str, Any]]:
    """One listing candidate per distinct product href found in the DOM."""
    if page is None or page.is_empty:
        return []
    found: Dict[str, Dict[str, Any]] = {}
    for anchor in page.soup.find_all('a', href=True):
        url = canonical_product_url(absolute_url(origin, anchor['href']), origin)
        if not is_product_url(url):
            continue
        container = _product_container(anchor)

        title = (
            clean_text(anchor.get('title'))
            or _first_text(anchor, TITLE_SELECTORS)
            or _first_text(container, TITLE_SELECTORS)
            or _text(anchor)
        )
        price_text = _first_text(container, PRICE_SELECTORS)
        price, currency = parse_price_text(price_text)
        if price is None:
            # Only trust free text when a currency marker is present
            price, currency = parse_price_text(_text(container))
            if currency is None:
                price = None
        image = _image_src(anchor.find('img')) or _image_src(container.find('img'))

        candidate = {'url': url}
        for key, value in (
            ('external_id', product_id_from_url(url)),
            ('title', title),
            ('price', price),
            ('currency', currency),
            ('image', absolute_url(origin, image) if image else None),
        ):
            if value is not None:
                candidate[key] = value

        existing = found.get(url)
        if existing is None:
            found[url] = candidate
        else:
            _fill_missing(existing, candidate)
    return list(found.values())


def dom_product(page: Page) -> Dict[str, Any]:
    """Partial record read from visible markup and meta tags."""
    if page is None or page.is_empty:
        return {}
    soup = page.soup
    partial: Dict[str, Any] = {}

    title = _text(soup.find('h1')) or _meta(soup, 'og:title')
    if title:
        partial['title'] = title

    brand = _text(soup.select_one('[itemprop="brand"] [itemprop="name"]')) \
        or _text(soup.select_one('[itemprop="brand"]')) \
        or _meta(soup, 'product:brand')
    if brand:
        partial['brand'] = brand

    price = _text(soup.select_one('[itemprop="price"]')) or _meta(soup, 'product:price:amount')
    currency = _text(soup.select_one('[itemprop="priceCurrency"]')) or _meta(soup, 'product:price:currency')
    if price is None:
        price, text_currency = parse_price_text(_first_text(soup, PRICE_SELECTORS[1:]))
        currency = currency or text_currency
    if price is not None:
        partial['price'] = price
    if currency:
        partial['currency'] = currency

    availability = soup.select_one('[itemprop="availability"]')
    if availability is not None:
        value = availability.get('href') or availability.get('content') or _text(availability)
        if clean_text(value):
            partial['availability'] = value

    rating = _text(soup.select_one('[itemprop="ratingValue"]'))
    if rating:
        partial['rating'] = rating
    reviews = _text(soup.select_one('[itemprop="reviewCount"]')) or _text(soup.select_one('[itemprop="ratingCount"]'))
    if reviews:
        partial['review_count'] = reviews

    description = _meta(soup, 'description', 'og:description')
    if description:
        partial['description_text'] = description

    images = [tag.get('content') for tag in soup.find_all('meta', attrs={'property': 'og:image'})]
    images = unique(img.strip() for img in images if img and img.strip())
    if images:
        partial['images'] = images

    categories = []
    for selector in BREADCRUMB_SELECTORS:
        categories = [_text(el) for el in soup.select(selector)]
        categories = unique(c for c in categories if c)
        if categories:
            break
    if categories:
        partial['categories'] = categories

    external_id = product_id_from_url(page.url)
    if external_id:
        partial['external_id'] = external_id
    return partial
