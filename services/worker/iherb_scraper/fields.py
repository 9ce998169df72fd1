"""
Canonical field aliases and value coercion.

The source pages rename fields between templates, so every canonical field is
looked up through an ordered list of alias paths. A path is a dotted sequence
of keys; when a list is met mid-path the first element is used.
"""
import math
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, List, Optional, Tuple

from bs4 import BeautifulSoup

FIELD_ALIASES = {
    'external_id': ('partNumber', 'productId', 'productID', 'id', 'sku', 'mpn'),
    'slug': ('slug', 'urlName', 'seoName'),
    'url': ('productUrl', 'url', 'canonicalUrl', 'href', 'link'),
    'title': ('displayName', 'name', 'title', 'productName'),
    'brand': ('brand.name', 'brand.displayName', 'brandName', 'brand'),
    'price': (
        'pricing.price', 'pricing.discountPrice', 'pricing.listPrice',
        'price.value', 'price.amount', 'price', 'salePrice', 'discountPrice',
        'listPrice', 'offers.price', 'offers.lowPrice',
    ),
    'currency': (
        'pricing.currency', 'price.currency', 'currency', 'currencyCode',
        'priceCurrency', 'offers.priceCurrency',
    ),
    'rating': (
        'rating.averageRating', 'rating.value', 'rating', 'averageRating',
        'ratingValue', 'aggregateRating.ratingValue',
    ),
    'review_count': (
        'numberOfReviews', 'reviewCount', 'reviewsCount', 'ratingCount',
        'rating.count', 'aggregateRating.reviewCount', 'aggregateRating.ratingCount',
    ),
    'availability': (
        'inventory.availability', 'availability', 'stockStatus',
        'offers.availability',
    ),
    'description_html': ('overview', 'descriptionHtml', 'description_html'),
    'description_text': ('description', 'descriptionText', 'description_text'),
}

# Array fields collect every value of every alias instead of the first one.
ARRAY_ALIASES = {
    'images': ('images', 'image', 'imageUrl', 'imageUrls', 'primaryImage', 'thumbnail'),
    'categories': ('categories', 'category', 'breadcrumbs', 'breadcrumb'),
}

ARRAY_FIELDS = tuple(ARRAY_ALIASES)

# Keys inside dict elements of array fields that carry the useful string.
ARRAY_ITEM_KEYS = ('url', 'src', 'href', 'name', 'displayName', 'title')

CURRENCY_SYMBOLS = {
    'US$': 'USD',
    'C$': 'CAD',
    'CA$': 'CAD',
    'A$': 'AUD',
    'AU$': 'AUD',
    'NZ$': 'NZD',
    'HK$': 'HKD',
    'S$': 'SGD',
    'R$': 'BRL',
    '$': 'USD',
    '€': 'EUR',
    '£': 'GBP',
    '¥': 'JPY',
    '₩': 'KRW',
    '₹': 'INR',
    '₽': 'RUB',
    '₪': 'ILS',
    'zł': 'PLN',
}

CURRENCY_CODE_RE = re.compile(r'^[A-Za-z]{3}$')
_SYMBOL_PATTERN = '|'.join(
    re.escape(symbol) for symbol in sorted(CURRENCY_SYMBOLS, key=len, reverse=True)
)
NUMBER_PATTERN = r'\d{1,3}(?:[,.\s ]\d{3})+(?:[.,]\d{1,2})?|\d+(?:[.,]\d{1,2})?'
PRICE_RE = re.compile(
    rf'(?P<pre>\b[A-Z]{{3}}\b|{_SYMBOL_PATTERN})?\s*(?P<num>{NUMBER_PATTERN})\s*(?P<post>\b[A-Z]{{3}}\b|{_SYMBOL_PATTERN})?'
)
WHITESPACE_RE = re.compile(r'\s+')
# A minus sign directly in front of a number, not a range dash such as "10-12"
NEGATIVE_PREFIX_RE = re.compile(r'(?:^|[^\w.,])[-\u2212]$')


def is_empty(value: Any) -> bool:
    """True for None, blank strings and empty containers."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict, set)):
        return not value
    return False


def resolve_path(node: Any, path: str) -> Any:
    """Follow a dotted alias path through dicts (and first list elements)."""
    current = node
    for key in path.split('.'):
        if isinstance(current, list):
            current = next((el for el in current if isinstance(el, dict)), None)
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def lookup(node: Any, field: str) -> Any:
    """Return the first non-empty value among the field's aliases."""
    for path in FIELD_ALIASES.get(field, ()):
        value = resolve_path(node, path)
        if is_empty(value):
            continue
        # A dict where a scalar is expected (e.g. "brand": {...} without name)
        if isinstance(value, dict):
            continue
        return value
    return None


def lookup_all(node: Any, field: str) -> List[str]:
    """Gather every string for an array field across all its aliases."""
    values: List[str] = []
    for path in ARRAY_ALIASES.get(field, ()):
        values.extend(collect_strings(resolve_path(node, path)))
    return unique(values)


def collect_strings(value: Any) -> List[str]:
    """Flatten a string, a dict or a list of either into a list of strings."""
    if value is None:
        return []
    if isinstance(value, str):
        text = clean_text(value)
        return [text] if text else []
    if isinstance(value, dict):
        for key in ARRAY_ITEM_KEYS:
            text = value.get(key)
            if isinstance(text, str) and text.strip():
                return [text.strip()]
        return []
    if isinstance(value, (list, tuple)):
        out: List[str] = []
        for element in value:
            out.extend(collect_strings(element))
        return out
    return []


def unique(values: Iterable) -> list:
    """Order-preserving de-duplication."""
    seen = set()
    out = []
    for value in values:
        if value in seen:
            continue
        seen.add(value)
        out.append(value)
    return out


def clean_text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list, tuple, bool)):
        return None
    text = WHITESPACE_RE.sub(' ', str(value)).strip()
    return text or None


def _to_decimal(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return None
        return Decimal(str(value))
    if not isinstance(value, str):
        return None
    match = re.search(NUMBER_PATTERN, value)
    if not match:
        return None
    if NEGATIVE_PREFIX_RE.search(value[:match.start()]):
        return None
    number = match.group(0).replace(' ', '').replace(' ', '')
    if ',' in number and '.' in number:
        # The right-most separator is the decimal one
        if number.rfind(',') > number.rfind('.'):
            number = number.replace('.', '').replace(',', '.')
        else:
            number = number.replace(',', '')
    elif ',' in number:
        head, _, tail = number.rpartition(',')
        if len(tail) == 3 and head:
            number = number.replace(',', '')
        else:
            number = f"{head.replace(',', '')}.{tail}"
    elif number.count('.') > 1:
        number = number.replace('.', '')
    try:
        return Decimal(number)
    except InvalidOperation:
        return None


def parse_decimal(value: Any) -> Optional[str]:
    """Parse a price-like value into a plain decimal string; None if not finite."""
    try:
        number = _to_decimal(value)
    except (InvalidOperation, ValueError, TypeError):
        return None
    if number is None or not number.is_finite() or number < 0:
        return None
    return format(number.normalize() if number == number.to_integral() else number, 'f')


def parse_number(value: Any) -> Optional[float]:
    try:
        number = _to_decimal(value)
    except (InvalidOperation, ValueError, TypeError):
        return None
    if number is None or not number.is_finite():
        return None
    return float(number)


def parse_rating(value: Any) -> Optional[float]:
    """Finite rating within 0..5."""
    number = parse_number(value)
    if number is None or number < 0 or number > 5:
        return None
    return number


def parse_count(value: Any) -> Optional[int]:
    """Non-negative integer count."""
    number = parse_number(value)
    if number is None or number < 0 or number != int(number):
        return None
    return int(number)


def normalise_currency(value: Any) -> Optional[str]:
    text = clean_text(value)
    if not text:
        return None
    if CURRENCY_CODE_RE.match(text):
        return text.upper()
    return CURRENCY_SYMBOLS.get(text)


def normalise_availability(value: Any) -> Optional[str]:
    """Short status token: "http://schema.org/InStock" -> "InStock"."""
    text = clean_text(value)
    if not text:
        return None
    token = text.rstrip('/').rsplit('/', 1)[-1].strip()
    return token or None


def parse_price_text(text: Any) -> Tuple[Optional[str], Optional[str]]:
    """
    Pull a price and a currency code out of free text such as "$12.99" or
    "12,99 EUR". Returns (None, None) when nothing price-like is found.
    """
    cleaned = clean_text(text)
    if not cleaned:
        return None, None
    fallback = None
    for match in PRICE_RE.finditer(cleaned):
        if NEGATIVE_PREFIX_RE.search(cleaned[:match.start('num')]):
            continue
        marker = match.group('pre') or match.group('post')
        price = parse_decimal(match.group('num'))
        if price is None:
            continue
        if marker:
            return price, normalise_currency(marker)
        if fallback is None:
            fallback = price
    return fallback, None


def strip_html(html: Any) -> Optional[str]:
    text = clean_text(html)
    if not text:
        return None
    soup = BeautifulSoup(text, 'html.parser')
    return clean_text(soup.get_text(' ', strip=True))
