import math
import re
from typing import Iterable, List, Optional, Tuple

from nearbuy.schemas.offers import Offer

_FIRST_NUMBER = re.compile(r"\d+(?:\.\d*)?|\.\d+")


def parse_price(price: Optional[str]) -> float:
    """
    Converts strings like "$5.99", "CA$1,402.58", "From $4.99" to float by dropping everything
    but digits and periods, then reading the first number ("$4.99 - $5.99" => 4.99).
    Returns math.inf if no number is left, so unpriced offers sort last.
    """
    if price is None:
        return math.inf
    digits = re.sub(r"[^\d.]", "", str(price))
    m = _FIRST_NUMBER.search(digits)
    if m is None:
        return math.inf
    return float(m.group())


def extract_price_fields(r: dict) -> Tuple[Optional[str], Optional[float]]:
    """
    Best-effort: use the numeric price the vendor already extracted, otherwise parse the price string.
    """
    price_str = r.get("price")
    if price_str is not None and not isinstance(price_str, str):
        price_str = str(price_str)

    for k in ("extracted_price", "price_extracted"):
        v = r.get(k)
        if isinstance(v, (int, float)) and not isinstance(v, bool) and math.isfinite(v):
            return price_str, float(v)

    value = parse_price(price_str)
    return price_str, (value if math.isfinite(value) else None)


def price_key(o: Offer) -> float:
    if o.price_value is not None:
        return o.price_value
    return parse_price(o.price)


def sort_by_price(offers: Iterable[Offer]) -> List[Offer]:
    """Cheapest first. Stable, so equal prices keep vendor order."""
    return sorted(offers, key=price_key)
