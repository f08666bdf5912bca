import logging
from typing import Any, Dict, List, Optional

import httpx

from nearbuy.core.config import Settings
from nearbuy.core.errors import SearchError
from nearbuy.core.http import redact_key, safe_body
from nearbuy.core.pricing import extract_price_fields
from nearbuy.core.retailers import RetailerCatalog
from nearbuy.schemas.offers import Offer

logger = logging.getLogger(__name__)

SEARCHAPI_BASE = "https://www.searchapi.io/api/v1/search"


def _extract_link(r: dict) -> Optional[str]:
    for k in ("product_link", "link", "offers_link"):
        v = r.get(k)
        if isinstance(v, str) and v.strip():
            return v.strip()
    return None


def _extract_seller(r: dict) -> Optional[str]:
    for k in ("seller", "source", "merchant", "store"):
        v = r.get(k)
        if isinstance(v, str) and v.strip():
            return v.strip()
    return None


def _as_float(v: Any) -> Optional[float]:
    try:
        return float(v) if v is not None and not isinstance(v, bool) else None
    except (TypeError, ValueError):
        return None


def _as_int(v: Any) -> Optional[int]:
    if isinstance(v, str):
        v = v.replace(",", "").strip()
    try:
        return int(v) if v is not None and not isinstance(v, bool) else None
    except (TypeError, ValueError):
        return None


def _key_for_dedupe(o: Offer) -> str:
    if o.product_link:
        return f"link::{o.product_link}"
    return f"title::{o.title.strip().lower()}::seller::{o.seller.lower()}"


def to_offers(results: List[dict], catalog: RetailerCatalog) -> List[Offer]:
    """
    Raw shopping_results => Offers from target retailers only, vendor order preserved.
    Sellers outside the allow-list are dropped here and nowhere else. `store` is filled in
    later by the normalizing stage.
    """
    offers: List[Offer] = []
    seen = set()
    for r in results:
        if not isinstance(r, dict):
            continue
        seller = _extract_seller(r)
        if not catalog.is_target(seller):
            continue

        price_str, price_val = extract_price_fields(r)
        offer = Offer(
            title=str(r.get("title") or "Unknown"),
            price=price_str,
            price_value=price_val,
            seller=seller,
            rating=_as_float(r.get("rating")),
            reviews=_as_int(r.get("reviews")),
            thumbnail=r.get("thumbnail") if isinstance(r.get("thumbnail"), str) else None,
            product_link=_extract_link(r),
        )

        k = _key_for_dedupe(offer)
        if k in seen:
            continue
        seen.add(k)
        offers.append(offer)
    return offers


class ShoppingSearchClient:
    """
    Google Shopping through SearchAPI.io, biased to one fixed region.

    The locale comes from settings and is the same for every request; the caller's
    location hint is only logged.
    """

    def __init__(self, client: httpx.AsyncClient, cfg: Settings, catalog: RetailerCatalog):
        self.client = client
        self.cfg = cfg
        self.catalog = catalog

    def _params(self, q: str) -> Dict[str, Any]:
        api_key = (self.cfg.SEARCHAPI_API_KEY or "").strip()
        if not api_key:
            raise SearchError("SEARCHAPI_API_KEY is not set")

        return {
            "engine": "google_shopping",
            "q": q,
            "api_key": api_key,
            "location": self.cfg.SEARCH_LOCATION,
            "google_domain": self.cfg.SEARCH_GOOGLE_DOMAIN,
            "gl": self.cfg.SEARCH_GL,
            "hl": self.cfg.SEARCH_HL,
            "num": max(1, min(int(self.cfg.SEARCH_RESULT_LIMIT), 100)),
        }

    async def raw_search(self, q: str) -> Dict[str, Any]:
        """
        Calls SearchAPI Google Shopping and returns the raw JSON response.
        """
        params = self._params(q)
        try:
            r = await self.client.get(SEARCHAPI_BASE, params=params)
        except httpx.HTTPError as e:
            raise SearchError(f"SearchAPI request failed: {redact_key(str(e)) or type(e).__name__}")

        if r.status_code >= 400:
            raise SearchError(
                f"SearchAPI request failed: {r.status_code}",
                status_code=r.status_code,
                body=safe_body(r),
            )

        try:
            data = r.json()
        except ValueError:
            raise SearchError("SearchAPI returned a non-JSON body", body=safe_body(r))

        # Normalize: if the engine returns an error payload, surface it clearly
        if not isinstance(data, dict):
            raise SearchError("SearchAPI returned an unexpected payload")
        if data.get("error"):
            raise SearchError(f"SearchAPI error: {data.get('error')}")

        return data

    async def search(self, q: str, location_hint: Optional[str] = None) -> List[Offer]:
        """
        Returns target-retailer offers for `q`. No results is an empty list, not an error.
        """
        logger.info("Shopping search q=%r location_hint=%r", q, location_hint)
        data = await self.raw_search(q)

        results = data.get("shopping_results") or []
        if not isinstance(results, list):
            raise SearchError("SearchAPI shopping_results is not a list")

        offers = to_offers(results, self.catalog)
        logger.info("Shopping search kept %d of %d results", len(offers), len(results))
        return offers
