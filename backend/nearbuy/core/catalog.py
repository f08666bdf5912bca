import logging

import httpx

from nearbuy.core.errors import CatalogError, CatalogNotFoundError
from nearbuy.core.http import redact_key, safe_body
from nearbuy.schemas.identify import CatalogProduct

logger = logging.getLogger(__name__)

BARCODE_LOOKUP_BASE = "https://api.barcodelookup.com/v3/products"


class BarcodeLookupClient:
    """
    UPC => brand/title via the Barcode Lookup database.
    Only used in the barcode flow; the first product in the response wins.
    """

    def __init__(self, client: httpx.AsyncClient, api_key: str):
        self.client = client
        self.api_key = (api_key or "").strip()

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def lookup(self, upc: str) -> CatalogProduct:
        if not self.configured:
            raise CatalogError("BARCODE_LOOKUP_API_KEY is not set")

        params = {"barcode": upc, "formatted": "y", "key": self.api_key}
        try:
            r = await self.client.get(BARCODE_LOOKUP_BASE, params=params)
        except httpx.HTTPError as e:
            raise CatalogError(f"Barcode lookup failed: {redact_key(str(e)) or type(e).__name__}")

        # The API answers 404 for barcodes it has never seen
        if r.status_code == 404:
            raise CatalogNotFoundError(f"No product for barcode {upc}", status_code=404)
        if r.status_code >= 400:
            raise CatalogError(
                f"Barcode lookup failed: {r.status_code}",
                status_code=r.status_code,
                body=safe_body(r),
            )

        try:
            data = r.json()
        except ValueError:
            raise CatalogError("Barcode lookup returned a non-JSON body", body=safe_body(r))

        products = data.get("products") if isinstance(data, dict) else None
        if products is not None and not isinstance(products, list):
            raise CatalogError(f"Barcode lookup returned unexpected products: {type(products).__name__}")
        if not products:
            raise CatalogNotFoundError(f"No product for barcode {upc}")

        first = products[0] if isinstance(products[0], dict) else {}
        product = CatalogProduct(
            brand=str(first.get("brand") or "").strip(),
            title=str(first.get("title") or first.get("product_name") or "").strip(),
        )
        if not product.search_query():
            raise CatalogNotFoundError(f"Product for barcode {upc} has no brand or title")

        logger.info("Barcode %s => %s", upc, product.search_query())
        return product
