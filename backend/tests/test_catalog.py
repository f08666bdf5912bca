"""Barcode database lookups."""

import asyncio

import pytest

from conftest import BARCODE_HOST
from nearbuy.core.catalog import BarcodeLookupClient
from nearbuy.core.errors import CatalogError, CatalogNotFoundError
from nearbuy.schemas.identify import CatalogProduct


def _lookup(vendors, upc="012345678905", api_key="barcode-key"):
    async def run():
        async with vendors.client() as client:
            return await BarcodeLookupClient(client, api_key=api_key).lookup(upc)

    return asyncio.run(run())


class TestLookup:
    """BarcodeLookupClient.lookup."""

    def test_first_product(self, vendors):
        vendors.json(
            "GET",
            BARCODE_HOST,
            "/v3/products",
            {"products": [{"brand": "Acme", "title": "Widget"}, {"brand": "Other", "title": "Thing"}]},
        )

        product = _lookup(vendors)

        assert product == CatalogProduct(brand="Acme", title="Widget")
        assert product.search_query() == "Acme Widget"
        assert vendors.calls[0].url.params["barcode"] == "012345678905"

    def test_empty_products_is_not_found(self, vendors):
        vendors.json("GET", BARCODE_HOST, "/v3/products", {"products": []})

        with pytest.raises(CatalogNotFoundError) as exc:
            _lookup(vendors)
        assert exc.value.user_message == "No product information found for this barcode."

    def test_404_is_not_found(self, vendors):
        vendors.json("GET", BARCODE_HOST, "/v3/products", {"message": "not found"}, status_code=404)

        with pytest.raises(CatalogNotFoundError):
            _lookup(vendors)

    def test_server_error(self, vendors):
        vendors.json("GET", BARCODE_HOST, "/v3/products", {}, status_code=500)

        with pytest.raises(CatalogError) as exc:
            _lookup(vendors)
        assert not isinstance(exc.value, CatalogNotFoundError)

    def test_malformed_products(self, vendors):
        vendors.json("GET", BARCODE_HOST, "/v3/products", {"products": {"brand": "Acme"}})

        with pytest.raises(CatalogError) as exc:
            _lookup(vendors)
        assert not isinstance(exc.value, CatalogNotFoundError)

    def test_not_configured(self, vendors):
        with pytest.raises(CatalogError):
            _lookup(vendors, api_key="")
        assert vendors.calls == []


class TestSearchQuery:
    """CatalogProduct.search_query."""

    def test_skips_blank_parts(self):
        assert CatalogProduct(brand="", title="Widget").search_query() == "Widget"
        assert CatalogProduct(brand="Acme ", title=" ").search_query() == "Acme"
