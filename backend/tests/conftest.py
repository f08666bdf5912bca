"""Shared fakes: every vendor API is served by one httpx.MockTransport."""

from typing import Callable, List, Tuple

import httpx
import pytest

from nearbuy.core.config import Settings

Responder = Callable[[httpx.Request], httpx.Response]

GEMINI_HOST = "generativelanguage.googleapis.com"
BARCODE_HOST = "api.barcodelookup.com"
SEARCH_HOST = "www.searchapi.io"
ORS_HOST = "api.openrouteservice.org"
NOMINATIM_HOST = "nominatim.openstreetmap.org"


def make_settings(**overrides) -> Settings:
    values = dict(
        GEMINI_API_KEY="test-gemini-key",
        GEMINI_MODEL="gemini-1.5-flash",
        SEARCHAPI_API_KEY="test-search-key",
        BARCODE_LOOKUP_API_KEY="test-barcode-key",
        ORS_API_KEY="test-ors-key",
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


def gemini_reply(text: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def shopping_result(title: str, price: str, seller: str, **extra) -> dict:
    return {"title": title, "price": price, "seller": seller, **extra}


def geocode_reply(lon: float, lat: float, name: str = "Store") -> dict:
    return {"features": [{"geometry": {"coordinates": [lon, lat]}, "properties": {"name": name}}]}


def route_reply(meters: float) -> dict:
    return {"routes": [{"summary": {"distance": meters}}]}


class FakeVendors:
    """
    Routes requests by (method, host, path prefix). Unrouted requests get a 404 so a
    missing fake shows up as a vendor failure, not a hang.
    """

    def __init__(self):
        self.routes: List[Tuple[str, str, str, Responder]] = []
        self.calls: List[httpx.Request] = []

    def on(self, method: str, host: str, path: str, responder: Responder) -> "FakeVendors":
        self.routes.append((method.upper(), host, path, responder))
        return self

    def json(self, method: str, host: str, path: str, data, status_code: int = 200) -> "FakeVendors":
        return self.on(method, host, path, lambda request: httpx.Response(status_code, json=data))

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        for method, host, path, responder in self.routes:
            if request.method == method and request.url.host == host and request.url.path.startswith(path):
                return responder(request)
        return httpx.Response(404, json={"error": f"no fake for {request.method} {request.url}"})

    def calls_to(self, host: str) -> List[httpx.Request]:
        return [c for c in self.calls if c.url.host == host]

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport)


@pytest.fixture
def vendors() -> FakeVendors:
    return FakeVendors()


@pytest.fixture
def cfg() -> Settings:
    return make_settings()
