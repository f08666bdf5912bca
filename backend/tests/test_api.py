"""HTTP surface, with the app's shared client pointed at the fake vendors."""

import pytest
from fastapi.testclient import TestClient

from conftest import (
    BARCODE_HOST,
    GEMINI_HOST,
    ORS_HOST,
    SEARCH_HOST,
    gemini_reply,
    geocode_reply,
    make_settings,
    route_reply,
    shopping_result,
)
from nearbuy.main import create_app

GENERATE_PATH = "/v1beta/models/gemini-1.5-flash:generateContent"
PHOTO = ("photo.jpg", b"\xff\xd8\xff fake jpeg", "image/jpeg")


@pytest.fixture
def api(vendors):
    app = create_app(make_settings(BUILD_ID="test-build"), transport=vendors.transport)
    with TestClient(app) as client:
        yield client


def _shopping(vendors):
    vendors.json(
        "GET",
        SEARCH_HOST,
        "/api/v1/search",
        {
            "shopping_results": [
                shopping_result("Acme Widget", "$4.99", "Walmart.ca"),
                shopping_result("Acme Widget", "$2.49", "Superstore"),
                shopping_result("Acme Widget", "$1.99", "eBay"),
            ]
        },
    )
    vendors.json("GET", ORS_HOST, "/geocode/search", geocode_reply(-97.15, 49.89))
    vendors.json("POST", ORS_HOST, "/v2/directions/foot-walking", route_reply(450))


class TestMeta:
    def test_health(self, api):
        assert api.get("/health").json() == {"ok": True}

    def test_version(self, api):
        body = api.get("/version").json()
        assert body["version"] == "0.1.0"
        assert body["build"] == "test-build"


class TestIdentify:
    """POST /v1/identify."""

    def test_barcode(self, api, vendors):
        vendors.json("POST", GEMINI_HOST, GENERATE_PATH, gemini_reply("012345678905"))

        r = api.post("/v1/identify", files={"image": PHOTO}, data={"mode": "barcode"})

        assert r.status_code == 200
        assert r.json() == {"kind": "upc", "code": "012345678905"}

    def test_vision_error_is_422(self, api, vendors):
        vendors.json("POST", GEMINI_HOST, GENERATE_PATH, {"error": "nope"}, status_code=400)

        r = api.post("/v1/identify", files={"image": PHOTO})

        assert r.status_code == 422
        detail = r.json()["detail"]
        assert detail["error"] == "vision_error"
        assert detail["status_code"] == 400
        assert "test-gemini-key" not in r.text


class TestOffers:
    """GET /v1/offers."""

    def test_cheapest_first_with_distances(self, api, vendors):
        _shopping(vendors)

        r = api.get("/v1/offers", params={"q": "Acme Widget", "city": "Winnipeg", "lat": 49.9, "lon": -97.1})

        assert r.status_code == 200
        body = r.json()
        assert body["stage"] == "done"
        assert [o["store"] for o in body["offers"]] == ["Superstore", "Walmart"]
        assert [o["distance"] for o in body["offers"]] == [
            {"kind": "known", "text": "450m"},
            {"kind": "known", "text": "450m"},
        ]

    def test_without_location(self, api, vendors):
        _shopping(vendors)

        body = api.get("/v1/offers", params={"q": "Acme Widget"}).json()

        assert {o["distance"]["kind"] for o in body["offers"]} == {"unavailable"}

    def test_empty_query_is_422(self, api):
        r = api.get("/v1/offers", params={"q": " "})

        assert r.status_code == 422
        assert r.json()["detail"]["stage"] == "searching"

    def test_with_session(self, api, vendors):
        _shopping(vendors)

        r = api.get("/v1/offers", params={"q": "Acme Widget", "session_id": "phone-1"})

        assert r.status_code == 200
        assert len(api.app.state.sessions) == 1


class TestResolve:
    """POST /v1/resolve."""

    def test_barcode_flow(self, api, vendors):
        vendors.json("POST", GEMINI_HOST, GENERATE_PATH, gemini_reply("012345678905"))
        vendors.json("GET", BARCODE_HOST, "/v3/products", {"products": [{"brand": "Acme", "title": "Widget"}]})
        _shopping(vendors)

        r = api.post(
            "/v1/resolve",
            files={"image": PHOTO},
            data={"mode": "barcode", "city": "Winnipeg", "lat": "49.9", "lon": "-97.1"},
        )

        assert r.status_code == 200
        body = r.json()
        assert body["identification"] == {"kind": "upc", "code": "012345678905"}
        assert body["query"] == "Acme Widget"
        assert [o["price"] for o in body["offers"]] == ["$2.49", "$4.99"]

    def test_catalog_miss_is_422(self, api, vendors):
        vendors.json("POST", GEMINI_HOST, GENERATE_PATH, gemini_reply("000"))
        vendors.json("GET", BARCODE_HOST, "/v3/products", {"products": []})

        r = api.post("/v1/resolve", files={"image": PHOTO}, data={"mode": "barcode"})

        assert r.status_code == 422
        assert r.json()["detail"] == {
            "error": "resolution_failed",
            "stage": "catalog_lookup",
            "message": "No product information found for this barcode.",
        }


class TestDistance:
    """GET /v1/distance."""

    def test_routing(self, api, vendors):
        vendors.json("GET", ORS_HOST, "/geocode/search", geocode_reply(-97.15, 49.89))
        vendors.json("POST", ORS_HOST, "/v2/directions/foot-walking", route_reply(2300))

        r = api.get("/v1/distance", params={"store": "walmart.ca", "city": "Winnipeg", "lat": 49.9, "lon": -97.1})

        assert r.json() == {"kind": "known", "text": "2.3km"}
        assert vendors.calls_to(ORS_HOST)[0].url.params["text"] == "Walmart Winnipeg"

    def test_no_location(self, api):
        r = api.get("/v1/distance", params={"store": "Costco", "strategy": "geodesic"})

        assert r.json() == {"kind": "unavailable", "text": "N/A"}
