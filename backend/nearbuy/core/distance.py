import logging
from enum import Enum
from typing import Optional

import httpx

from nearbuy.core.config import Settings
from nearbuy.core.errors import DistanceError
from nearbuy.core.geo import format_distance, haversine_km
from nearbuy.core.http import redact_key, safe_body
from nearbuy.schemas.offers import (
    GEODESIC_UNAVAILABLE,
    ROUTING_UNAVAILABLE,
    Distance,
    KnownDistance,
    UnavailableDistance,
)
from nearbuy.schemas.pipeline import GeoPoint

logger = logging.getLogger(__name__)

ORS_GEOCODE_URL = "https://api.openrouteservice.org/geocode/search"
ORS_WALKING_URL = "https://api.openrouteservice.org/v2/directions/foot-walking"
NOMINATIM_SEARCH_URL = "https://nominatim.openstreetmap.org/search"


class DistanceStrategyName(str, Enum):
    ROUTING = "routing"
    GEODESIC = "geodesic"


class DistanceStrategy:
    """
    Store name + city => distance from the device.

    Subclasses implement `_estimate_km` and raise freely; `estimate` turns every failure
    into this strategy's "unavailable" value so one store can never fail a whole result list.
    """

    unavailable_text = ROUTING_UNAVAILABLE

    def __init__(self, client: httpx.AsyncClient):
        self.client = client

    def unavailable(self) -> UnavailableDistance:
        return UnavailableDistance(text=self.unavailable_text)

    async def estimate(self, origin: Optional[GeoPoint], store_name: str, city: Optional[str]) -> Distance:
        if origin is None:
            return self.unavailable()
        try:
            km = await self._estimate_km(origin, store_name, city)
        except DistanceError as e:
            logger.warning("Distance to %r unavailable: %s", store_name, e.message)
            return self.unavailable()
        except Exception as e:
            logger.warning("Distance to %r failed: %s", store_name, redact_key(repr(e)))
            return self.unavailable()
        return KnownDistance(text=format_distance(km))

    async def _estimate_km(self, origin: GeoPoint, store_name: str, city: Optional[str]) -> float:
        raise NotImplementedError


class RoutingDistanceStrategy(DistanceStrategy):
    """
    OpenRouteService: geocode the store as a venue inside one country, take the first
    (assumed nearest) match, then ask for the walking route length.
    """

    unavailable_text = ROUTING_UNAVAILABLE

    def __init__(self, client: httpx.AsyncClient, api_key: str, country: str = "CA"):
        super().__init__(client)
        self.api_key = (api_key or "").strip()
        self.country = country

    async def geocode(self, store_name: str, city: Optional[str]) -> GeoPoint:
        text = f"{store_name} {city}".strip() if city else store_name
        params = {
            "api_key": self.api_key,
            "text": text,
            "boundary.country": self.country,
            "layers": "venue",
        }
        r = await self.client.get(ORS_GEOCODE_URL, params=params)
        if r.status_code >= 400:
            raise DistanceError(f"Geocoding failed: {r.status_code}", status_code=r.status_code, body=safe_body(r))

        features = (r.json() or {}).get("features") or []
        if not features:
            raise DistanceError(f"No store locations found for {text!r}")

        lon, lat = features[0]["geometry"]["coordinates"][:2]
        logger.debug("Geocoded %r => %s (%s, %s)", text, features[0].get("properties", {}).get("name"), lat, lon)
        return GeoPoint(latitude=float(lat), longitude=float(lon))

    async def walking_meters(self, origin: GeoPoint, dest: GeoPoint) -> float:
        r = await self.client.post(
            ORS_WALKING_URL,
            headers={"Authorization": self.api_key},
            json={
                "coordinates": [
                    [origin.longitude, origin.latitude],
                    [dest.longitude, dest.latitude],
                ]
            },
        )
        if r.status_code >= 400:
            raise DistanceError(f"Routing failed: {r.status_code}", status_code=r.status_code, body=safe_body(r))

        routes = (r.json() or {}).get("routes") or []
        if not routes:
            raise DistanceError("Routing returned no routes")
        return float(routes[0]["summary"]["distance"])

    async def _estimate_km(self, origin: GeoPoint, store_name: str, city: Optional[str]) -> float:
        if not self.api_key:
            raise DistanceError("ORS_API_KEY is not set")

        dest = await self.geocode(store_name, city)
        meters = await self.walking_meters(origin, dest)
        return meters / 1000.0


class GeodesicDistanceStrategy(DistanceStrategy):
    """
    Nominatim place search for "store, city"; straight-line distance to every candidate,
    keep the closest.
    """

    unavailable_text = GEODESIC_UNAVAILABLE

    def __init__(self, client: httpx.AsyncClient, user_agent: str, limit: int = 10):
        super().__init__(client)
        self.user_agent = user_agent
        self.limit = limit

    async def _estimate_km(self, origin: GeoPoint, store_name: str, city: Optional[str]) -> float:
        q = f"{store_name},{city}" if city else store_name
        r = await self.client.get(
            NOMINATIM_SEARCH_URL,
            params={"q": q, "format": "json", "addressdetails": 1, "limit": self.limit},
            headers={"User-Agent": self.user_agent},
        )
        if r.status_code >= 400:
            raise DistanceError(f"Place search failed: {r.status_code}", status_code=r.status_code, body=safe_body(r))

        places = r.json() or []
        if not places:
            raise DistanceError(f"No places found for {q!r}")

        distances = []
        for p in places:
            try:
                point = GeoPoint(latitude=float(p["lat"]), longitude=float(p["lon"]))
            except (KeyError, TypeError, ValueError):
                logger.debug("Skipping place without usable coordinates: %r", p)
                continue
            distances.append(haversine_km(origin, point))

        if not distances:
            raise DistanceError(f"No places with coordinates for {q!r}")
        return min(distances)


def build_strategy(name: DistanceStrategyName, client: httpx.AsyncClient, cfg: Settings) -> DistanceStrategy:
    if DistanceStrategyName(name) == DistanceStrategyName.GEODESIC:
        return GeodesicDistanceStrategy(client, user_agent=cfg.NOMINATIM_USER_AGENT)
    return RoutingDistanceStrategy(client, api_key=cfg.ORS_API_KEY, country=cfg.ROUTING_COUNTRY)
