import math
from typing import Optional

from nearbuy.core.errors import LocationPermissionDenied, PositionUnavailableError
from nearbuy.schemas.pipeline import GeoPoint

EARTH_RADIUS_KM = 6371.0


class LocationProvider:
    """Where the device is right now. Implementations must not cache between calls."""

    async def locate(self) -> GeoPoint:
        raise NotImplementedError


class RequestLocationProvider(LocationProvider):
    """
    Device coordinates sent by the client with the request.

    The client only sends them once the user has granted location permission, so
    missing coordinates mean permission was denied.
    """

    def __init__(self, latitude: Optional[float] = None, longitude: Optional[float] = None):
        self.latitude = latitude
        self.longitude = longitude

    async def locate(self) -> GeoPoint:
        if self.latitude is None or self.longitude is None:
            raise LocationPermissionDenied("Permission to access location was denied")

        lat, lon = float(self.latitude), float(self.longitude)
        if not (math.isfinite(lat) and math.isfinite(lon)) or abs(lat) > 90 or abs(lon) > 180:
            raise PositionUnavailableError(f"Invalid device position ({lat}, {lon})")
        return GeoPoint(latitude=lat, longitude=lon)


def haversine_km(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle distance in kilometers."""
    lat1, lat2 = math.radians(a.latitude), math.radians(b.latitude)
    dlat = lat2 - lat1
    dlon = math.radians(b.longitude - a.longitude)

    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(h)))


def format_distance(km: float) -> str:
    """0.45 => "450m", 2.3 => "2.3km". Meters round half up; anything that rounds to 1000m is shown in km."""
    meters = math.floor(km * 1000 + 0.5)
    if meters < 1000:
        return f"{meters}m"
    return f"{km:.1f}km"
