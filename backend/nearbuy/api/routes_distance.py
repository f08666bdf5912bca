from typing import Optional

from fastapi import APIRouter, Depends

from nearbuy.api.deps import PipelineFactory, get_pipeline_factory
from nearbuy.core.distance import DistanceStrategyName
from nearbuy.core.errors import LocationPermissionDenied, PositionUnavailableError
from nearbuy.core.geo import RequestLocationProvider
from nearbuy.schemas.offers import Distance

router = APIRouter(prefix="/v1", tags=["distance"])


@router.get("/distance", response_model=Distance)
async def distance(
    store: str,
    city: Optional[str] = None,
    lat: Optional[float] = None,
    lon: Optional[float] = None,
    strategy: Optional[DistanceStrategyName] = None,
    factory: PipelineFactory = Depends(get_pipeline_factory),
):
    """Nearest location of one store. Never an error: failures come back as the "unavailable" value."""
    estimator = factory.distance(strategy)
    try:
        origin = await RequestLocationProvider(lat, lon).locate()
    except (LocationPermissionDenied, PositionUnavailableError):
        return estimator.unavailable()

    return await estimator.estimate(origin, factory.retailers.normalize(store), city)
