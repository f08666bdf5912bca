from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from nearbuy.api.deps import PipelineFactory, get_pipeline_factory, get_sessions
from nearbuy.core.distance import DistanceStrategyName
from nearbuy.core.geo import RequestLocationProvider
from nearbuy.core.pipeline import SessionRegistry
from nearbuy.schemas.pipeline import PipelineStage, PipelineState

router = APIRouter(prefix="/v1", tags=["offers"])


def outcome_or_error(outcome: Optional[PipelineState]) -> PipelineState:
    """
    Shared by the offers and resolve routes:
      - superseded by a newer request from the same session => 409
      - errored => 422 with the stage and the user-facing message
    """
    if outcome is None:
        raise HTTPException(
            status_code=409,
            detail={"error": "superseded", "message": "A newer request replaced this one."},
        )
    if outcome.stage == PipelineStage.ERRORED:
        raise HTTPException(
            status_code=422,
            detail={
                "error": "resolution_failed",
                "stage": outcome.failed_stage.value if outcome.failed_stage else None,
                "message": outcome.message,
            },
        )
    return outcome


@router.get("/offers", response_model=PipelineState)
async def offers(
    q: str,
    city: Optional[str] = None,
    lat: Optional[float] = None,
    lon: Optional[float] = None,
    strategy: Optional[DistanceStrategyName] = None,
    session_id: Optional[str] = Query(None, max_length=128),
    factory: PipelineFactory = Depends(get_pipeline_factory),
    sessions: SessionRegistry = Depends(get_sessions),
):
    """
    Typed search: target-retailer offers for `q`, cheapest first, each with a distance
    (or an explicit "unavailable" when lat/lon are missing).
    """
    pipeline = factory.pipeline(strategy=strategy)
    locator = RequestLocationProvider(lat, lon)

    if session_id:
        outcome = await sessions.get(session_id, pipeline).resolve_query(q, city=city, locator=locator)
    else:
        outcome = await pipeline.resolve_query(q, city=city, locator=locator)

    return outcome_or_error(outcome)
