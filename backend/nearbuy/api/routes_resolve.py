from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from nearbuy.api.deps import PipelineFactory, get_pipeline_factory, get_sessions
from nearbuy.api.routes_offers import outcome_or_error
from nearbuy.core.distance import DistanceStrategyName
from nearbuy.core.geo import RequestLocationProvider
from nearbuy.core.pipeline import SessionRegistry
from nearbuy.schemas.identify import IdentificationMode
from nearbuy.schemas.pipeline import CaptureInput, PipelineState

router = APIRouter(prefix="/v1", tags=["resolve"])


@router.post("/resolve", response_model=PipelineState)
async def resolve(
    image: UploadFile = File(...),
    mode: Optional[IdentificationMode] = Form(None),
    strategy: Optional[DistanceStrategyName] = Form(None),
    city: Optional[str] = Form(None),
    lat: Optional[float] = Form(None),
    lon: Optional[float] = Form(None),
    session_id: Optional[str] = Form(None, max_length=128),
    factory: PipelineFactory = Depends(get_pipeline_factory),
    sessions: SessionRegistry = Depends(get_sessions),
):
    """
    Full flow for one captured photo:
    identify => (barcode lookup) => search => normalize => distances => cheapest first.

    lat/lon are the device position; leave them out when location permission was denied
    and every offer comes back with an "unavailable" distance.
    """
    capture = CaptureInput(
        image=await image.read(),
        mime_type=image.content_type or "image/png",
        city=city,
    )
    pipeline = factory.pipeline(mode=mode, strategy=strategy)
    locator = RequestLocationProvider(lat, lon)

    if session_id:
        outcome = await sessions.get(session_id, pipeline).resolve_image(capture, locator=locator)
    else:
        outcome = await pipeline.resolve_image(capture, locator=locator)

    return outcome_or_error(outcome)
