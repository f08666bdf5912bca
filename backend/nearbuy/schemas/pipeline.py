from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from nearbuy.schemas.identify import IdentificationResult
from nearbuy.schemas.offers import ResolvedResultSet


class GeoPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    latitude: float
    longitude: float


class CaptureInput(BaseModel):
    """One photo from the client plus whatever context it sent along."""
    model_config = ConfigDict(frozen=True)

    image: bytes = Field(repr=False)
    mime_type: str = "image/png"
    city: Optional[str] = None
    location: Optional[GeoPoint] = None


class PipelineStage(str, Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    IDENTIFYING = "identifying"
    CATALOG_LOOKUP = "catalog_lookup"
    SEARCHING = "searching"
    NORMALIZING = "normalizing"
    DISTANCE_ANNOTATING = "distance_annotating"
    SORTED = "sorted"
    DONE = "done"
    ERRORED = "errored"


class PipelineState(BaseModel):
    """
    Immutable snapshot of one resolution. Every transition builds a new one via `advance`.

    Terminal snapshots:
      - DONE carries `offers` (the ResolvedResultSet) and maybe a `notice` like "No results found."
      - ERRORED carries `message` and `failed_stage`
    """
    model_config = ConfigDict(frozen=True)

    stage: PipelineStage = PipelineStage.IDLE
    query: Optional[str] = None
    identification: Optional[IdentificationResult] = None
    offers: ResolvedResultSet = ()
    notice: Optional[str] = None
    message: Optional[str] = None
    failed_stage: Optional[PipelineStage] = None

    @property
    def is_terminal(self) -> bool:
        return self.stage in (PipelineStage.DONE, PipelineStage.ERRORED)

    def advance(self, stage: PipelineStage, **changes) -> "PipelineState":
        return self.model_copy(update={"stage": stage, **changes})

    def fail(self, message: str) -> "PipelineState":
        return self.model_copy(
            update={"stage": PipelineStage.ERRORED, "failed_stage": self.stage, "message": message}
        )


# Only terminal snapshots are handed back to callers
PipelineOutcome = PipelineState
