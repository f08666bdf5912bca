"""
Resolution pipeline: photo (or typed query) => ranked, distance-annotated offers.

    idle -> capturing -> identifying -> [catalog_lookup] -> searching -> normalizing
         -> distance_annotating -> sorted -> done

Any stage can jump to `errored` with a message meant for the user. Nothing is retried;
the remedy is always to capture again.

Only `distance_annotating` fans out. Each offer's lookup succeeds or fails on its own,
and the batch is awaited in full before sorting.
"""

import asyncio
import logging
from collections import OrderedDict
from typing import Awaitable, Callable, List, Optional

from nearbuy.core.catalog import BarcodeLookupClient
from nearbuy.core.distance import DistanceStrategy
from nearbuy.core.errors import (
    CatalogError,
    LocationPermissionDenied,
    PositionUnavailableError,
    SearchError,
    UnknownError,
    VisionError,
)
from nearbuy.core.gemini import GeminiVisionClient
from nearbuy.core.geo import LocationProvider, RequestLocationProvider
from nearbuy.core.pricing import sort_by_price
from nearbuy.core.retailers import RetailerCatalog
from nearbuy.core.searchapi import ShoppingSearchClient
from nearbuy.schemas.identify import IdentificationMode, UpcIdentification
from nearbuy.schemas.offers import Offer
from nearbuy.schemas.pipeline import CaptureInput, GeoPoint, PipelineStage, PipelineState

logger = logging.getLogger(__name__)

CAPTURE_FAILED = "Failed to capture image."
BARCODE_NOT_DETECTED = "Could not detect a barcode in the image. Please try again with a clearer image."
EMPTY_QUERY = "Please enter a product to search for."
NO_RESULTS = SearchError.user_message

TransitionCallback = Callable[[PipelineState], None]


class ResolutionPipeline:
    """
    One pipeline, two construction-time flags:
      - identification_mode: barcode (UPC => catalog => search) or description (sentence => search)
      - distance strategy: routing (walking distance) or geodesic (straight line)
    """

    def __init__(
        self,
        *,
        vision: GeminiVisionClient,
        search: ShoppingSearchClient,
        distance: DistanceStrategy,
        retailers: RetailerCatalog,
        catalog: Optional[BarcodeLookupClient] = None,
        identification_mode: IdentificationMode = IdentificationMode.DESCRIPTION,
    ):
        self.vision = vision
        self.search = search
        self.distance = distance
        self.retailers = retailers
        self.catalog = catalog
        self.identification_mode = IdentificationMode(identification_mode)

    async def resolve_image(
        self,
        capture: CaptureInput,
        locator: Optional[LocationProvider] = None,
        on_transition: Optional[TransitionCallback] = None,
    ) -> PipelineState:
        emit = on_transition or _noop
        state = PipelineState()
        emit(state)

        state = state.advance(PipelineStage.CAPTURING)
        emit(state)
        if not capture.image:
            return _finish(state.fail(CAPTURE_FAILED), emit)

        state = state.advance(PipelineStage.IDENTIFYING)
        emit(state)
        try:
            identification = await self.vision.identify(
                capture.image, mode=self.identification_mode, mime_type=capture.mime_type
            )
        except VisionError as e:
            logger.warning("Identification failed: %s", e.message)
            return _finish(state.fail(self._vision_message()), emit)
        except Exception:
            logger.exception("Unexpected error while identifying product")
            return _finish(state.fail(UnknownError.user_message), emit)

        state = state.advance(PipelineStage.IDENTIFYING, identification=identification)

        if isinstance(identification, UpcIdentification):
            query = identification.code
            if self.catalog is not None and self.catalog.configured:
                state = state.advance(PipelineStage.CATALOG_LOOKUP)
                emit(state)
                try:
                    product = await self.catalog.lookup(identification.code)
                except CatalogError as e:
                    logger.warning("Catalog lookup failed for %s: %s", identification.code, e.message)
                    return _finish(state.fail(e.user_message), emit)
                except Exception:
                    logger.exception("Unexpected error during catalog lookup")
                    return _finish(state.fail(UnknownError.user_message), emit)
                query = product.search_query()
        else:
            query = identification.text

        locator = locator or _locator_for(capture.location)
        return await self._search_onward(state, query, capture.city, locator, emit)

    async def resolve_query(
        self,
        query: str,
        city: Optional[str] = None,
        locator: Optional[LocationProvider] = None,
        on_transition: Optional[TransitionCallback] = None,
    ) -> PipelineState:
        """Typed search: same pipeline, entered at `searching`."""
        emit = on_transition or _noop
        state = PipelineState()
        emit(state)

        query = (query or "").strip()
        if not query:
            state = state.advance(PipelineStage.SEARCHING)
            return _finish(state.fail(EMPTY_QUERY), emit)

        return await self._search_onward(state, query, city, locator or _locator_for(None), emit)

    def _vision_message(self) -> str:
        if self.identification_mode == IdentificationMode.BARCODE:
            return BARCODE_NOT_DETECTED
        return VisionError.user_message

    async def _search_onward(
        self,
        state: PipelineState,
        query: str,
        city: Optional[str],
        locator: LocationProvider,
        emit: TransitionCallback,
    ) -> PipelineState:
        state = state.advance(PipelineStage.SEARCHING, query=query)
        emit(state)
        try:
            offers = await self.search.search(query, city)
        except SearchError as e:
            # A failed search reads as "nothing found", never as a crash
            logger.warning("Search failed for %r: %s", query, e.message)
            offers = []
        except Exception:
            logger.exception("Unexpected error during search")
            return _finish(state.fail(UnknownError.user_message), emit)

        state = state.advance(PipelineStage.NORMALIZING, offers=tuple(offers))
        emit(state)
        offers = self._normalize(offers)

        state = state.advance(
            PipelineStage.DISTANCE_ANNOTATING,
            offers=tuple(offers),
            notice=None if offers else NO_RESULTS,
        )
        emit(state)
        offers = await self._annotate_distances(offers, city, locator)

        state = state.advance(PipelineStage.SORTED, offers=tuple(sort_by_price(offers)))
        emit(state)

        return _finish(state.advance(PipelineStage.DONE), emit)

    def _normalize(self, offers: List[Offer]) -> List[Offer]:
        allowed = set(self.retailers.canonical_names)
        out: List[Offer] = []
        for o in offers:
            store = self.retailers.normalize(o.seller)
            if store not in allowed:
                logger.info("Dropping offer from %r: %r is not a target retailer", o.seller, store)
                continue
            out.append(o.model_copy(update={"store": store}))
        return out

    async def _annotate_distances(
        self,
        offers: List[Offer],
        city: Optional[str],
        locator: LocationProvider,
    ) -> List[Offer]:
        if not offers:
            return offers

        origin = await self._origin(locator)
        results = await asyncio.gather(
            *(self.distance.estimate(origin, o.store or o.seller, city) for o in offers),
            return_exceptions=True,
        )

        annotated: List[Offer] = []
        for o, d in zip(offers, results):
            if isinstance(d, BaseException):
                logger.warning("Distance lookup for %r raised: %r", o.store, d)
                d = self.distance.unavailable()
            annotated.append(o.model_copy(update={"distance": d}))
        return annotated

    async def _origin(self, locator: LocationProvider) -> Optional[GeoPoint]:
        """Checked fresh on every request; a denied or missing position only costs the distances."""
        try:
            return await locator.locate()
        except (LocationPermissionDenied, PositionUnavailableError) as e:
            logger.warning("Device location unavailable: %s", e.message)
            return None


class ResolutionSession:
    """
    Last request wins. Starting a new resolution supersedes whatever is still in flight;
    the superseded run finishes but its outcome is dropped (returned as None).
    """

    def __init__(self, pipeline: ResolutionPipeline):
        self.pipeline = pipeline
        self._generation = 0
        self.latest: Optional[PipelineState] = None

    async def _run(self, factory: Callable[[], Awaitable[PipelineState]]) -> Optional[PipelineState]:
        self._generation += 1
        token = self._generation

        outcome = await factory()
        if token != self._generation:
            logger.info("Discarding superseded resolution (%d < %d)", token, self._generation)
            return None

        self.latest = outcome
        return outcome

    async def resolve_image(self, capture: CaptureInput, **kwargs) -> Optional[PipelineState]:
        return await self._run(lambda: self.pipeline.resolve_image(capture, **kwargs))

    async def resolve_query(self, query: str, **kwargs) -> Optional[PipelineState]:
        return await self._run(lambda: self.pipeline.resolve_query(query, **kwargs))


class SessionRegistry:
    """Client session id => ResolutionSession, bounded so stale sessions fall off."""

    def __init__(self, max_sessions: int = 1024):
        self.max_sessions = max_sessions
        self._sessions: "OrderedDict[str, ResolutionSession]" = OrderedDict()

    def get(self, session_id: str, pipeline: ResolutionPipeline) -> ResolutionSession:
        session = self._sessions.get(session_id)
        if session is None:
            session = ResolutionSession(pipeline)
            self._sessions[session_id] = session
        else:
            session.pipeline = pipeline
            self._sessions.move_to_end(session_id)

        while len(self._sessions) > self.max_sessions:
            self._sessions.popitem(last=False)
        return session

    def __len__(self) -> int:
        return len(self._sessions)


def _locator_for(location: Optional[GeoPoint]) -> LocationProvider:
    if location is None:
        return RequestLocationProvider()
    return RequestLocationProvider(location.latitude, location.longitude)


def _finish(state: PipelineState, emit: TransitionCallback) -> PipelineState:
    emit(state)
    if state.stage == PipelineStage.ERRORED:
        logger.info("Resolution errored at %s: %s", state.failed_stage.value, state.message)
    else:
        logger.info("Resolution done: %d offers for %r", len(state.offers), state.query)
    return state


def _noop(state: PipelineState) -> None:
    return None
