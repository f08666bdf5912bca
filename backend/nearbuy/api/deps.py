from typing import Optional

import httpx
from fastapi import Request

from nearbuy.core.catalog import BarcodeLookupClient
from nearbuy.core.config import Settings
from nearbuy.core.distance import DistanceStrategy, DistanceStrategyName, build_strategy
from nearbuy.core.gemini import GeminiVisionClient
from nearbuy.core.pipeline import ResolutionPipeline, SessionRegistry
from nearbuy.core.retailers import RetailerCatalog
from nearbuy.core.searchapi import ShoppingSearchClient
from nearbuy.schemas.identify import IdentificationMode


class PipelineFactory:
    """
    Builds vendor clients and pipelines on top of the app's shared AsyncClient.
    Mode/strategy flags are resolved here, once per request.
    """

    def __init__(self, client: httpx.AsyncClient, cfg: Settings):
        self.client = client
        self.cfg = cfg
        self.retailers = RetailerCatalog(cfg.RETAILER_ALLOW_LIST)

    def vision(self) -> GeminiVisionClient:
        return GeminiVisionClient(self.client, api_key=self.cfg.GEMINI_API_KEY, model=self.cfg.GEMINI_MODEL)

    def search(self) -> ShoppingSearchClient:
        return ShoppingSearchClient(self.client, self.cfg, self.retailers)

    def catalog(self) -> BarcodeLookupClient:
        return BarcodeLookupClient(self.client, api_key=self.cfg.BARCODE_LOOKUP_API_KEY)

    def distance(self, strategy: Optional[DistanceStrategyName] = None) -> DistanceStrategy:
        return build_strategy(strategy or DistanceStrategyName(self.cfg.DISTANCE_STRATEGY), self.client, self.cfg)

    def pipeline(
        self,
        mode: Optional[IdentificationMode] = None,
        strategy: Optional[DistanceStrategyName] = None,
    ) -> ResolutionPipeline:
        return ResolutionPipeline(
            vision=self.vision(),
            search=self.search(),
            distance=self.distance(strategy),
            retailers=self.retailers,
            catalog=self.catalog(),
            identification_mode=mode or IdentificationMode(self.cfg.IDENTIFICATION_MODE),
        )


def get_pipeline_factory(request: Request) -> PipelineFactory:
    return request.app.state.pipeline_factory


def get_sessions(request: Request) -> SessionRegistry:
    return request.app.state.sessions
