"""
Nearbuy API - FastAPI Main Entry

LOCAL:
    cd backend
    source .venv/bin/activate
    python -m uvicorn nearbuy.main:app --reload --host 0.0.0.0 --port 8000

TEST:
    curl -i http://127.0.0.1:8000/health
    curl -i "http://127.0.0.1:8000/v1/offers?q=coca-cola%202L&city=Winnipeg&lat=49.8951&lon=-97.1384"
    curl -i -F image=@can.png -F mode=description -F city=Winnipeg \
         -F lat=49.8951 -F lon=-97.1384 http://127.0.0.1:8000/v1/resolve

PRODUCTION:
    pip install .
    python -m uvicorn nearbuy.main:app --host 0.0.0.0 --port $PORT
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from nearbuy.api.deps import PipelineFactory
from nearbuy.api.routes_distance import router as distance_router
from nearbuy.api.routes_identify import router as identify_router
from nearbuy.api.routes_meta import router as meta_router
from nearbuy.api.routes_offers import router as offers_router
from nearbuy.api.routes_resolve import router as resolve_router
from nearbuy.core.config import Settings, settings
from nearbuy.core.http import build_client
from nearbuy.core.pipeline import SessionRegistry


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    # httpx logs full request URLs, which carry API keys
    logging.getLogger("httpx").setLevel(logging.WARNING)


def create_app(cfg: Settings = settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # One shared client for every vendor call
        async with build_client(cfg, transport=transport) as client:
            app.state.pipeline_factory = PipelineFactory(client, cfg)
            yield

    app = FastAPI(
        title="Nearbuy API",
        version=cfg.APP_VERSION,
        description="Photo or query => cheapest in-stock offers at nearby retailers",
        lifespan=lifespan,
    )
    app.state.settings = cfg
    app.state.sessions = SessionRegistry()

    # Browsers / Swagger docs need CORS; the mobile client does not
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/")
    def root():
        return {
            "name": "Nearbuy API",
            "status": "ok",
            "docs": "/docs",
            "health": "/health",
            "version": "/version",
        }

    app.include_router(meta_router)
    app.include_router(identify_router)
    app.include_router(offers_router)
    app.include_router(resolve_router)
    app.include_router(distance_router)

    return app


setup_logging(settings.LOG_LEVEL)
app = create_app()
