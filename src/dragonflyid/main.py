"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from dragonflyid.api.routes import router
from dragonflyid.config import Settings, get_settings
from dragonflyid.ml.fallback import ReferenceImageResolver
from dragonflyid.ml.identifier import DragonflyIdentifier
from dragonflyid.ml.image_classifier import create_inference_adapter
from dragonflyid.ml.inference import InferencePool
from dragonflyid.ml.labels import LabelStore
from dragonflyid.ml.model_manager import OnnxModelManager
from dragonflyid.sightings import NullSightingSink, SightingLog

logger = logging.getLogger(__name__)


def build_identifier(settings: Settings, label_store: LabelStore) -> DragonflyIdentifier:
    """Wire the identification pipeline for the current host."""
    adapter = create_inference_adapter(settings, OnnxModelManager(settings))
    return DragonflyIdentifier(
        settings=settings,
        label_store=label_store,
        adapter=adapter,
        resolver=ReferenceImageResolver(strategy=settings.fallback_strategy),
    )


def init_state(app: FastAPI, settings: Settings) -> None:
    """Construct the long-lived services and attach them to the app."""
    label_store = LabelStore(settings.labels_path)
    label_store.load()

    app.state.settings = settings
    app.state.label_store = label_store
    app.state.identifier = build_identifier(settings, label_store)
    app.state.inference_pool = InferencePool(settings)
    app.state.sighting_log = SightingLog()
    app.state.sighting_sink = NullSightingSink()


def close_state(app: FastAPI) -> None:
    """Release what ``init_state`` created."""
    app.state.inference_pool.shutdown()
    app.state.identifier.dispose()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: initialize on startup, clean up on shutdown."""
    settings = get_settings()

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    logger.info(
        "Starting dragonfly identifier (device=%s, inference_enabled=%s, model=%s, labels=%s)",
        settings.device,
        settings.inference_enabled,
        settings.model_path,
        settings.labels_path,
    )

    init_state(app, settings)
    logger.info(
        "Dragonfly identifier ready (inference_available=%s)",
        app.state.identifier.inference_available,
    )
    yield

    logger.info("Shutting down dragonfly identifier")
    close_state(app)
    logger.info("Shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title="Dragonfly Identifier",
        description="Identify dragonfly species from photos and keep a sighting log",
        version="0.1.0",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.include_router(router)
    return application


app = create_app()


def run() -> None:
    """Console entry point: serve the API with uvicorn."""
    settings = get_settings()
    uvicorn.run("dragonflyid.main:app", host=settings.host, port=settings.port)
