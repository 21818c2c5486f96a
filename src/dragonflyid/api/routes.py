"""API route definitions."""

from __future__ import annotations

import logging
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

from fastapi import APIRouter, HTTPException, Query, Request, UploadFile, status

from dragonflyid.api.schemas import (
    ErrorResponse,
    HealthResponse,
    IdentifyResponse,
    LabelsResponse,
    SightingSchema,
    SightingsResponse,
    SpeciesCandidate,
    StatsResponse,
)
from dragonflyid.sightings import Sighting, summarize

if TYPE_CHECKING:
    from dragonflyid.config import Settings
    from dragonflyid.ml.identifier import DragonflyIdentifier
    from dragonflyid.ml.inference import InferencePool
    from dragonflyid.ml.labels import LabelStore
    from dragonflyid.sightings import SightingLog, SightingSink

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1")

HTTP_422_UNIDENTIFIED = 422
UPLOAD_CHUNK_SIZE = 64 * 1024


def _get_identifier(request: Request) -> DragonflyIdentifier:
    identifier: DragonflyIdentifier = request.app.state.identifier
    return identifier


def _get_inference_pool(request: Request) -> InferencePool:
    pool: InferencePool = request.app.state.inference_pool
    return pool


def _get_label_store(request: Request) -> LabelStore:
    store: LabelStore = request.app.state.label_store
    return store


def _get_sighting_log(request: Request) -> SightingLog:
    log: SightingLog = request.app.state.sighting_log
    return log


def _get_sighting_sink(request: Request) -> SightingSink:
    sink: SightingSink = request.app.state.sighting_sink
    return sink


def _get_settings(request: Request) -> Settings:
    settings: Settings = request.app.state.settings
    return settings


def _upload_name(file: UploadFile) -> str:
    # Keep only the base name; it drives the reference-image lookup.
    name = Path(file.filename or "").name
    if name in ("", ".", ".."):
        return "upload"
    return name


def _save_upload(file: UploadFile, path: Path, limit: int) -> None:
    """Copy at most ``limit + 1`` bytes, enough for ``load_image`` to reject oversized photos."""
    remaining = limit + 1
    with path.open("wb") as out:
        while remaining > 0:
            chunk = file.file.read(min(UPLOAD_CHUNK_SIZE, remaining))
            if not chunk:
                break
            out.write(chunk)
            remaining -= len(chunk)


def _to_schema(sighting: Sighting) -> SightingSchema:
    return SightingSchema(
        label=sighting.label,
        confidence=sighting.confidence,
        image_path=sighting.image_path,
        timestamp=sighting.timestamp,
    )


@router.post(
    "/identify",
    response_model=IdentifyResponse,
    responses={
        HTTP_422_UNIDENTIFIED: {"model": ErrorResponse},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse},
    },
    summary="Identify the dragonfly in a photo",
)
async def identify(request: Request, file: UploadFile) -> IdentifyResponse:
    """Identify an uploaded photo and add it to the sighting log."""
    identifier = _get_identifier(request)
    pool = _get_inference_pool(request)
    name = _upload_name(file)

    with tempfile.TemporaryDirectory(prefix="dragonflyid-") as tmp_dir:
        image_path = Path(tmp_dir) / name
        _save_upload(file, image_path, _get_settings(request).max_file_size)

        try:
            identification = await pool.identify(identifier, str(image_path))
        except TimeoutError:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Identifier busy, try again shortly",
            ) from None

    prediction = identification.prediction
    if prediction is None:
        raise HTTPException(
            status_code=HTTP_422_UNIDENTIFIED,
            detail="Unable to identify dragonfly in the image",
        )

    sighting = Sighting.from_prediction(prediction, image_path=name)
    _get_sighting_log(request).record(sighting)
    try:
        _get_sighting_sink(request).send(sighting)
    except Exception:
        logger.exception("Failed to forward sighting of %s", sighting.label)

    return IdentifyResponse(
        label=prediction.label,
        confidence=prediction.confidence,
        alternatives=[SpeciesCandidate(label=alt.label, confidence=alt.confidence) for alt in prediction.alternatives],
        source=str(identification.source),
        timestamp=sighting.timestamp,
    )


@router.get(
    "/labels",
    response_model=LabelsResponse,
    summary="List species labels",
)
async def list_labels(request: Request) -> LabelsResponse:
    """Return the species the classifier knows, in class index order."""
    return LabelsResponse(labels=list(_get_label_store(request).load()))


@router.get(
    "/sightings",
    response_model=SightingsResponse,
    summary="List recorded sightings",
)
async def list_sightings(
    request: Request,
    limit: Annotated[int | None, Query(ge=1)] = None,
) -> SightingsResponse:
    """Return recorded sightings, newest first."""
    log = _get_sighting_log(request)
    return SightingsResponse(sightings=[_to_schema(s) for s in log.recent(limit)])


@router.get(
    "/sightings/stats",
    response_model=StatsResponse,
    summary="Sighting statistics",
)
async def sighting_stats(request: Request) -> StatsResponse:
    """Return totals, most common species and average confidence."""
    stats = summarize(_get_sighting_log(request))
    return StatsResponse(
        total=stats.total,
        most_common=stats.most_common,
        average_confidence=stats.average_confidence,
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
)
async def health(request: Request) -> HealthResponse:
    """Return service health status."""
    pool = _get_inference_pool(request)
    return HealthResponse(
        status="ok",
        inference_available=_get_identifier(request).inference_available,
        labels_loaded=len(_get_label_store(request).load()),
        concurrent_requests=pool.active_count,
        queue_depth=pool.queue_depth,
    )
