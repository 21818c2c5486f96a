"""Pydantic request/response schemas for the dragonfly identifier API."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class SpeciesCandidate(BaseModel):
    """A runner-up species with its score."""

    label: str
    confidence: float


class IdentifyResponse(BaseModel):
    """Result of identifying an uploaded photo."""

    label: str
    confidence: float = Field(ge=0.0)
    alternatives: list[SpeciesCandidate] = Field(
        default_factory=list,
        description="Second and third ranked species from the same model pass",
    )
    source: str = Field(
        description="'model', 'model_rotated', 'reference_image', 'guess' or 'default'",
    )
    timestamp: datetime


class LabelsResponse(BaseModel):
    """Species the classifier can output, in class index order."""

    labels: list[str]


class SightingSchema(BaseModel):
    """A recorded identification."""

    label: str
    confidence: float
    image_path: str
    timestamp: datetime


class SightingsResponse(BaseModel):
    sightings: list[SightingSchema]


class StatsResponse(BaseModel):
    """Summary of the sighting log."""

    total: int
    most_common: str | None
    average_confidence: float = Field(ge=0.0)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    inference_available: bool
    labels_loaded: int
    concurrent_requests: int
    queue_depth: int


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
