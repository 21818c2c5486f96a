"""Value types passed between the identification pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


@dataclass(frozen=True)
class ClassificationResult:
    """A single ranked candidate."""

    label: str
    confidence: float


@dataclass(frozen=True)
class PredictionResult:
    """The best label of one pass plus the runners-up from the same pass.

    Alternatives are empty when the prediction comes from the reference-image
    fallback or when only one candidate exists.
    """

    label: str
    confidence: float
    alternatives: tuple[ClassificationResult, ...] = ()


class FailureKind(StrEnum):
    RESOURCE_UNAVAILABLE = "resource_unavailable"
    RESOURCE_TOO_LARGE = "resource_too_large"
    DECODE_FAILURE = "decode_failure"
    RESOLUTION_TOO_LOW = "resolution_too_low"
    INFERENCE_FAILURE = "inference_failure"
    LOW_CONFIDENCE = "low_confidence"


@dataclass(frozen=True)
class Failure:
    """Why a pipeline step could not produce its payload."""

    kind: FailureKind
    detail: str = ""

    def __str__(self) -> str:
        return f"{self.kind}: {self.detail}" if self.detail else str(self.kind)


class PredictionSource(StrEnum):
    MODEL = "model"
    MODEL_ROTATED = "model_rotated"
    REFERENCE_IMAGE = "reference_image"
    GUESS = "guess"
    DEFAULT = "default"
    NONE = "none"


@dataclass(frozen=True)
class Identification:
    """Outcome of one identification call, including the path taken."""

    prediction: PredictionResult | None
    source: PredictionSource
    failure: Failure | None = None
