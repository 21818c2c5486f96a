"""Dragonfly identification: the end-to-end classification flow.

Flow for one call:
    load labels -> capability gate -> validate + preprocess -> infer + score
    -> (low confidence) rotate 90 degrees and infer once more
    -> (still nothing) reference-image fallback

Each step hands back either its payload or a ``Failure``; any failure jumps
straight to the fallback. ``identify`` never raises.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from dragonflyid.ml.image_classifier import InferenceError
from dragonflyid.ml.postprocessing import post_process
from dragonflyid.ml.preprocessing import ImagePreprocessor, load_image, rotate_quarter_turn
from dragonflyid.ml.results import (
    Failure,
    FailureKind,
    Identification,
    PredictionResult,
    PredictionSource,
)

if TYPE_CHECKING:
    from PIL import Image

    from dragonflyid.config import Settings
    from dragonflyid.ml.fallback import ReferenceImageResolver
    from dragonflyid.ml.image_classifier import InferenceAdapter
    from dragonflyid.ml.labels import LabelStore

logger = logging.getLogger(__name__)


class DragonflyIdentifier:
    """Identifies the dragonfly species in a photo."""

    def __init__(
        self,
        settings: Settings,
        label_store: LabelStore,
        adapter: InferenceAdapter,
        resolver: ReferenceImageResolver,
        preprocessor: ImagePreprocessor | None = None,
    ) -> None:
        self._settings = settings
        self._labels = label_store
        self._adapter = adapter
        self._resolver = resolver
        self._preprocessor = preprocessor or ImagePreprocessor()
        # Sessions are not shared between concurrent callers.
        self._adapter_lock = threading.Lock()

    @property
    def inference_available(self) -> bool:
        return self._adapter.available

    def identify(self, image_path: str) -> PredictionResult | None:
        """Return the species prediction for ``image_path``, or ``None``."""
        return self.identify_detailed(image_path).prediction

    def identify_detailed(self, image_path: str) -> Identification:
        """Identify ``image_path`` and report which path produced the answer."""
        try:
            return self._run(image_path)
        except Exception:
            logger.exception("Unexpected error identifying %s", image_path)
            return self._fall_back(image_path, None)

    def dispose(self) -> None:
        """Release the classifier. Safe when it never loaded."""
        with self._adapter_lock:
            self._adapter.close()

    # -- Internal -----------------------------------------------------------

    def _run(self, image_path: str) -> Identification:
        labels = self._labels.load()

        if not self._adapter.available:
            return self._fall_back(
                image_path,
                Failure(FailureKind.RESOURCE_UNAVAILABLE, "inference not available"),
            )

        loaded = load_image(
            image_path,
            max_file_size=self._settings.max_file_size,
            min_dimension=self._settings.min_image_dimension,
            max_pixels=self._settings.max_image_pixels,
        )
        if isinstance(loaded, Failure):
            return self._fall_back(image_path, loaded)

        outcome = self._score(loaded, labels)
        if isinstance(outcome, PredictionResult):
            return Identification(outcome, PredictionSource.MODEL)
        if outcome.kind is not FailureKind.LOW_CONFIDENCE:
            return self._fall_back(image_path, outcome)

        logger.debug("Low confidence for %s, retrying rotated", image_path)
        outcome = self._score(rotate_quarter_turn(loaded), labels)
        if isinstance(outcome, PredictionResult):
            return Identification(outcome, PredictionSource.MODEL_ROTATED)
        return self._fall_back(image_path, outcome)

    def _score(self, image: Image.Image, labels: tuple[str, ...]) -> PredictionResult | Failure:
        tensor = self._preprocessor.preprocess(image)
        try:
            with self._adapter_lock:
                scores = self._adapter.classify(tensor)
        except InferenceError as exc:
            return Failure(FailureKind.INFERENCE_FAILURE, str(exc))

        if len(scores) != len(labels):
            return Failure(
                FailureKind.INFERENCE_FAILURE,
                f"model returned {len(scores)} scores for {len(labels)} labels",
            )

        prediction = post_process(scores, labels)
        if prediction is None:
            return Failure(FailureKind.LOW_CONFIDENCE, f"best score {max(scores, default=0.0):.3f}")
        return prediction

    def _fall_back(self, image_path: str, failure: Failure | None) -> Identification:
        if failure is not None:
            logger.info("Using reference fallback for %s (%s)", image_path, failure)

        try:
            labels = self._labels.load()
        except Exception:
            logger.exception("Labels unavailable for fallback")
            return Identification(None, PredictionSource.NONE, failure)

        prediction, source = self._resolver.resolve_with_source(image_path, labels)
        return Identification(prediction, source, failure)
