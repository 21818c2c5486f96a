"""Sighting history and summary statistics.

The log lives with whoever records sightings (the web app keeps one in its
state); identification itself never touches it.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from dragonflyid.ml.results import PredictionResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Sighting:
    """One recorded identification."""

    label: str
    confidence: float
    image_path: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_prediction(
        cls,
        prediction: PredictionResult,
        image_path: str,
        timestamp: datetime | None = None,
    ) -> Sighting:
        return cls(
            label=prediction.label,
            confidence=prediction.confidence,
            image_path=image_path,
            timestamp=timestamp or datetime.now(UTC),
        )


class SightingLog:
    """Append-only in-memory sighting history, iterated newest first."""

    def __init__(self, sightings: Iterable[Sighting] = ()) -> None:
        self._sightings: list[Sighting] = list(sightings)

    def record(self, sighting: Sighting) -> None:
        self._sightings.append(sighting)

    def recent(self, limit: int | None = None) -> list[Sighting]:
        newest_first = self._sightings[::-1]
        return newest_first if limit is None else newest_first[:limit]

    def __iter__(self) -> Iterator[Sighting]:
        return reversed(self._sightings)

    def __len__(self) -> int:
        return len(self._sightings)


@dataclass(frozen=True)
class SightingStatistics:
    total: int
    most_common: str | None
    average_confidence: float


def summarize(sightings: Iterable[Sighting]) -> SightingStatistics:
    """Count sightings, find the most frequent species and the mean confidence.

    Ties for most common go to the species met first while iterating.
    """
    counts: Counter[str] = Counter()
    total = 0
    confidence_sum = 0.0
    for sighting in sightings:
        counts[sighting.label] += 1
        confidence_sum += sighting.confidence
        total += 1

    if total == 0:
        return SightingStatistics(total=0, most_common=None, average_confidence=0.0)

    most_common, _count = counts.most_common(1)[0]
    return SightingStatistics(
        total=total,
        most_common=most_common,
        average_confidence=confidence_sum / total,
    )


class SightingSink(Protocol):
    """Receives sightings for remote storage."""

    def send(self, sighting: Sighting) -> None: ...


class NullSightingSink:
    """Remote sync placeholder: accepts sightings and drops them."""

    def send(self, sighting: Sighting) -> None:
        logger.debug("Remote sync disabled, dropping sighting of %s", sighting.label)
