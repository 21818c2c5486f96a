"""Tests for the sighting log and statistics."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from dragonflyid.ml.results import PredictionResult
from dragonflyid.sightings import NullSightingSink, Sighting, SightingLog, SightingStatistics, summarize

T0 = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


def _sighting(label: str, confidence: float, minutes: int = 0) -> Sighting:
    return Sighting(
        label=label,
        confidence=confidence,
        image_path=f"{label.lower().replace(' ', '_')}.jpg",
        timestamp=T0 + timedelta(minutes=minutes),
    )


class TestSighting:
    def test_from_prediction(self) -> None:
        prediction = PredictionResult(label="Blue Dasher", confidence=0.85)

        sighting = Sighting.from_prediction(prediction, image_path="p2.jpg", timestamp=T0)

        assert sighting == Sighting(label="Blue Dasher", confidence=0.85, image_path="p2.jpg", timestamp=T0)

    def test_default_timestamp_is_utc_now(self) -> None:
        before = datetime.now(UTC)
        sighting = Sighting.from_prediction(PredictionResult("Blue Dasher", 0.9), image_path="x.jpg")
        assert before <= sighting.timestamp <= datetime.now(UTC)


class TestSightingLog:
    def test_iterates_newest_first(self) -> None:
        log = SightingLog()
        log.record(_sighting("Blue Dasher", 0.9, 0))
        log.record(_sighting("Widow Skimmer", 0.8, 1))
        log.record(_sighting("Brown Hawker", 0.7, 2))

        assert [s.label for s in log] == ["Brown Hawker", "Widow Skimmer", "Blue Dasher"]
        assert len(log) == 3

    def test_recent_limit(self) -> None:
        log = SightingLog([_sighting("Blue Dasher", 0.9, 0), _sighting("Widow Skimmer", 0.8, 1)])

        assert [s.label for s in log.recent(1)] == ["Widow Skimmer"]
        assert len(log.recent()) == 2

    def test_empty_log(self) -> None:
        log = SightingLog()
        assert len(log) == 0
        assert list(log) == []


class TestSummarize:
    def test_empty(self) -> None:
        assert summarize([]) == SightingStatistics(total=0, most_common=None, average_confidence=0.0)

    def test_counts_and_average(self) -> None:
        sightings = [
            _sighting("Blue Dasher", 0.9),
            _sighting("Widow Skimmer", 0.3),
            _sighting("Blue Dasher", 0.6),
        ]

        stats = summarize(sightings)

        assert stats.total == 3
        assert stats.most_common == "Blue Dasher"
        assert stats.average_confidence == pytest.approx(0.6)

    def test_tie_goes_to_first_seen(self) -> None:
        log = SightingLog()
        log.record(_sighting("Blue Dasher", 0.9, 0))
        log.record(_sighting("Widow Skimmer", 0.8, 1))

        assert summarize(log).most_common == "Widow Skimmer"


class TestNullSightingSink:
    def test_send_accepts_sighting(self) -> None:
        NullSightingSink().send(_sighting("Blue Dasher", 0.9))
