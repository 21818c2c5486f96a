"""Turn raw classifier scores into a ranked, confidence-gated prediction."""

from __future__ import annotations

from typing import TYPE_CHECKING

from dragonflyid.ml.results import ClassificationResult, PredictionResult

if TYPE_CHECKING:
    from collections.abc import Sequence

TOP_K: int = 3
CONFIDENCE_THRESHOLD: float = 0.5


def top_k_predictions(
    scores: Sequence[float],
    labels: Sequence[str],
    k: int = TOP_K,
) -> list[ClassificationResult]:
    """Return the k best-scoring labels, highest first.

    Equal scores keep their index order, so the lower class index ranks first.
    """
    count = min(len(scores), len(labels))
    ranked = sorted(range(count), key=lambda i: scores[i], reverse=True)
    return [ClassificationResult(label=labels[i], confidence=float(scores[i])) for i in ranked[:k]]


def post_process(
    scores: Sequence[float],
    labels: Sequence[str],
    threshold: float = CONFIDENCE_THRESHOLD,
) -> PredictionResult | None:
    """Pick the best label, or ``None`` when the model is not confident enough."""
    top = top_k_predictions(scores, labels)
    if not top:
        return None

    best = top[0]
    if best.confidence < threshold:
        return None

    return PredictionResult(
        label=best.label,
        confidence=best.confidence,
        alternatives=tuple(top[1:]),
    )
