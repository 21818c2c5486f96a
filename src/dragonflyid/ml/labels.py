"""Species label loading.

The label file holds one species per line in model output order, optionally
prefixed with its class index (``"3 Golden-ringed Dragonfly"``).
"""

from __future__ import annotations

import logging
import re
import threading
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_LABELS: tuple[str, ...] = (
    "Common Green Darner",
    "Blue Dasher",
    "Scarlet Skimmer",
    "Golden-ringed Dragonfly",
    "Widow Skimmer",
    "Emperor Dragonfly",
    "Brown Hawker",
    "Red-veined Darter",
    "Violet Dropwing",
    "Twelve-spotted Skimmer",
)

_ORDINAL_PREFIX = re.compile(r"^\d+\s+")


def parse_labels(text: str) -> tuple[str, ...]:
    """Parse label file contents, preserving line order."""
    labels: list[str] = []
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line:
            continue
        labels.append(_ORDINAL_PREFIX.sub("", line, count=1))
    return tuple(labels)


class LabelStore:
    """Loads the label set once and serves it read-only afterwards."""

    def __init__(self, labels_path: str | Path | None) -> None:
        self._path = Path(labels_path) if labels_path is not None else None
        self._lock = threading.Lock()
        self._labels: tuple[str, ...] | None = None

    @property
    def loaded(self) -> bool:
        return self._labels is not None

    def load(self) -> tuple[str, ...]:
        """Return the label set, reading the label file on first use.

        Never fails: an unreadable or empty file yields ``DEFAULT_LABELS``.
        """
        labels = self._labels
        if labels is not None:
            return labels

        with self._lock:
            if self._labels is None:
                self._labels = self._read()
            return self._labels

    def _read(self) -> tuple[str, ...]:
        if self._path is None:
            logger.info("No label file configured, using %d default labels", len(DEFAULT_LABELS))
            return DEFAULT_LABELS

        try:
            text = self._path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Could not read labels from %s (%s), using defaults", self._path, exc)
            return DEFAULT_LABELS

        labels = parse_labels(text)
        if not labels:
            logger.warning("Label file %s is empty, using defaults", self._path)
            return DEFAULT_LABELS

        logger.info("Loaded %d labels from %s", len(labels), self._path)
        return labels
