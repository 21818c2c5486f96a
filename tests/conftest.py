"""Shared fixtures: settings, generated photos and a scripted classifier."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
import pytest
from PIL import Image

from dragonflyid.config import Settings
from dragonflyid.ml.image_classifier import InferenceError

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from numpy.typing import NDArray

_FORMATS = {".jpg": "JPEG", ".jpeg": "JPEG", ".png": "PNG", ".bmp": "BMP"}


class FakeAdapter:
    """Inference adapter that replays queued score vectors."""

    def __init__(self, available: bool = True) -> None:
        self._available = available
        self._responses: list[list[float] | Exception] = []
        self.tensors: list[NDArray[np.float32]] = []
        self.closed = 0

    @property
    def available(self) -> bool:
        return self._available

    def queue(self, *responses: list[float] | Exception) -> None:
        self._responses.extend(responses)

    def classify(self, tensor: NDArray[np.float32]) -> list[float]:
        self.tensors.append(tensor)
        if not self._responses:
            raise InferenceError("no scores queued")
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def close(self) -> None:
        self.closed += 1
        self._available = False


def one_hot(index: int, value: float, count: int = 10) -> list[float]:
    scores = [0.0] * count
    scores[index] = value
    return scores


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(
        inference_enabled=False,
        models_dir=str(tmp_path / "models"),
        labels_path=str(tmp_path / "models" / "labels.txt"),
    )


@pytest.fixture()
def fake_adapter() -> FakeAdapter:
    return FakeAdapter()


@pytest.fixture()
def make_image(tmp_path: Path) -> Callable[..., Path]:
    """Write a small photo to tmp_path and return its path."""

    def _make(
        name: str = "photo.jpg",
        size: tuple[int, int] = (120, 90),
        mode: str = "RGB",
        color: object = (40, 160, 90),
    ) -> Path:
        path = tmp_path / name
        image = Image.new(mode, size, color)  # type: ignore[arg-type]
        fmt = _FORMATS.get(path.suffix.lower(), "PNG")
        if fmt == "JPEG" and image.mode not in ("RGB", "L"):
            image = image.convert("RGB")
        image.save(path, format=fmt)
        return path

    return _make
