"""Image loading, validation and model input preparation.

Loading checks the file before and after decoding (existence, byte size,
decodability, pixel count, minimum dimensions) and reports problems as a
``Failure`` value. Preprocessing turns a decoded image into the normalized
``(1, 224, 224, 3)`` float32 tensor the classifier was trained on.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import numpy as np
from PIL import Image, ImageEnhance, UnidentifiedImageError

from dragonflyid.ml.results import Failure, FailureKind

if TYPE_CHECKING:
    from numpy.typing import NDArray

INPUT_SIZE: int = 224
CONTRAST_FACTOR: float = 1.2
BRIGHTNESS_FACTOR: float = 1.05

# ImageNet channel statistics
CHANNEL_MEAN = np.array([0.485, 0.456, 0.406], dtype=np.float32)
CHANNEL_STD = np.array([0.229, 0.224, 0.225], dtype=np.float32)


def load_image(
    path: str | Path,
    *,
    max_file_size: int,
    min_dimension: int,
    max_pixels: int,
) -> Image.Image | Failure:
    """Open and fully decode an image file.

    Args:
        path: Location of the image on disk.
        max_file_size: Largest accepted file size in bytes; checked before decoding.
        min_dimension: Smallest accepted width and height in pixels.
        max_pixels: Largest accepted width * height.

    Returns:
        The decoded image, or a ``Failure`` describing why it was rejected.
    """
    image_path = Path(path)
    try:
        size = image_path.stat().st_size
    except OSError:
        return Failure(FailureKind.RESOURCE_UNAVAILABLE, f"image file not found: {image_path}")

    if not image_path.is_file():
        return Failure(FailureKind.RESOURCE_UNAVAILABLE, f"not a regular file: {image_path}")

    if size > max_file_size:
        return Failure(
            FailureKind.RESOURCE_TOO_LARGE,
            f"image file is {size} bytes (max {max_file_size})",
        )

    try:
        with Image.open(image_path) as opened:
            width, height = opened.size
            if width * height > max_pixels:
                return Failure(
                    FailureKind.RESOURCE_TOO_LARGE,
                    f"image has {width * height} pixels (max {max_pixels})",
                )
            opened.load()
            image = opened.copy()
    except Image.DecompressionBombError as exc:
        return Failure(FailureKind.RESOURCE_TOO_LARGE, str(exc))
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as exc:
        return Failure(FailureKind.DECODE_FAILURE, f"cannot decode {image_path.name}: {exc}")

    if image.width < min_dimension or image.height < min_dimension:
        return Failure(
            FailureKind.RESOLUTION_TOO_LOW,
            f"image is {image.width}x{image.height} (min {min_dimension}x{min_dimension})",
        )
    return image


def rotate_quarter_turn(image: Image.Image) -> Image.Image:
    """Rotate an image 90 degrees clockwise."""
    return image.transpose(Image.Transpose.ROTATE_270)


class ImagePreprocessor:
    """Converts decoded images into classifier input tensors."""

    def __init__(self, input_size: int = INPUT_SIZE) -> None:
        self._input_size = input_size

    @property
    def input_shape(self) -> tuple[int, int, int, int]:
        return (1, self._input_size, self._input_size, 3)

    def enhance(self, image: Image.Image) -> Image.Image:
        """Apply the fixed contrast and brightness boost used during training."""
        image = ImageEnhance.Contrast(image).enhance(CONTRAST_FACTOR)
        return ImageEnhance.Brightness(image).enhance(BRIGHTNESS_FACTOR)

    def preprocess(self, image: Image.Image) -> NDArray[np.float32]:
        """Prepare an image for the species classifier.

        The image is converted to RGB, enhanced, stretched to the model input
        size (aspect ratio is not preserved), scaled to [0, 1] and normalized
        with the ImageNet channel statistics.

        Args:
            image: Decoded image of any size and mode.

        Returns:
            float32 tensor of shape (1, 224, 224, 3).
        """
        rgb = image.convert("RGB")
        enhanced = self.enhance(rgb)
        resized = enhanced.resize(
            (self._input_size, self._input_size),
            resample=Image.Resampling.BILINEAR,
        )

        pixels = np.asarray(resized, dtype=np.float32) / 255.0
        normalized = (pixels - CHANNEL_MEAN) / CHANNEL_STD
        return np.expand_dims(normalized, axis=0).astype(np.float32, copy=False)
