"""Species classifier adapters.

Two variants share the ``InferenceAdapter`` protocol: ``OnnxInferenceAdapter``
wraps a loaded ONNX Runtime session and ``UnavailableInferenceAdapter``
stands in when the host cannot run the model. ``create_inference_adapter``
picks one at startup.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

import numpy as np

from dragonflyid.ml.model_manager import inference_supported
from dragonflyid.ml.preprocessing import ImagePreprocessor

if TYPE_CHECKING:
    from numpy.typing import NDArray
    from onnxruntime import InferenceSession

    from dragonflyid.config import Settings
    from dragonflyid.ml.model_manager import ModelManager

logger = logging.getLogger(__name__)


class InferenceError(RuntimeError):
    """The classifier could not score an input tensor."""


class InferenceAdapter(Protocol):
    """Protocol for species classification backends."""

    @property
    def available(self) -> bool:
        """Whether ``classify`` can be called."""
        ...

    def classify(self, tensor: NDArray[np.float32]) -> list[float]:
        """Score a preprocessed image.

        Args:
            tensor: float32 array of shape (1, 224, 224, 3).

        Returns:
            One raw score per label, in label index order.

        Raises:
            InferenceError: If the backend rejects the input or fails at runtime.
        """
        ...

    def close(self) -> None:
        """Release backend resources. Safe to call more than once."""
        ...


class UnavailableInferenceAdapter:
    """Adapter used when the classifier cannot run on this host."""

    def __init__(self, reason: str) -> None:
        self.reason = reason

    @property
    def available(self) -> bool:
        return False

    def classify(self, tensor: NDArray[np.float32]) -> list[float]:
        raise InferenceError(f"Inference unavailable: {self.reason}")

    def close(self) -> None:
        return None


class OnnxInferenceAdapter:
    """Runs the species classifier through ONNX Runtime."""

    def __init__(
        self,
        session: InferenceSession,
        model_manager: ModelManager | None = None,
        input_shape: tuple[int, ...] = (1, 224, 224, 3),
    ) -> None:
        self._session: InferenceSession | None = session
        self._model_manager = model_manager
        self._input_shape = input_shape
        self._input_name: str = session.get_inputs()[0].name

    @property
    def available(self) -> bool:
        return self._session is not None

    def classify(self, tensor: NDArray[np.float32]) -> list[float]:
        if self._session is None:
            raise InferenceError("Classifier session has been closed")
        if tuple(tensor.shape) != self._input_shape:
            raise InferenceError(f"Expected input shape {self._input_shape}, got {tuple(tensor.shape)}")

        try:
            outputs = self._session.run(None, {self._input_name: tensor.astype(np.float32, copy=False)})
        except Exception as exc:
            raise InferenceError(f"Inference failed: {exc}") from exc

        scores = np.asarray(outputs[0], dtype=np.float64).reshape(-1)
        return [float(score) for score in scores]

    def close(self) -> None:
        self._session = None
        if self._model_manager is not None:
            self._model_manager.shutdown()


def create_inference_adapter(settings: Settings, model_manager: ModelManager) -> InferenceAdapter:
    """Choose the adapter for this host.

    Falls back to ``UnavailableInferenceAdapter`` when inference is disabled,
    the execution provider is missing, or the model cannot be loaded.
    """
    if not inference_supported(settings):
        logger.info("On-device inference not supported here (device=%s), using reference fallback", settings.device)
        return UnavailableInferenceAdapter(f"no {settings.device} inference support")

    # ONNX Runtime load errors (InvalidProtobuf, NoSuchFile, ...) only derive from Exception.
    try:
        session = model_manager.get_session()
    except Exception as exc:
        logger.warning("Classifier model failed to load: %s", exc)
        return UnavailableInferenceAdapter(f"model failed to load: {exc}")

    return OnnxInferenceAdapter(session, model_manager, ImagePreprocessor().input_shape)
