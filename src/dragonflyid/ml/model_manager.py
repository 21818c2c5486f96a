"""Model manager: locate, download and load the species classifier.

The ONNX model is read from the configured models directory. When it is not
there and a Hugging Face repository is configured, it is downloaded first.
The resulting InferenceSession is created once and cached.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

import onnxruntime
from huggingface_hub import hf_hub_download
from onnxruntime import InferenceSession, SessionOptions
from onnxruntime.capi.onnxruntime_pybind11_state import ExecutionMode

if TYPE_CHECKING:
    from dragonflyid.config import Settings

logger = logging.getLogger(__name__)

DEVICE_PROVIDERS: dict[str, str] = {
    "cpu": "CPUExecutionProvider",
    "cuda": "CUDAExecutionProvider",
    "openvino": "OpenVINOExecutionProvider",
}


class ModelManager(Protocol):
    """Protocol for model lifecycle management."""

    def ensure_downloaded(self) -> Path:
        """Ensure the model file exists locally and return its path."""
        ...

    def get_session(self) -> InferenceSession:
        """Return the cached or newly created InferenceSession."""
        ...

    def shutdown(self) -> None:
        """Release the cached session."""
        ...


def inference_supported(settings: Settings) -> bool:
    """Whether this host can run the classifier at all.

    Side-effect free; safe to call repeatedly.
    """
    if not settings.inference_enabled:
        return False
    return DEVICE_PROVIDERS[settings.device] in onnxruntime.get_available_providers()


class OnnxModelManager:
    """Downloads, loads and caches the classifier's ONNX session."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._model_path = settings.model_path

        self._lock = threading.Lock()
        self._session: InferenceSession | None = None

        self._providers = self._build_providers()
        self._session_options = self._build_session_options()

    # -- Public API ---------------------------------------------------------

    def ensure_downloaded(self) -> Path:
        """Return the local model path, fetching it from the Hub if needed.

        Raises:
            FileNotFoundError: If the model is missing and no repository is configured.
        """
        if self._model_path.is_file():
            return self._model_path

        repo_id = self._settings.model_repo_id
        if repo_id is None:
            raise FileNotFoundError(f"Model file not found: {self._model_path}")

        self._model_path.parent.mkdir(parents=True, exist_ok=True)
        downloaded = Path(
            hf_hub_download(
                repo_id=repo_id,
                filename=self._settings.model_filename,
                local_dir=str(self._model_path.parent),
            )
        )
        self._model_path = downloaded
        logger.info("Downloaded %s from %s to %s", self._settings.model_filename, repo_id, downloaded)
        return downloaded

    def get_session(self) -> InferenceSession:
        """Return the cached InferenceSession, creating it if needed."""
        with self._lock:
            if self._session is not None:
                return self._session

            model_path = self.ensure_downloaded()
            self._session = InferenceSession(
                str(model_path),
                sess_options=self._session_options,
                providers=self._providers,
            )
            logger.info("Loaded classifier session from %s", model_path)
            return self._session

    def shutdown(self) -> None:
        """Drop the cached session."""
        with self._lock:
            if self._session is not None:
                self._session = None
                logger.info("Classifier session released")

    # -- Internal -----------------------------------------------------------

    def _build_providers(self) -> list[str | tuple[str, dict[str, object]]]:
        device = self._settings.device
        if device == "cuda":
            return [("CUDAExecutionProvider", {"device_id": 0}), "CPUExecutionProvider"]
        if device == "openvino":
            return [
                ("OpenVINOExecutionProvider", {"device_type": "CPU"}),
                "CPUExecutionProvider",
            ]
        return ["CPUExecutionProvider"]

    def _build_session_options(self) -> SessionOptions:
        opts = SessionOptions()
        opts.intra_op_num_threads = self._settings.intra_op_threads
        opts.inter_op_num_threads = self._settings.inter_op_threads
        # One request at a time, no need for parallel graph execution.
        opts.execution_mode = ExecutionMode.ORT_SEQUENTIAL

        if self._settings.device == "openvino":
            # OpenVINO does its own graph optimization
            from onnxruntime import GraphOptimizationLevel

            opts.graph_optimization_level = GraphOptimizationLevel.ORT_DISABLE_ALL
        return opts
