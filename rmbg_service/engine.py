"""
ONNX Runtime adapter.

The engine turns a raw model buffer into a session and runs it on a single
named input tensor. Provider selection prefers CUDA when the installed
runtime exposes it, otherwise CPU.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

import numpy as np

from .errors import EngineUnavailableError, InferenceError, SessionCreationError

logger = logging.getLogger(__name__)


def _import_runtime():
    try:
        import onnxruntime
    except ImportError as exc:
        raise EngineUnavailableError(
            "onnxruntime is not installed. Install the 'onnxruntime' package."
        ) from exc
    return onnxruntime


class ModelSession:
    """A loaded model bound to its input/output tensor names."""

    def __init__(self, session, input_name: str = "input", output_name: str = "output"):
        self._session = session
        self.input_name = input_name
        self.output_name = output_name

    def run(self, tensor: np.ndarray) -> np.ndarray:
        try:
            outputs = self._session.run([self.output_name], {self.input_name: tensor})
        except Exception as exc:  # noqa: BLE001
            raise InferenceError(f"Model inference failed: {exc}") from exc
        return np.asarray(outputs[0])


class InferenceEngine:
    def __init__(
        self,
        input_name: str = "input",
        output_name: str = "output",
        providers: Optional[Sequence[str]] = None,
    ):
        self.input_name = input_name
        self.output_name = output_name
        self._requested_providers = list(providers or [])

    def providers(self) -> List[str]:
        """Resolve the execution providers to hand to the runtime."""
        ort = _import_runtime()
        available = ort.get_available_providers()
        if self._requested_providers:
            chosen = [p for p in self._requested_providers if p in available]
        elif "CUDAExecutionProvider" in available:
            chosen = ["CUDAExecutionProvider", "CPUExecutionProvider"]
        else:
            chosen = ["CPUExecutionProvider"] if "CPUExecutionProvider" in available else list(available)
        if not chosen:
            raise EngineUnavailableError(
                f"No usable ONNX execution provider (requested={self._requested_providers}, available={available})"
            )
        return chosen

    def ensure_available(self) -> None:
        """Raise EngineUnavailableError unless a session could be created."""
        self.providers()

    def create_session(self, model_bytes: bytes) -> ModelSession:
        ort = _import_runtime()
        providers = self.providers()
        try:
            session = ort.InferenceSession(bytes(model_bytes), providers=providers)
        except Exception as exc:  # noqa: BLE001
            raise SessionCreationError(f"Failed to create ONNX session: {exc}") from exc
        logger.info("ONNX session ready on providers=%s", session.get_providers())
        return ModelSession(session, input_name=self.input_name, output_name=self.output_name)
