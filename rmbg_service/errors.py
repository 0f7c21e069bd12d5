"""Exceptions raised by the background-removal pipeline."""

from __future__ import annotations


class BackgroundRemovalError(Exception):
    """Base class for every failure that aborts a removal call."""


class InputTypeError(BackgroundRemovalError, TypeError):
    """Input is neither a decoded image nor a base64 string."""


class DecodeError(BackgroundRemovalError, ValueError):
    """Base64 payload or image bytes could not be decoded."""


class DownloadError(BackgroundRemovalError):
    """The model could not be fetched over HTTP."""


class EngineUnavailableError(BackgroundRemovalError):
    """The ONNX runtime is missing or exposes no usable execution provider."""


class SessionCreationError(BackgroundRemovalError):
    """The ONNX runtime rejected the model buffer."""


class InferenceError(BackgroundRemovalError):
    """The ONNX runtime failed while running the model."""


class CanvasContextError(BackgroundRemovalError):
    """The image cannot be turned into an RGBA pixel surface."""


class MaskShapeError(BackgroundRemovalError, ValueError):
    """The mask does not match its declared or inferred grid."""
