"""
High-level background-removal pipeline.

`BackgroundRemover.remove_background` is the main entry point used by the HTTP
API, the batch worker and the local CLI helper. Orchestration stays simple:
input -> model (cache or download) -> preprocessing -> inference ->
compositing -> image or PNG data URL.

Each instance loads its model once. Concurrent callers that arrive while the
load is in flight await the same load task instead of starting a second
download.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
import logging
from typing import Callable, Literal, Optional, Union

from PIL import Image

from . import codec, config
from .compositing import composite
from .engine import InferenceEngine, ModelSession
from .errors import InputTypeError
from .model_cache import ModelCache
from .model_fetcher import ModelFetcher
from .preprocessing import preprocess

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, str], None]


class ModelState(str, Enum):
    IDLE = "idle"
    LOADING = "loading_model"
    READY = "ready"


class ReturnMode(str, Enum):
    IMAGE = "image"
    BASE64 = "base64"


@dataclass(frozen=True)
class ImageResult:
    image: Image.Image
    kind: Literal["image"] = "image"


@dataclass(frozen=True)
class Base64Result:
    data_url: str
    kind: Literal["base64"] = "base64"


RemovalResult = Union[ImageResult, Base64Result]


@dataclass(frozen=True)
class ProgressEvent:
    percent: int
    message: str


class ProgressReporter:
    """
    Per-call progress emitter.

    Percent values never go down within one call: a milestone below the
    highest value already reported is emitted at that highest value.
    Exceptions raised by the callback are logged and dropped so a broken
    progress handler cannot abort the pipeline.
    """

    def __init__(self, callback: Optional[ProgressCallback] = None):
        self._callback = callback
        self._high_water = 0

    def emit(self, percent: int, message: str) -> ProgressEvent:
        percent = min(max(int(percent), self._high_water), 100)
        self._high_water = percent
        event = ProgressEvent(percent=percent, message=message)
        if self._callback is not None:
            try:
                self._callback(event.percent, event.message)
            except Exception as exc:  # noqa: BLE001
                logger.warning("progress callback raised %r at %d%%, ignoring", exc, percent)
        return event


class BackgroundRemover:
    def __init__(
        self,
        model_url: Optional[str] = None,
        model_cache_key: Optional[str] = None,
        *,
        settings: Optional[config.Settings] = None,
        cache: Optional[ModelCache] = None,
        fetcher: Optional[ModelFetcher] = None,
        engine: Optional[InferenceEngine] = None,
    ):
        settings = settings or config.get_settings()
        self.model_url = model_url or settings.model_url
        self.model_cache_key = model_cache_key or settings.model_cache_key
        self.on_progress: Optional[ProgressCallback] = None
        self.default_return_mode = ReturnMode(settings.default_return_mode)

        self._cache = cache or ModelCache(
            settings.cache_dir, version=settings.model_version, enabled=settings.cache_enabled
        )
        self._fetcher = fetcher or ModelFetcher(
            cache=self._cache,
            chunk_size=settings.download_chunk_size,
            timeout=settings.download_timeout_seconds,
        )
        self._engine = engine or InferenceEngine(
            input_name=settings.input_name,
            output_name=settings.output_name,
            providers=settings.execution_providers,
        )

        self._state = ModelState.IDLE
        self._session: Optional[ModelSession] = None
        self._load_task: Optional[asyncio.Task] = None

    @property
    def state(self) -> ModelState:
        return self._state

    def _transition(self, new_state: ModelState) -> None:
        if new_state is not self._state:
            logger.debug("remover state %s -> %s", self._state.value, new_state.value)
        self._state = new_state

    async def ensure_model(self, on_progress: Optional[ProgressCallback] = None) -> ModelSession:
        """Load the model once per instance and return the shared session."""
        return await self._ensure_model(ProgressReporter(on_progress or self.on_progress))

    async def _ensure_model(self, reporter: ProgressReporter) -> ModelSession:
        if self._state is ModelState.READY and self._session is not None:
            reporter.emit(10, "Model already loaded.")
            return self._session

        if self._load_task is None:
            self._transition(ModelState.LOADING)
            self._load_task = asyncio.create_task(self._load_session(reporter))
        else:
            reporter.emit(10, "Model is loading, please wait.")

        task = self._load_task
        try:
            return await asyncio.shield(task)
        except Exception:
            if self._load_task is task:
                self._load_task = None
                self._transition(ModelState.IDLE)
            raise

    async def _load_session(self, reporter: ProgressReporter) -> ModelSession:
        reporter.emit(5, "Checking model cache...")
        self._engine.ensure_available()
        cached = await self._cache.get(self.model_cache_key)
        if cached is not None:
            logger.info("Loading model from cache key=%s (%d bytes)", self.model_cache_key, len(cached))
            reporter.emit(15, "Loading cached model...")
            session = await asyncio.to_thread(self._engine.create_session, cached)
            reporter.emit(30, "Model loaded from cache.")
        else:
            reporter.emit(10, "Downloading model...")
            model_bytes = await self._fetcher.fetch(
                self.model_url, reporter.emit, cache_key=self.model_cache_key
            )
            reporter.emit(80, "Loading model...")
            session = await asyncio.to_thread(self._engine.create_session, model_bytes)
            reporter.emit(90, "Model loaded.")

        self._session = session
        self._load_task = None
        self._transition(ModelState.READY)
        return session

    async def remove_background(
        self,
        image_or_base64: Union[Image.Image, str],
        *,
        return_mode: Optional[Union[ReturnMode, str]] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> RemovalResult:
        """
        Remove the background from a Pillow image or a base64 data URL.

        Returns an `ImageResult` (RGBA image) or a `Base64Result`
        (``data:image/png;base64,...``) depending on ``return_mode``, which
        falls back to the configured ``default_return_mode``.

        Raises:
            InputTypeError: input is neither an image nor a string.
            DecodeError: the string is not a decodable base64 image.
            DownloadError, EngineUnavailableError, SessionCreationError:
                the model could not be made ready.
        """
        mode = ReturnMode(return_mode or self.default_return_mode)
        reporter = ProgressReporter(on_progress or self.on_progress)
        reporter.emit(0, "Starting background removal...")

        if isinstance(image_or_base64, str):
            reporter.emit(2, "Decoding base64 image...")
            image = await asyncio.to_thread(codec.decode_data_url, image_or_base64)
        elif isinstance(image_or_base64, Image.Image):
            image = image_or_base64
        else:
            raise InputTypeError(
                f"Input must be a PIL.Image.Image or a base64 string, got {type(image_or_base64).__name__}"
            )

        session = await self._ensure_model(reporter)

        reporter.emit(15, "Preprocessing image...")
        tensor = await asyncio.to_thread(preprocess, image)

        reporter.emit(35, "Running AI inference...")
        mask = await asyncio.to_thread(session.run, tensor)

        reporter.emit(70, "Processing mask...")
        cutout = await asyncio.to_thread(composite, image, mask)

        reporter.emit(90, "Generating result...")
        result: RemovalResult
        if mode is ReturnMode.BASE64:
            result = Base64Result(data_url=await asyncio.to_thread(codec.encode_data_url, cutout))
        else:
            result = ImageResult(image=cutout)

        reporter.emit(100, "Complete!")
        return result


_REMOVER: Optional[BackgroundRemover] = None


def get_remover() -> BackgroundRemover:
    """Return a process-wide remover built from settings, created on first access."""
    global _REMOVER
    if _REMOVER is None:
        _REMOVER = BackgroundRemover()
    return _REMOVER
