"""Shared fakes for the inference engine and the HTTP transport."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, List, Optional

import numpy as np
import pytest
from PIL import Image
from requests.structures import CaseInsensitiveDict

from rmbg_service.config import Settings
from rmbg_service.model_cache import ModelCache
from rmbg_service.model_fetcher import ModelFetcher
from rmbg_service.pipeline import BackgroundRemover

MODEL_BYTES = b"fake-onnx-model-" * 8


class FakeSession:
    def __init__(self, mask: np.ndarray):
        self.mask = mask
        self.input_shapes: List[tuple] = []

    def run(self, tensor: np.ndarray) -> np.ndarray:
        self.input_shapes.append(tensor.shape)
        return self.mask


class FakeEngine:
    def __init__(self, mask: Optional[np.ndarray] = None):
        self.mask = mask if mask is not None else np.ones((1, 1, 8, 8), dtype=np.float32)
        self.loaded: List[bytes] = []

    def ensure_available(self) -> None:
        return None

    def create_session(self, model_bytes: bytes) -> FakeSession:
        self.loaded.append(bytes(model_bytes))
        return FakeSession(self.mask)


class FakeResponse:
    def __init__(self, chunks, status_code: int = 200, content_length: Optional[int] = None):
        self.status_code = status_code
        self.ok = status_code < 400
        self.headers = CaseInsensitiveDict()
        if content_length is not None:
            self.headers["Content-Length"] = str(content_length)
        self.closed = False
        self._chunks = list(chunks)

    def iter_content(self, chunk_size: int = 1):
        return iter(self._chunks)

    def close(self) -> None:
        self.closed = True


class FakeHttp:
    def __init__(self, factory: Callable[[], FakeResponse]):
        self._factory = factory
        self.calls: List[str] = []
        self.responses: List[FakeResponse] = []

    def get(self, url: str, stream: bool = False, timeout=None) -> FakeResponse:
        self.calls.append(url)
        response = self._factory()
        self.responses.append(response)
        return response


def model_response(data: bytes = MODEL_BYTES, parts: int = 4) -> FakeResponse:
    step = max(len(data) // parts, 1)
    chunks = [data[i : i + step] for i in range(0, len(data), step)]
    return FakeResponse(chunks, content_length=len(data))


def make_image(width: int = 32, height: int = 24, seed: int = 0) -> Image.Image:
    rng = np.random.default_rng(seed)
    pixels = rng.integers(0, 256, size=(height, width, 4), dtype=np.uint8)
    return Image.fromarray(pixels)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(cache_dir=tmp_path / "cache", model_url="https://models.test/rmbg.onnx")


@pytest.fixture
def cache(settings: Settings) -> ModelCache:
    return ModelCache(settings.cache_dir, version=settings.model_version)


@pytest.fixture
def http() -> FakeHttp:
    return FakeHttp(model_response)


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def make_remover(settings: Settings, cache: ModelCache, http: FakeHttp, engine: FakeEngine):
    def _make(http_override=None, engine_override=None, cache_override=None, **kwargs) -> BackgroundRemover:
        model_cache = cache_override or cache
        fetcher = ModelFetcher(cache=model_cache, http=http_override or http)
        return BackgroundRemover(
            settings=settings,
            cache=model_cache,
            fetcher=fetcher,
            engine=engine_override or engine,
            **kwargs,
        )

    return _make
