"""
Streaming model download with byte-level progress.

`requests` does the transfer; each chunk is pulled off the event loop so the
orchestrator stays responsive while a large model arrives.
"""

from __future__ import annotations

import asyncio
import logging
import math
from typing import Callable, Optional

import requests

from .errors import DownloadError
from .model_cache import ModelCache

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, str], None]

DOWNLOAD_BAND_START = 10
DOWNLOAD_BAND_END = 70


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _content_length(response: requests.Response) -> int:
    raw = response.headers.get("content-length") or "0"
    try:
        return max(int(raw), 0)
    except ValueError:
        return 0


def download_percent(received: int, total: int) -> int:
    """Map downloaded bytes onto the 10-70 progress band."""
    span = DOWNLOAD_BAND_END - DOWNLOAD_BAND_START
    percent = DOWNLOAD_BAND_START + _round_half_up(received / total * span)
    return min(max(percent, DOWNLOAD_BAND_START), DOWNLOAD_BAND_END)


class ModelFetcher:
    def __init__(
        self,
        cache: Optional[ModelCache] = None,
        http: Optional[requests.Session] = None,
        chunk_size: int = 1024 * 1024,
        timeout: Optional[float] = None,
    ):
        self._cache = cache
        self._http = http or requests.Session()
        self._chunk_size = chunk_size
        self._timeout = timeout

    async def fetch(
        self,
        url: str,
        on_progress: Optional[ProgressCallback] = None,
        cache_key: Optional[str] = None,
    ) -> bytes:
        """
        Download ``url`` and return the body as one contiguous buffer.

        When ``cache_key`` is given the buffer is also written to the cache;
        a failed cache write does not fail the download.

        Raises:
            DownloadError: on transport failure, error status or missing body.
        """
        logger.info("Downloading model from %s", url)
        try:
            response = await asyncio.to_thread(self._http.get, url, stream=True, timeout=self._timeout)
        except requests.RequestException as exc:
            raise DownloadError(f"Model download failed: {exc}") from exc

        try:
            if not response.ok:
                raise DownloadError(f"Model download failed: HTTP {response.status_code}")

            total = _content_length(response)
            chunks = []
            received = 0
            last_percent = DOWNLOAD_BAND_START
            body = response.iter_content(chunk_size=self._chunk_size)
            while True:
                try:
                    chunk = await asyncio.to_thread(next, body, None)
                except requests.RequestException as exc:
                    raise DownloadError(f"Model download interrupted: {exc}") from exc
                if chunk is None:
                    break
                if not chunk:
                    continue
                chunks.append(chunk)
                received += len(chunk)
                if total > 0 and on_progress is not None:
                    percent = download_percent(received, total)
                    if percent != last_percent:
                        megabytes = _round_half_up(received / 1024 / 1024)
                        on_progress(percent, f"Downloading model... {percent}% ({megabytes}MB)")
                        last_percent = percent
            if response.status_code == 204 or received == 0:
                raise DownloadError("Model download failed: response body is empty")
        finally:
            response.close()

        data = b"".join(chunks)
        logger.info("Downloaded model: %d bytes", len(data))

        if cache_key is not None and self._cache is not None:
            if on_progress is not None:
                on_progress(75, "Caching model for future use...")
            await self._cache.put(cache_key, data)
        return data
