"""
FastAPI layer exposing RMBG background removal.

Endpoints:
 - GET /health
 - POST /remove-bg
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from fastapi import FastAPI, HTTPException
from PIL import Image
from pydantic import BaseModel, HttpUrl
import requests

from . import codec, config
from .errors import (
    BackgroundRemovalError,
    DecodeError,
    DownloadError,
    EngineUnavailableError,
    SessionCreationError,
)
from .pipeline import ReturnMode, get_remover

settings = config.get_settings()
logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
logger = logging.getLogger(__name__)

app = FastAPI(title="RMBG Background Removal Service", version="0.1.0")


class RemoveBgRequest(BaseModel):
    imageUrl: Optional[HttpUrl] = None
    imageBase64: Optional[str] = None  # data URL or bare base64


class RemoveBgResponse(BaseModel):
    image: str  # data:image/png;base64,...
    width: int
    height: int


def _download_image(url: str) -> bytes:
    resp = requests.get(url, timeout=(5, settings.request_timeout_seconds))
    resp.raise_for_status()
    return resp.content


async def _load_source(body: RemoveBgRequest) -> Image.Image:
    if body.imageBase64 is not None:
        return await asyncio.to_thread(codec.decode_data_url, body.imageBase64)
    try:
        image_bytes = await asyncio.to_thread(_download_image, str(body.imageUrl))
    except Exception as exc:  # noqa: BLE001
        logger.exception("Failed to download image: %s", exc)
        raise HTTPException(status_code=400, detail="Could not download image") from exc
    return await asyncio.to_thread(codec.decode_bytes, image_bytes)


@app.get("/health")
def health():
    return {"status": "ok", "model": get_remover().state.value}


@app.post("/remove-bg", response_model=RemoveBgResponse)
async def remove_bg(body: RemoveBgRequest):
    if (body.imageUrl is None) == (body.imageBase64 is None):
        raise HTTPException(status_code=400, detail="Provide exactly one of imageUrl or imageBase64")

    try:
        source = await _load_source(body)
    except DecodeError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    try:
        result = await get_remover().remove_background(source, return_mode=ReturnMode.BASE64)
    except (DownloadError, EngineUnavailableError, SessionCreationError) as exc:
        logger.exception("Model unavailable: %s", exc)
        raise HTTPException(status_code=503, detail="Background removal model unavailable") from exc
    except BackgroundRemovalError as exc:
        logger.exception("Background removal failed: %s", exc)
        raise HTTPException(status_code=500, detail="Background removal failed") from exc

    width, height = source.size
    return RemoveBgResponse(image=result.data_url, width=width, height=height)
