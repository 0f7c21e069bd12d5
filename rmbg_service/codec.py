"""Conversions between Pillow images, encoded bytes and base64 data URLs."""

from __future__ import annotations

import base64
import binascii
from io import BytesIO

from PIL import Image, UnidentifiedImageError

from .errors import DecodeError

PNG_DATA_URL_PREFIX = "data:image/png;base64,"


def decode_bytes(image_bytes: bytes) -> Image.Image:
    """Decode encoded image bytes (PNG, JPEG, ...) into an RGBA image."""
    try:
        image = Image.open(BytesIO(image_bytes))
        image.load()
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise DecodeError("Invalid image data") from exc
    return image.convert("RGBA")


def _split_data_url(value: str) -> str:
    if not value.startswith("data:"):
        return value
    header, sep, payload = value.partition(",")
    if not sep or not header.endswith(";base64"):
        raise DecodeError("Data URL is not base64 encoded")
    return payload


def decode_data_url(value: str) -> Image.Image:
    """
    Decode a ``data:<mime>;base64,<payload>`` URL into an RGBA image.

    A bare base64 payload without the ``data:`` header is accepted too.
    """
    payload = "".join(_split_data_url(value.strip()).split())
    try:
        image_bytes = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise DecodeError("Invalid base64 image data") from exc
    if not image_bytes:
        raise DecodeError("Empty base64 image data")
    return decode_bytes(image_bytes)


def encode_png(image: Image.Image) -> bytes:
    buf = BytesIO()
    image.save(buf, format="PNG")
    return buf.getvalue()


def encode_data_url(image: Image.Image) -> str:
    return PNG_DATA_URL_PREFIX + base64.b64encode(encode_png(image)).decode("ascii")
