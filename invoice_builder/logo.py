"""Logo downsizing and brand color sampling."""

from __future__ import annotations

import base64
import binascii
import io
import logging
from collections import Counter
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError

from . import config

logger = logging.getLogger(__name__)

DEFAULT_BRAND_COLOR = "#1e293b"
SAMPLE_SIZE = 50
JPEG_DATA_URL_PREFIX = "data:image/jpeg;base64,"


class LogoError(ValueError):
    """Raised when a logo cannot be decoded or compressed to fit."""


def decode_data_url(data_url: str) -> bytes:
    _, sep, encoded = data_url.partition(",")
    if not sep or not data_url.startswith("data:"):
        raise LogoError("Logo must be a base64 data URL.")
    try:
        return base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise LogoError("Logo data URL is not valid base64.") from exc


def _open(raw: bytes) -> Image.Image:
    try:
        image = Image.open(io.BytesIO(raw))
        image.load()
    except (UnidentifiedImageError, OSError) as exc:
        raise LogoError("Failed to load image.") from exc
    return image


def fit_within(size: Tuple[int, int], max_width: int, max_height: int) -> Tuple[int, int]:
    width, height = size
    if width <= max_width and height <= max_height:
        return width, height
    ratio = min(max_width / width, max_height / height)
    return max(1, int(width * ratio)), max(1, int(height * ratio))


def process_logo(
    raw: bytes,
    max_width: int = config.LOGO_MAX_WIDTH,
    max_height: int = config.LOGO_MAX_HEIGHT,
    max_bytes: int = config.LOGO_MAX_BYTES,
) -> str:
    """Shrink an uploaded image into a JPEG data URL no larger than ``max_bytes``.

    Quality starts at 70 and drops by 10 until the data URL fits or the
    quality floor of 10 is reached.
    """
    image = _open(raw)
    target = fit_within(image.size, max_width, max_height)
    if target != image.size:
        image = image.resize(target, Image.LANCZOS)
    if image.mode != "RGB":
        background = Image.new("RGB", image.size, (255, 255, 255))
        rgba = image.convert("RGBA")
        background.paste(rgba, mask=rgba.split()[3])
        image = background

    quality = 70
    while True:
        buffer = io.BytesIO()
        image.save(buffer, format="JPEG", quality=quality, optimize=True)
        data_url = JPEG_DATA_URL_PREFIX + base64.b64encode(buffer.getvalue()).decode("ascii")
        if len(data_url) <= max_bytes:
            return data_url
        if quality <= 10:
            break
        quality -= 10

    raise LogoError(f"Could not compress logo to fit size limit of {max_bytes} bytes.")


def _bucket(channel: int) -> int:
    return min(255, int(channel / 10.0 + 0.5) * 10)


def extract_dominant_color(data_url: Optional[str]) -> str:
    """Return the most frequent opaque color of a logo as ``#rrggbb``."""
    if not data_url:
        return DEFAULT_BRAND_COLOR
    try:
        image = _open(decode_data_url(data_url))
    except LogoError as exc:
        logger.info("Using default brand color: %s", exc)
        return DEFAULT_BRAND_COLOR

    sample = image.convert("RGBA").resize((SAMPLE_SIZE, SAMPLE_SIZE))
    counts: Counter = Counter()
    for red, green, blue, alpha in sample.getdata():
        if alpha < 128:
            continue
        counts[(_bucket(red), _bucket(green), _bucket(blue))] += 1

    if not counts:
        return DEFAULT_BRAND_COLOR
    (red, green, blue), _ = counts.most_common(1)[0]
    return f"#{red:02x}{green:02x}{blue:02x}"
