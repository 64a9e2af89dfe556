"""JPEG rendition generation."""
import io
from fractions import Fraction
from typing import NamedTuple

from PIL import Image as PILImage, UnidentifiedImageError

from errors import DecodeError


class Renditions(NamedTuple):
    large: bytes
    small: bytes


def preview_size(width: int, height: int, max_preview_size: int) -> tuple[int, int]:
    """Scale (width, height) so both fit within max_preview_size, truncating to whole pixels."""
    scale = min(Fraction(max_preview_size, width), Fraction(max_preview_size, height))
    return max(1, int(width * scale)), max(1, int(height * scale))


def encode_jpeg(im: PILImage.Image, quality: int) -> bytes:
    buf = io.BytesIO()
    im.save(buf, format="JPEG", quality=quality)
    return buf.getvalue()


def decode(data: bytes) -> PILImage.Image:
    """Decode image bytes in their native format."""
    try:
        im = PILImage.open(io.BytesIO(data))
        im.load()
    except (
        UnidentifiedImageError,
        PILImage.DecompressionBombError,
        OSError,
        SyntaxError,
        ValueError,
    ) as exc:
        raise DecodeError(f"failed to decode photo: {exc}") from exc
    return im


def transform(data: bytes, max_preview_size: int, quality: int) -> Renditions:
    """Produce the large (full size) and small (preview) JPEG renditions of an image."""
    if max_preview_size <= 0:
        raise ValueError("max_preview_size must be positive")
    if not 0 <= quality <= 100:
        raise ValueError("quality must be between 0 and 100")

    im = decode(data)
    try:
        im = im.convert("RGB")
        small = im.resize(
            preview_size(im.width, im.height, max_preview_size),
            PILImage.Resampling.LANCZOS,
        )
        return Renditions(encode_jpeg(im, quality), encode_jpeg(small, quality))
    except (OSError, ValueError) as exc:
        # JPEG caps each side at 65500 px
        raise DecodeError(f"failed to render photo: {exc}") from exc
