"""Image encoding helpers for image-capable backends."""

from __future__ import annotations

import base64
import io

from PIL import Image


def _open(image: Image.Image | bytes) -> Image.Image:
    if isinstance(image, Image.Image):
        return image
    return Image.open(io.BytesIO(image))


def to_jpeg_bytes(
    image: Image.Image | bytes,
    *,
    quality: int = 80,
    max_dimension: int | None = None,
) -> bytes:
    """Re-encode ``image`` as JPEG.

    The longest side is scaled down to ``max_dimension`` when given,
    keeping the aspect ratio.  Modes JPEG cannot store (alpha, palette,
    1-bit) are converted to RGB first.
    """
    img = _open(image)
    if img.mode not in ("RGB", "L"):
        img = img.convert("RGB")

    longest = max(img.size)
    if max_dimension is not None and longest > max_dimension:
        new_width = max(1, img.width * max_dimension // longest)
        new_height = max(1, img.height * max_dimension // longest)
        img = img.resize((new_width, new_height), Image.LANCZOS)

    buf = io.BytesIO()
    img.save(buf, format="JPEG", quality=quality)
    return buf.getvalue()


def to_base64_jpeg(
    image: Image.Image | bytes,
    *,
    quality: int = 92,
    max_dimension: int | None = None,
) -> str:
    """JPEG-encode ``image`` and return it as an ASCII base64 string."""
    data = to_jpeg_bytes(image, quality=quality, max_dimension=max_dimension)
    return base64.b64encode(data).decode("ascii")
