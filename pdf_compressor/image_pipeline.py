"""
image_pipeline.py - Standalone raster image compression.

Output format selection:
- explicit target (jpg/jpeg/png/webp) is honoured as-is
- JPEG/WebP sources are re-encoded as JPEG
- lossless sources are encoded as both JPEG and PNG; PNG wins when it is
  within 10% of the JPEG size
"""

import io
import logging
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError

from .errors import EmptyInput, EncodeFailed, ParseFailed, UnsupportedFormat
from .imaging import FORMAT_EXTENSIONS, downsample, encode, pil_to_array
from .quality import clamp_level, level_to_quality

logger = logging.getLogger(__name__)

# Requested name -> Pillow format
TARGET_FORMATS = {
    "jpg": "JPEG",
    "jpeg": "JPEG",
    "png": "PNG",
    "webp": "WEBP",
}

LOSSY_SOURCE_FORMATS = frozenset({"JPEG", "WEBP"})

# PNG is kept if no larger than JPEG * this factor
LOSSLESS_TOLERANCE = 1.1


def resolve_target_format(target_format: Optional[str]) -> Optional[str]:
    """Map a requested extension to a Pillow format name, or raise."""
    if target_format is None:
        return None
    fmt = TARGET_FORMATS.get(target_format.strip().lower())
    if fmt is None:
        raise UnsupportedFormat(target_format)
    return fmt


def compress_image(
    data: bytes,
    level: int,
    target_format: Optional[str] = None
) -> Tuple[bytes, str]:
    """
    Compress an image at a compression level.

    Args:
        data: Image file contents (any format Pillow can decode)
        level: Compression level, clamped to 10-95
        target_format: "jpg", "jpeg", "png", "webp" or None for automatic

    Returns:
        (image_bytes, extension)

    Raises:
        EmptyInput, ParseFailed, UnsupportedFormat, EncodeFailed
    """
    if not data:
        raise EmptyInput("image input")

    level = clamp_level(level)
    quality = level_to_quality(level)
    logger.info(f"Compressing image with quality {quality} (compression level {level})")

    source_format, image = _decode(data)
    logger.info(
        f"Image loaded: {source_format} {image.shape[1]}x{image.shape[0]}, {len(data):,} bytes"
    )

    fmt = resolve_target_format(target_format)
    image = downsample(image, quality)

    if fmt is None and source_format in LOSSY_SOURCE_FORMATS:
        fmt = "JPEG"

    if fmt is None:
        output, fmt = _best_of_jpeg_and_png(image, quality)
    else:
        try:
            output = encode(image, fmt, quality)
        except (OSError, ValueError) as e:
            raise EncodeFailed(f"{fmt} encoding failed: {e}") from e

    reduction = (len(data) - len(output)) / len(data) * 100
    logger.info(
        f"Image compressed: {len(data):,} bytes -> {len(output):,} bytes "
        f"({reduction:.2f}% reduction)"
    )

    return output, FORMAT_EXTENSIONS[fmt]


def _decode(data: bytes):
    try:
        with Image.open(io.BytesIO(data)) as img:
            source_format = img.format
            img.load()
            array = pil_to_array(img)
    except UnidentifiedImageError as e:
        raise ParseFailed(f"Failed to detect image format: {e}") from e
    except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as e:
        raise ParseFailed(f"Failed to load image: {e}") from e

    return source_format, array


def _best_of_jpeg_and_png(image, quality: int) -> Tuple[bytes, str]:
    """Encode both candidates and apply the lossless-preference rule."""
    logger.info("Trying both JPEG and PNG to find best compression...")

    candidates = {}
    errors = []
    for fmt in ("JPEG", "PNG"):
        try:
            candidates[fmt] = encode(image, fmt, quality)
        except (OSError, ValueError) as e:
            logger.info(f"{fmt} encoding failed: {e}")
            errors.append(f"{fmt}: {e}")

    jpeg_bytes = candidates.get("JPEG")
    png_bytes = candidates.get("PNG")

    if jpeg_bytes is not None and png_bytes is not None:
        logger.info(f"JPEG: {len(jpeg_bytes):,} bytes, PNG: {len(png_bytes):,} bytes")
        if len(png_bytes) <= len(jpeg_bytes) * LOSSLESS_TOLERANCE:
            logger.info("Choosing PNG (lossless and similar size)")
            return png_bytes, "PNG"
        logger.info("Choosing JPEG (significantly smaller)")
        return jpeg_bytes, "JPEG"
    if jpeg_bytes is not None:
        return jpeg_bytes, "JPEG"
    if png_bytes is not None:
        return png_bytes, "PNG"

    raise EncodeFailed(f"Both JPEG and PNG encoding failed: {' / '.join(errors)}")
