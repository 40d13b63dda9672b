"""
imaging.py - Shared pixel handling and encode step.

Used by both the PDF image recompressor and the standalone image pipeline:
- raw PDF samples -> RGB numpy array
- quality-driven downsampling (OpenCV Lanczos)
- JPEG / PNG / WebP encoding (Pillow)
"""

import io
import logging

import cv2
import numpy as np
from PIL import Image

from .quality import target_dimensions

logger = logging.getLogger(__name__)

# Pillow format name -> file extension
FORMAT_EXTENSIONS = {
    "JPEG": "jpg",
    "PNG": "png",
    "WEBP": "webp",
}


def samples_to_rgb(samples: bytes, width: int, height: int) -> np.ndarray:
    """
    Interpret raw 8-bit samples as an RGB image.

    The component count is inferred from the byte length alone:
    w*h*3 = RGB, w*h*4 = RGBA (alpha dropped), w*h = gray (expanded).

    Raises:
        ValueError: length matches none of the layouts
    """
    pixel_count = width * height
    size = len(samples)

    if size == pixel_count * 3:
        components = 3
    elif size == pixel_count * 4:
        components = 4
    elif size == pixel_count:
        components = 1
    else:
        raise ValueError(f"Unexpected size: {size} bytes for {width}x{height} image")

    data = np.frombuffer(samples, dtype=np.uint8)

    if components == 1:
        gray = data.reshape(height, width)
        return cv2.cvtColor(gray, cv2.COLOR_GRAY2RGB)

    image = data.reshape(height, width, components)
    if components == 4:
        image = image[:, :, :3]
    return np.ascontiguousarray(image)


def pil_to_array(img: Image.Image) -> np.ndarray:
    """Normalize a decoded Pillow image to an L, RGB or RGBA array."""
    if img.mode in ("RGBA", "LA", "PA") or (img.mode == "P" and "transparency" in img.info):
        img = img.convert("RGBA")
    elif img.mode not in ("L", "RGB"):
        img = img.convert("RGB")
    return np.asarray(img)


def downsample(image: np.ndarray, quality: int) -> np.ndarray:
    """Shrink an image so its longest side fits the cap for this quality."""
    height, width = image.shape[:2]
    new_width, new_height = target_dimensions(width, height, quality)

    if (new_width, new_height) == (width, height):
        return image

    logger.info(
        f"Downsampling large image (quality {quality}): "
        f"{width}x{height} -> {new_width}x{new_height}"
    )
    return cv2.resize(image, (new_width, new_height), interpolation=cv2.INTER_LANCZOS4)


def png_compress_level(quality: int) -> int:
    """Higher quality spends more effort on zlib."""
    if quality >= 90:
        return 9
    if quality >= 70:
        return 6
    return 1


def encode(image: np.ndarray, fmt: str, quality: int) -> bytes:
    """
    Encode an image array in the given Pillow format.

    Args:
        image: L, RGB or RGBA uint8 array
        fmt: "JPEG", "PNG" or "WEBP"
        quality: Codec quality (JPEG/WebP), mapped to zlib effort for PNG

    Raises:
        ValueError: unknown format
        OSError: encoder failure
    """
    img = Image.fromarray(image)
    buffer = io.BytesIO()

    if fmt == "JPEG":
        if img.mode not in ("RGB", "L"):
            img = img.convert("RGB")
        img.save(buffer, format="JPEG", quality=quality, optimize=True)
    elif fmt == "PNG":
        img.save(buffer, format="PNG", compress_level=png_compress_level(quality))
    elif fmt == "WEBP":
        img.save(buffer, format="WEBP", quality=quality, method=6)
    else:
        raise ValueError(f"Unsupported format: {fmt}")

    return buffer.getvalue()
