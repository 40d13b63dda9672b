"""
compression.py - Per-stream recompression.

Supports:
- JPEG re-encoding for raw or losslessly filtered 8-bit images
- Flate (zlib level 9) recompression for every other stream

Both paths return a Replacement only when the new payload is strictly
smaller than the stored one; everything else is a Keep with a reason.
Neither path raises for a single bad stream.
"""

import logging
import zlib
from dataclasses import dataclass
from typing import Union

from .classify import StreamClassification, StreamKind
from .document import Replacement, StreamSnapshot
from .imaging import downsample, encode, samples_to_rgb

logger = logging.getLogger(__name__)

# Colorspaces whose samples are not plain RGB/gray values
UNSUPPORTED_COLORSPACES = frozenset({
    "/Indexed",
    "/DeviceCMYK",
    "/Separation",
    "/DeviceN",
    "/Lab",
    "/Pattern",
})


@dataclass(frozen=True)
class Keep:
    """Leave the stream exactly as stored."""
    reason: str


Outcome = Union[Replacement, Keep]


def accept_if_smaller(snapshot: StreamSnapshot, replacement: Replacement, label: str) -> Outcome:
    """The single never-grow gate every replacement passes through."""
    new_size = len(replacement.payload)
    if new_size < snapshot.size:
        return replacement
    return Keep(f"{label} would be {new_size} bytes (original {snapshot.size})")


def recompress_image(
    snapshot: StreamSnapshot,
    classification: StreamClassification,
    quality: int
) -> Outcome:
    """
    Re-encode an image stream as JPEG.

    Args:
        snapshot: Stream copy
        classification: IMAGE classification for this stream
        quality: JPEG quality (also selects the downsample cap)

    Returns:
        Replacement with DCTDecode payload and updated dimensions, or Keep
    """
    if classification.terminal:
        return Keep("Already JPEG (DCTDecode)")

    colorspace = snapshot.colorspace
    if colorspace in UNSUPPORTED_COLORSPACES or snapshot.colorspace_components == 4:
        return Keep(f"Unsupported colorspace {colorspace}")
    if snapshot.has_decode_array:
        return Keep("Explicit /Decode array")

    if snapshot.filters:
        if snapshot.decoded is None:
            return Keep(f"Decompress failed for {list(snapshot.filters)}")
        samples = snapshot.decoded
    else:
        samples = snapshot.raw

    try:
        image = samples_to_rgb(samples, classification.width, classification.height)
    except ValueError as e:
        return Keep(str(e))

    image = downsample(image, quality)

    try:
        jpeg = encode(image, "JPEG", quality)
    except (OSError, ValueError) as e:
        return Keep(f"Image encoding failed: {e}")

    height, width = image.shape[:2]
    logger.debug(f"JPEG encoding: {len(samples):,} -> {len(jpeg):,} bytes (quality {quality})")

    replacement = Replacement(
        payload=jpeg,
        filter="/DCTDecode",
        fields=(
            ("/Width", width),
            ("/Height", height),
            ("/ColorSpace", "/DeviceRGB"),
            ("/BitsPerComponent", 8),
        ),
    )
    return accept_if_smaller(snapshot, replacement, "JPEG")


def recompress_generic(snapshot: StreamSnapshot) -> Outcome:
    """
    Recompress a non-image stream with Flate at maximum effort.

    Filtered streams are decoded and re-deflated when the chain can be
    inverted. Otherwise (or when that does not shrink) the stored bytes are
    deflated as-is and /FlateDecode is put in front of the existing chain.
    """
    if not snapshot.filters:
        return accept_if_smaller(snapshot, Replacement(_deflate(snapshot.raw)), "Flate")

    if snapshot.decoded is not None:
        recompressed = _deflate(snapshot.decoded)
        logger.debug(
            f"Recompressed {snapshot.objgen}: {len(snapshot.decoded):,} -> "
            f"{len(recompressed):,} bytes (was {snapshot.size:,} bytes)"
        )
        if len(recompressed) < snapshot.size:
            return Replacement(recompressed)

    chained = Replacement(_deflate(snapshot.raw), chain_existing=True)
    return accept_if_smaller(snapshot, chained, "Chained Flate")


def recompress(snapshot: StreamSnapshot, classification: StreamClassification, quality: int) -> Outcome:
    """Dispatch a classified stream to its recompression path."""
    if classification.kind is StreamKind.SKIP:
        return Keep(f"Skipped: {classification.reason}")
    if classification.is_image:
        return recompress_image(snapshot, classification, quality)
    return recompress_generic(snapshot)


def _deflate(data: bytes) -> bytes:
    return zlib.compress(data, 9)
