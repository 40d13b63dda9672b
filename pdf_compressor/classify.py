"""
classify.py - Decide which recompression path a stream takes.

Classification reads only the stream dictionary fields captured in the
snapshot; payload bytes are never inspected here.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from .document import IMAGE_ONLY_FILTERS, StreamSnapshot

# Container bookkeeping streams, rebuilt by pikepdf on save
STRUCTURAL_TYPES = frozenset({"/XRef", "/ObjStm"})

# Already-lossy image filters; re-encoding would stack quantization loss
TERMINAL_FILTERS = frozenset({"/DCTDecode"})


class StreamKind(Enum):
    IMAGE = "image"
    GENERIC = "generic"
    SKIP = "skip"


@dataclass(frozen=True)
class StreamClassification:
    kind: StreamKind
    width: Optional[int] = None
    height: Optional[int] = None
    bits_per_component: int = 8
    filters: Tuple[str, ...] = ()
    terminal: bool = False
    reason: str = ""

    @property
    def is_image(self) -> bool:
        return self.kind is StreamKind.IMAGE


def classify(snapshot: StreamSnapshot) -> StreamClassification:
    """
    Classify a stream as IMAGE, GENERIC or SKIP.

    An image qualifies for the image path only with positive width and
    height, 8 bits per component (or none given), no /ImageMask, and only
    when no other image uses it as a mask.
    Images that fail those checks fall back to the generic path unless
    their filter chain is image-only, in which case they are left alone.
    """
    filters = snapshot.filters

    if snapshot.type in STRUCTURAL_TYPES:
        return StreamClassification(StreamKind.SKIP, filters=filters,
                                    reason=f"structural {snapshot.type}")

    if snapshot.subtype != "/Image":
        return StreamClassification(StreamKind.GENERIC, filters=filters)

    width, height = snapshot.width, snapshot.height
    bpc = snapshot.bits_per_component if snapshot.bits_per_component is not None else 8

    if not width or not height or width <= 0 or height <= 0:
        return _incompatible_image(filters, "No width/height")
    if bpc != 8:
        return _incompatible_image(filters, f"Not 8-bit (bpc={bpc})")
    if snapshot.image_mask:
        return _incompatible_image(filters, "Image mask")
    if snapshot.soft_mask:
        return _incompatible_image(filters, "Soft mask")

    return StreamClassification(
        StreamKind.IMAGE,
        width=width,
        height=height,
        bits_per_component=bpc,
        filters=filters,
        terminal=bool(TERMINAL_FILTERS.intersection(filters)),
    )


def _incompatible_image(filters: Tuple[str, ...], reason: str) -> StreamClassification:
    if IMAGE_ONLY_FILTERS.intersection(filters):
        return StreamClassification(StreamKind.SKIP, filters=filters, reason=reason)
    return StreamClassification(StreamKind.GENERIC, filters=filters, reason=reason)
