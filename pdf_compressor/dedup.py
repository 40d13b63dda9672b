"""
dedup.py - Duplicate stream payload detection.

Payloads are bucketed by CRC-32, which is fast but not collision-free, so a
pair is only recorded after its bytes compare equal.
"""

import logging
import zlib
from typing import Dict, Iterable, List

from .document import ObjGen, StreamSnapshot

logger = logging.getLogger(__name__)


def content_hash(payload: bytes) -> int:
    return zlib.crc32(payload)


def find_duplicate_streams(snapshots: Iterable[StreamSnapshot]) -> Dict[ObjGen, ObjGen]:
    """
    Map each stream whose raw payload repeats an earlier one to that earlier one.

    Args:
        snapshots: Streams in document order

    Returns:
        {duplicate objgen: canonical objgen}; empty if nothing repeats
    """
    buckets: Dict[int, List[StreamSnapshot]] = {}
    duplicates: Dict[ObjGen, ObjGen] = {}

    for snap in snapshots:
        candidates = buckets.setdefault(content_hash(snap.raw), [])
        for canonical in candidates:
            if canonical.raw == snap.raw:
                duplicates[snap.objgen] = canonical.objgen
                logger.debug(f"Found duplicate stream: {snap.objgen} is same as {canonical.objgen}")
                break
        else:
            # New content, or a hash collision with different bytes
            candidates.append(snap)

    return duplicates
