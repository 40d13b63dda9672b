"""
coordinator.py - Parallel per-stream recompression.

Phase 1 (calling thread): snapshot every stream out of the pikepdf graph.
Phase 2 (thread pool): classify + recompress each snapshot independently.
Phase 3 (calling thread): write accepted replacements back, one at a time.

Counters come back as part of each task's result and are summed after
collection, so workers share no mutable state.
"""

import logging
import multiprocessing
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import List, Optional

from .classify import classify
from .compression import Keep, Outcome, recompress
from .document import Document, ObjGen, StreamSnapshot

logger = logging.getLogger(__name__)


@dataclass
class StreamResult:
    """Outcome for one stream, produced by a worker."""
    objgen: ObjGen
    is_image: bool
    original_size: int
    outcome: Outcome

    @property
    def accepted(self) -> bool:
        return not isinstance(self.outcome, Keep)

    @property
    def saved(self) -> int:
        if isinstance(self.outcome, Keep):
            return 0
        return self.original_size - len(self.outcome.payload)


@dataclass
class StreamStats:
    """Summary of one compress_streams call."""
    streams: int = 0
    images: int = 0
    compressed: int = 0
    apply_failed: int = 0
    bytes_saved: int = 0
    results: List[StreamResult] = field(default_factory=list)

    @property
    def kept(self) -> int:
        return self.streams - self.compressed


def process_stream(snapshot: StreamSnapshot, quality: int) -> StreamResult:
    """Classify and recompress one stream. Never raises for a bad stream."""
    classification = classify(snapshot)
    outcome = recompress(snapshot, classification, quality)

    if isinstance(outcome, Keep):
        logger.debug(f"Keeping original {snapshot.objgen}: {outcome.reason}")
    else:
        logger.debug(
            f"Compressed {snapshot.objgen}: {snapshot.size:,} -> "
            f"{len(outcome.payload):,} bytes"
        )

    return StreamResult(
        objgen=snapshot.objgen,
        is_image=classification.is_image,
        original_size=snapshot.size,
        outcome=outcome,
    )


def compress_streams(
    document: Document,
    quality: int,
    max_workers: int = 0,
    snapshots: Optional[List[StreamSnapshot]] = None
) -> StreamStats:
    """
    Recompress every stream of a document in parallel.

    Args:
        document: Open document, mutated in place
        quality: Codec quality for image streams
        max_workers: Parallel workers (0 = auto, 1 = sequential)
        snapshots: Pre-taken snapshots of the document's streams

    Returns:
        StreamStats with per-stream results and summed counters
    """
    if snapshots is None:
        snapshots = [document.snapshot(s) for s in document.streams()]

    if max_workers <= 0:
        max_workers = multiprocessing.cpu_count()

    logger.info(f"Processing {len(snapshots)} streams with {max_workers} workers")

    results: List[StreamResult] = []

    if max_workers == 1:
        for snap in snapshots:
            results.append(process_stream(snap, quality))
    else:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = [executor.submit(process_stream, snap, quality) for snap in snapshots]
            for future in as_completed(futures):
                results.append(future.result())

    results.sort(key=lambda r: r.objgen)

    stats = StreamStats(
        streams=len(results),
        images=sum(1 for r in results if r.is_image),
        results=results,
    )

    # Single-threaded write-back
    for result in results:
        if not result.accepted:
            continue
        try:
            document.apply(result.objgen, result.outcome)
        except Exception as e:
            logger.warning(f"Could not update stream {result.objgen}, keeping original: {e}")
            stats.apply_failed += 1
            continue
        stats.compressed += 1
        stats.bytes_saved += result.saved

    logger.info(f"Compressed {stats.compressed}/{stats.streams} streams")
    logger.info(f"Found {stats.images} image streams")
    logger.info(f"Total bytes saved from stream compression: {stats.bytes_saved:,}")

    return stats
