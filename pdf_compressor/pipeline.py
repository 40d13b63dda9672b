"""
pipeline.py - PDF compression pipeline.

Pipeline:
1. Parse
2. Find duplicate stream payloads
3. Recompress every stream in parallel (images -> JPEG, rest -> Flate)
4. Strip /Type /Metadata objects
5. N rounds of compact / prune / zero-length stream removal
6. Final compact + prune
7. Serialize

Only parse and serialize failures are fatal. Every step in between is
best-effort: a failure is logged and the document carries on as it was.
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional, Tuple

from .config import CompressionConfig
from .coordinator import StreamStats, compress_streams
from .dedup import find_duplicate_streams
from .document import Document
from .quality import clamp_level, level_to_quality

logger = logging.getLogger(__name__)


@dataclass
class CompressionStats:
    """Statistics for one compress_document call."""
    level: int = 0
    quality: int = 0
    input_size: int = 0
    output_size: int = 0

    objects_before: int = 0
    objects_after: int = 0
    page_count: int = 0

    duplicates: int = 0
    merged: int = 0
    metadata_removed: int = 0
    rounds: int = 0
    total_time: float = 0.0

    streams: Optional[StreamStats] = None

    @property
    def reduction_pct(self) -> float:
        if self.input_size == 0:
            return 0
        return (1 - self.output_size / self.input_size) * 100

    def summary(self) -> str:
        compressed = self.streams.compressed if self.streams else 0
        total = self.streams.streams if self.streams else 0
        return (
            f"Level {self.level} (quality {self.quality})\n"
            f"Size: {self.input_size:,} -> {self.output_size:,} bytes "
            f"({self.reduction_pct:.1f}% reduction)\n"
            f"Streams compressed: {compressed}/{total}\n"
            f"Objects: {self.objects_before} -> {self.objects_after}\n"
            f"Time: {self.total_time:.1f}s"
        )


def compress_document(
    data: bytes,
    level: int,
    config: Optional[CompressionConfig] = None
) -> bytes:
    """
    Compress PDF bytes at a compression level.

    Args:
        data: PDF file contents
        level: Compression level, clamped to 10-95 (higher = smaller)
        config: Rounds / workers; defaults to CompressionConfig()

    Returns:
        Compressed PDF bytes

    Raises:
        EmptyInput, ParseFailed, SerializeFailed
    """
    output, _ = compress_document_with_stats(data, level, config)
    return output


def compress_document_with_stats(
    data: bytes,
    level: int,
    config: Optional[CompressionConfig] = None
) -> Tuple[bytes, CompressionStats]:
    """Same as compress_document, also returning CompressionStats."""
    config = config or CompressionConfig()
    start_time = time.time()

    level = clamp_level(level)
    quality = level_to_quality(level)
    stats = CompressionStats(level=level, quality=quality, input_size=len(data))

    logger.info(f"Starting compression with quality {quality} (compression level {level})")

    with Document.open(data) as document:
        stats.objects_before = document.object_count
        stats.page_count = document.page_count
        logger.info(
            f"PDF loaded: {stats.page_count} pages, {stats.objects_before} objects, "
            f"{stats.input_size:,} bytes"
        )

        snapshots = [document.snapshot(s) for s in document.streams()]

        # Dedup
        dedup_map = find_duplicate_streams(snapshots)
        stats.duplicates = len(dedup_map)
        document.register_duplicates(dedup_map)
        logger.info(f"Found {stats.duplicates} duplicate streams")

        # CompressStreams
        stats.streams = compress_streams(
            document, quality, max_workers=config.max_workers, snapshots=snapshots
        )
        del snapshots

        # StripMetadata
        stats.metadata_removed = _best_effort("strip metadata", document.strip_metadata, 0)
        logger.info(f"Removed {stats.metadata_removed} metadata objects")

        # CompactRound x N
        stats.rounds = config.effective_rounds
        logger.info(f"Performing {stats.rounds} compression round(s)...")
        for i in range(stats.rounds):
            logger.debug(f"Compression round {i + 1}")
            stats.merged += _compact_round(document, delete_empty=True)

        # FinalCompact
        logger.info("Final cleanup...")
        stats.merged += _compact_round(document, delete_empty=False)

        stats.objects_after = document.object_count
        logger.info(f"Final object count: {stats.objects_after}")

        output = document.save()

    stats.output_size = len(output)
    stats.total_time = time.time() - start_time

    logger.info(f"PDF compressed successfully: {stats.input_size:,} bytes -> {stats.output_size:,} bytes")

    return output, stats


def _compact_round(document: Document, delete_empty: bool) -> int:
    merged = _best_effort("compact", document.compact, 0)
    pruned = _best_effort("prune", document.prune, 0)
    deleted = 0
    if delete_empty:
        deleted = _best_effort("delete zero-length streams", document.delete_zero_length_streams, 0)
    logger.debug(f"Merged {merged} duplicates, pruned {pruned} objects, removed {deleted} empty streams")
    return merged


def _best_effort(step: str, func, default):
    try:
        return func()
    except Exception as e:
        logger.warning(f"Could not {step}: {e}")
        return default
