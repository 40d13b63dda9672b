"""
quality.py - Compression level to codec quality mapping.

Level 10 (minimal) maps to quality 96, level 95 (maximal) to quality 30,
through four linear segments with breakpoints at levels 25/50/75
(quality 90/70/50).
"""

from typing import Optional, Tuple

from .config import MAX_LEVEL, MIN_LEVEL

# (quality upper bound, max dimension) - first matching band wins
DOWNSAMPLE_BANDS = (
    (50, 1000),
    (70, 1200),
    (90, 1500),
)


def clamp_level(level: int) -> int:
    """Clamp a compression level into [MIN_LEVEL, MAX_LEVEL]."""
    return max(MIN_LEVEL, min(int(level), MAX_LEVEL))


def level_to_quality(level: int) -> int:
    """
    Map a compression level to a codec quality.

    Out-of-range levels are clamped, never rejected. Each segment truncates
    its fractional step, so the result is non-increasing in level.
    """
    level = clamp_level(level)

    if level <= 25:
        return 100 - (level * 2) // 5           # 96 .. 90
    if level <= 50:
        return 90 - ((level - 25) * 4) // 5     # 90 .. 70
    if level <= 75:
        return 70 - ((level - 50) * 4) // 5     # 70 .. 50
    return 50 - (level - 75)                    # 50 .. 30


def quality_to_max_dimension(quality: int) -> Optional[int]:
    """Downsample cap in pixels for a quality, or None to keep full size."""
    for upper, max_dimension in DOWNSAMPLE_BANDS:
        if quality < upper:
            return max_dimension
    return None


def target_dimensions(width: int, height: int, quality: int) -> Tuple[int, int]:
    """
    Aspect-preserving target size for an image at the given quality.

    Returns the original size unless the larger side exceeds the cap.
    """
    max_dimension = quality_to_max_dimension(quality)
    longest = max(width, height)
    if max_dimension is None or longest <= max_dimension:
        return width, height

    new_width = max(1, int(width * max_dimension / longest))
    new_height = max(1, int(height * max_dimension / longest))
    return new_width, new_height
