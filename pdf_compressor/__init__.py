"""
PDF Compressor - quality-budgeted recompression for PDF documents and images.

This package walks every stream of a parsed PDF, recompresses image and
generic payloads in parallel, keeps only replacements that shrink, strips
metadata and compacts the object graph. Standalone raster images go through
the same quality mapping and encode step.
"""

from .config import CompressionConfig
from .errors import (
    CompressionError,
    EmptyInput,
    EncodeFailed,
    ParseFailed,
    SerializeFailed,
    UnsupportedFormat,
)
from .image_pipeline import compress_image
from .pipeline import compress_document, compress_document_with_stats

__version__ = "1.0.0"
__author__ = "PDF Compressor"

__all__ = [
    "CompressionConfig",
    "CompressionError",
    "EmptyInput",
    "EncodeFailed",
    "ParseFailed",
    "SerializeFailed",
    "UnsupportedFormat",
    "compress_document",
    "compress_document_with_stats",
    "compress_image",
]
