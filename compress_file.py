#!/usr/bin/env python3
"""
compress_file.py - PDF and image compression CLI.

Usage:
    python compress_file.py input.pdf -o smaller.pdf
    python compress_file.py photo.png --level 90 --format webp
    python compress_file.py *.pdf *.jpg --output-dir ./compressed/
"""

import argparse
import logging
import re
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from pdf_compressor import CompressionConfig, CompressionError, compress_document, compress_image
from pdf_compressor.config import DEFAULT_LEVEL, MAX_LEVEL, MIN_LEVEL
from pdf_compressor.image_pipeline import TARGET_FORMATS

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 255
_NAME_CHARS = re.compile(r"[^\w\- ]")


@dataclass
class FileResult:
    """Result of compressing one file."""
    input_path: Path
    output_path: Optional[Path] = None
    success: bool = False
    error: Optional[str] = None
    input_size: int = 0
    output_size: int = 0

    @property
    def reduction_pct(self) -> float:
        if self.input_size == 0:
            return 0
        return (1 - self.output_size / self.input_size) * 100

    def summary(self) -> str:
        return (
            f"Input:  {self.input_path.name} ({self.input_size:,} bytes)\n"
            f"Output: {self.output_path.name} ({self.output_size:,} bytes)\n"
            f"Reduction: {self.reduction_pct:.1f}%"
        )


def setup_logging(verbose: bool = False):
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S"
    )


def sanitize_filename(name: str) -> str:
    """
    Reduce a user-supplied output name to a safe stem.

    Drops the extension, keeps letters, digits, '-', '_' and spaces.

    Raises:
        ValueError: nothing usable left, or longer than 255 characters
    """
    stem = name.rsplit(".", 1)[0] if "." in name else name
    sanitized = _NAME_CHARS.sub("", stem.strip())

    if not sanitized:
        raise ValueError(
            "Invalid output filename: only alphanumeric, hyphens, underscores, and spaces allowed"
        )
    if len(sanitized) > MAX_NAME_LENGTH:
        raise ValueError(f"Invalid output filename: maximum {MAX_NAME_LENGTH} characters allowed")
    return sanitized


def output_name(input_path: Path, extension: str, custom: Optional[str] = None) -> str:
    """<custom>.<ext> if a name was given, else <stem>-compressed.<ext>."""
    if custom:
        return f"{sanitize_filename(custom)}.{extension}"
    return f"{input_path.stem}-compressed.{extension}"


def is_pdf(data: bytes) -> bool:
    return data[:1024].lstrip().startswith(b"%PDF")


def compress_path(
    input_path: Path,
    output_dir: Optional[Path],
    level: int,
    target_format: Optional[str],
    config: CompressionConfig,
    custom_name: Optional[str] = None
) -> FileResult:
    """Compress one file on disk and write the result next to it (or into output_dir)."""
    result = FileResult(input_path=input_path)

    try:
        data = input_path.read_bytes()
        result.input_size = len(data)

        if is_pdf(data):
            output, extension = compress_document(data, level, config), "pdf"
        else:
            output, extension = compress_image(data, level, target_format)

        out_dir = output_dir if output_dir is not None else input_path.parent
        result.output_path = out_dir / output_name(input_path, extension, custom_name)
        result.output_path.write_bytes(output)

        result.output_size = len(output)
        result.success = True

    except (CompressionError, OSError, ValueError) as e:
        logger.error(f"{input_path.name} failed: {e}")
        result.error = str(e)

    return result


def parse_args(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Compress PDF documents and images.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python compress_file.py report.pdf -o report-small.pdf
  python compress_file.py scan.png --level 90 --format webp
  python compress_file.py *.pdf --output-dir ./out/

Environment:
  PDF_COMPRESSION_ROUNDS   cleanup rounds (default 2, max 5)
  PDF_COMPRESSION_WORKERS  parallel workers (default: CPU count)
"""
    )

    parser.add_argument(
        "input",
        nargs="+",
        type=Path,
        help="Input PDF or image file(s)"
    )

    output = parser.add_mutually_exclusive_group()
    output.add_argument(
        "-o", "--output",
        help="Output file name (single input only, extension is replaced)"
    )
    output.add_argument(
        "--output-dir",
        type=Path,
        help="Output directory (default: next to each input)"
    )

    parser.add_argument(
        "-l", "--level",
        type=int,
        default=DEFAULT_LEVEL,
        help=f"Compression level {MIN_LEVEL}-{MAX_LEVEL}, higher = smaller (default: {DEFAULT_LEVEL})"
    )

    parser.add_argument(
        "-f", "--format",
        choices=sorted(TARGET_FORMATS),
        help="Output format for images (default: automatic)"
    )

    parser.add_argument(
        "--rounds",
        type=int,
        help="PDF cleanup rounds (overrides PDF_COMPRESSION_ROUNDS)"
    )

    parser.add_argument(
        "--workers",
        type=int,
        help="Parallel workers, 0 = auto (overrides PDF_COMPRESSION_WORKERS)"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output"
    )

    return parser.parse_args(argv)


def build_config(args) -> CompressionConfig:
    config = CompressionConfig.from_env()
    return CompressionConfig(
        rounds=args.rounds if args.rounds is not None else config.rounds,
        max_workers=args.workers if args.workers is not None else config.max_workers,
    )


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging(args.verbose)

    valid_inputs = []
    for p in args.input:
        if not p.is_file():
            print(f"Error: File not found: {p}", file=sys.stderr)
            continue
        valid_inputs.append(p)

    if not valid_inputs:
        print("Error: No valid input files", file=sys.stderr)
        return 1

    if args.output and len(valid_inputs) > 1:
        print("Error: Use --output-dir for multiple files", file=sys.stderr)
        return 1

    if args.output_dir:
        args.output_dir.mkdir(parents=True, exist_ok=True)

    config = build_config(args)

    total_in = 0
    total_out = 0
    successes = 0

    for i, input_path in enumerate(valid_inputs):
        if len(valid_inputs) > 1:
            print(f"\n[{i+1}/{len(valid_inputs)}] {input_path.name}")

        result = compress_path(
            input_path,
            args.output_dir,
            args.level,
            args.format,
            config,
            custom_name=args.output
        )

        total_in += result.input_size
        if result.success:
            total_out += result.output_size
            successes += 1
            print(f"\n{result.summary()}")
        else:
            print(f"Error: {result.error}", file=sys.stderr)

    if len(valid_inputs) > 1:
        print(f"\n{'='*50}")
        print(f"Batch complete: {successes}/{len(valid_inputs)} files")
        print(f"Total: {total_in:,} -> {total_out:,} bytes")

    return 0 if successes == len(valid_inputs) else 1


if __name__ == "__main__":
    sys.exit(main())
