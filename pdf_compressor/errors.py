"""
errors.py - Fatal error taxonomy.

Only whole-call failures are raised. A single stream that cannot be
recompressed is never an error; it is kept as-is (see compression.Keep).
"""


class CompressionError(Exception):
    """Base class for every fatal compression failure."""


class EmptyInput(CompressionError):
    """Input buffer has no bytes."""

    def __init__(self, what: str = "input"):
        super().__init__(f"Empty {what}")


class ParseFailed(CompressionError):
    """Input could not be parsed as a PDF or decoded as an image."""


class UnsupportedFormat(CompressionError):
    """Requested output format is not one of jpg/jpeg/png/webp."""

    def __init__(self, format_name: str):
        self.format_name = format_name
        super().__init__(f"Unsupported output format: {format_name}")


class SerializeFailed(CompressionError):
    """Mutated document could not be written back to bytes."""


class EncodeFailed(CompressionError):
    """No candidate encoding could be produced for a standalone image."""
