"""
config.py - Compression policy constants and per-call configuration.

The core never reads the environment. Callers build a CompressionConfig
(optionally via CompressionConfig.from_env) and pass it in explicitly.
"""

import logging
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# Compression level bounds (user-facing knob)
MIN_LEVEL = 10
MAX_LEVEL = 95
DEFAULT_LEVEL = 75

# Convergence rounds of compact/prune/zero-length-stream removal
DEFAULT_ROUNDS = 2
MAX_ROUNDS = 5

ROUNDS_ENV = "PDF_COMPRESSION_ROUNDS"
WORKERS_ENV = "PDF_COMPRESSION_WORKERS"


@dataclass(frozen=True)
class CompressionConfig:
    """Settings injected into compress_document by its caller."""
    rounds: int = DEFAULT_ROUNDS
    max_workers: int = 0  # 0 = auto (CPU count), 1 = sequential

    @property
    def effective_rounds(self) -> int:
        return max(0, min(self.rounds, MAX_ROUNDS))

    @classmethod
    def from_env(cls, environ=None) -> "CompressionConfig":
        """Build a config from PDF_COMPRESSION_ROUNDS / PDF_COMPRESSION_WORKERS."""
        environ = os.environ if environ is None else environ
        return cls(
            rounds=_int_setting(environ, ROUNDS_ENV, DEFAULT_ROUNDS),
            max_workers=_int_setting(environ, WORKERS_ENV, 0),
        )


def _int_setting(environ, name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"Ignoring invalid {name}={raw!r}, using {default}")
        return default
    if value < 0:
        logger.warning(f"Ignoring negative {name}={raw!r}, using {default}")
        return default
    return value
