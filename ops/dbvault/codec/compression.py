"""Gzip compression of snapshot payloads."""

from __future__ import annotations

import gzip
import zlib

from ..errors import FormatError

DEFAULT_LEVEL = 9


def compress(data: bytes, level: int = DEFAULT_LEVEL) -> bytes:
    """Compress with gzip.

    mtime is pinned so equal input always yields equal output.
    """
    return gzip.compress(data, compresslevel=level, mtime=0)


def decompress(data: bytes) -> bytes:
    """Decompress a gzip stream.

    Raises:
        FormatError: If the stream is malformed or truncated
    """
    try:
        return gzip.decompress(data)
    except (OSError, EOFError, zlib.error) as e:
        raise FormatError(f"malformed compressed stream: {e}") from e
