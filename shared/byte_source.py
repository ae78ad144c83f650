#!/usr/bin/env python3
"""Open a dump file as a sequential decompressing byte reader."""
import bz2, gzip, logging, lzma, pathlib, zlib
from typing import BinaryIO

from shared.errors import SourceError

logger = logging.getLogger(__name__)

# exceptions the stdlib decompressors raise for corrupt or truncated input
DECOMPRESSION_ERRORS = (OSError, EOFError, zlib.error, lzma.LZMAError)

_MAGIC = (
    (b"BZh", "bz2"),
    (b"\x1f\x8b", "gzip"),
    (b"\xfd7zXZ\x00", "xz"),
)


def detect_compression(path) -> str:
    """Return 'bz2', 'gzip', 'xz', or 'plain' from the file's magic bytes."""
    try:
        with open(path, 'rb') as f:
            head = f.read(6)
    except OSError as e:
        raise SourceError(f"cannot open {path}: {e}", e) from e
    for magic, name in _MAGIC:
        if head.startswith(magic):
            return name
    return 'plain'


def open_source(path) -> BinaryIO:
    """Open ``path`` for reading decompressed bytes.

    bzip2 input may consist of several concatenated streams, as the Wikidata
    dumps do; ``bz2.open`` reads through all of them.
    """
    path = pathlib.Path(path)
    kind = detect_compression(path)
    logger.debug("Opening %s as %s, size: %s", path, kind, path.stat().st_size)
    try:
        if kind == 'bz2':
            return bz2.open(path, 'rb')
        if kind == 'gzip':
            return gzip.open(path, 'rb')
        if kind == 'xz':
            return lzma.open(path, 'rb')
        return open(path, 'rb')
    except DECOMPRESSION_ERRORS as e:
        raise SourceError(f"cannot open {path}: {e}", e) from e
