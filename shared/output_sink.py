#!/usr/bin/env python3
"""Ordered, buffered byte destination for transformed records."""
import logging, pathlib, sys
from typing import BinaryIO, Optional

from shared.errors import SinkError

logger = logging.getLogger(__name__)

WRITE_BUFFER_SIZE = 1024 * 1024


def check_destination(path: Optional[pathlib.Path], overwrite: bool) -> None:
    """Refuse to clobber an existing output file unless overwrite is allowed."""
    if path is None:
        return
    path = pathlib.Path(path)
    if path.exists() and not overwrite:
        raise SinkError(f"output file {path} already exists, use force overwrite to continue")
    if path.is_dir():
        raise SinkError(f"output path {path} is a directory")


class OutputSink:
    """Writes bytes verbatim and in call order; adds no separators."""

    def __init__(self, stream: BinaryIO, close_stream: bool = True, name: str = "<stream>"):
        self._stream = stream
        self._close_stream = close_stream
        self.name = name
        self.bytes_written = 0
        self.closed = False

    def write(self, data: bytes) -> None:
        try:
            self._stream.write(data)
        except (OSError, ValueError) as e:
            raise SinkError(f"could not write to {self.name}: {e}", e) from e
        self.bytes_written += len(data)

    def flush(self) -> None:
        try:
            self._stream.flush()
        except (OSError, ValueError) as e:
            raise SinkError(f"could not flush {self.name}: {e}", e) from e

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            self.flush()
        finally:
            if self._close_stream:
                try:
                    self._stream.close()
                except OSError as e:
                    raise SinkError(f"could not close {self.name}: {e}", e) from e

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is None:
            self.close()
            return
        # an error is already propagating; a failing close must not replace it
        try:
            self.close()
        except SinkError as close_error:
            logger.error("Could not close %s: %s", self.name, close_error)


def open_sink(path: Optional[pathlib.Path]) -> OutputSink:
    """Open a file sink, or wrap stdout when ``path`` is None."""
    if path is None:
        return OutputSink(sys.stdout.buffer, close_stream=False, name="<stdout>")
    try:
        stream = open(path, 'wb', buffering=WRITE_BUFFER_SIZE)
    except OSError as e:
        raise SinkError(f"could not open {path} for writing: {e}", e) from e
    logger.debug("Writing output to %s", path)
    return OutputSink(stream, name=str(path))
