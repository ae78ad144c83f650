#!/usr/bin/env python3
"""Constant-memory extraction of records from a decompressing dump stream."""
import codecs, enum, logging, threading, time
from dataclasses import asdict, dataclass
from typing import BinaryIO, Optional

from dump_large.json_worker.record_splitter import (
    OPEN_MARKER, BoundarySplitter, ReassemblyBuffer,
)
from shared.byte_source import DECOMPRESSION_ERRORS, open_source
from shared.config import RunConfig
from shared.errors import (
    DecodeError, DumpError, RunCancelled, SinkError, SourceError, TransformError,
    UnexpectedEof,
)
from shared.output_sink import OutputSink, check_destination, open_sink
from shared.record_transformer import Emit, JqTransformer

logger = logging.getLogger(__name__)


class State(enum.Enum):
    PRIMING = "priming"
    STREAMING = "streaming"
    FINALIZING = "finalizing"
    DONE = "done"
    ABORTED = "aborted"


@dataclass
class RunCounters:
    bytes_consumed: int = 0
    records_seen: int = 0
    records_emitted: int = 0
    records_skipped: int = 0
    records_empty: int = 0
    elapsed: float = 0.0

    def as_dict(self):
        return asdict(self)


class ChunkReader:
    """Reads fixed-capacity chunks from the source into one reusable buffer."""

    def __init__(self, source: BinaryIO, capacity: int):
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self._source = source
        self._buffer = bytearray(capacity)
        self._view = memoryview(self._buffer)
        self._filled = 0
        self.capacity = capacity
        self.total_bytes = 0

    def read_chunk(self) -> int:
        self._filled = self._readinto(self._view)
        self.total_bytes += self._filled
        return self._filled

    def read_exact(self, size: int) -> bytes:
        """Read ``size`` bytes or fewer only if the source runs out."""
        out = bytearray()
        while len(out) < size:
            n = self._readinto(self._view[:size - len(out)])
            if n == 0:
                break
            out += self._view[:n]
        self.total_bytes += len(out)
        return bytes(out)

    @property
    def chunk(self) -> memoryview:
        return self._view[:self._filled]

    def _readinto(self, view) -> int:
        try:
            n = self._source.readinto(view)
        except DECOMPRESSION_ERRORS as e:
            raise SourceError(f"could not read compressed input: {e}", e) from e
        return n or 0


class RunController:
    """Drives read, split, transform and write for a single run.

    The controller owns the reassembly buffer and uses the source, sink and
    transformer exclusively while ``run`` executes. It does not open or close
    the source and sink; ``extract`` does.
    """

    def __init__(self, source: BinaryIO, sink: OutputSink, transformer,
                 chunk_size: int, continue_on_error: bool = False,
                 sentinel: Optional[bytes] = b"null\n",
                 cancel_event: Optional[threading.Event] = None,
                 progress_every: int = 100000):
        self._reader = ChunkReader(source, chunk_size)
        self._sink = sink
        self._transformer = transformer
        self._continue_on_error = continue_on_error
        self._sentinel = sentinel
        self._cancel_event = cancel_event
        self._progress_every = progress_every
        self._decoder = codecs.getincrementaldecoder("utf-8")()
        self._buffer = ReassemblyBuffer()
        self._splitter = BoundarySplitter()
        self.counters = RunCounters()
        self.state = State.PRIMING

    def run(self) -> RunCounters:
        start = time.time()
        try:
            self._prime()
            self.state = State.STREAMING
            result = self._stream()
            self.state = State.FINALIZING
            if result.final_record is not None:
                self._handle(result.final_record)
            self._sink.flush()
        except DumpError as e:
            self.state = State.ABORTED
            self._update_bytes(start)
            logger.debug("Run aborted after %s records: %s", self.counters.records_seen, e)
            if not isinstance(e, SinkError):
                try:
                    self._sink.flush()
                except SinkError as flush_error:
                    logger.error("Could not flush output after %s: %s", e.stage, flush_error)
            raise
        self.state = State.DONE
        self._update_bytes(start)
        logger.info(
            "Finished! Processed %s bytes, %s entities, outputted %s (%s skipped) in %.2fs",
            self.counters.bytes_consumed, self.counters.records_seen,
            self.counters.records_emitted, self.counters.records_skipped,
            self.counters.elapsed,
        )
        return self.counters

    def _update_bytes(self, start):
        self.counters.bytes_consumed = self._reader.total_bytes
        self.counters.elapsed = time.time() - start

    def _prime(self):
        # discard "[\n"; both are ASCII so one byte each
        head = self._reader.read_exact(len(OPEN_MARKER))
        if len(head) < len(OPEN_MARKER):
            raise UnexpectedEof(f"input ended after {len(head)} byte(s), before the opening marker")
        if head != OPEN_MARKER:
            raise SourceError(f"input does not start with {OPEN_MARKER!r}, got {head!r}")

    def _stream(self):
        while True:
            if self._cancel_event is not None and self._cancel_event.is_set():
                raise RunCancelled(
                    f"cancelled after {self.counters.records_seen} records, "
                    f"{self._reader.total_bytes} bytes"
                )
            n = self._reader.read_chunk()
            if n == 0:
                raise UnexpectedEof(
                    f"input exhausted after {self._reader.total_bytes} bytes without the closing marker"
                )
            self._buffer.append(self._decode(self._reader.chunk))
            result = self._splitter.split(self._buffer)
            for record in result.records:
                self._handle(record)
            if result.complete:
                return result

    def _decode(self, chunk) -> str:
        # incomplete trailing characters stay inside the decoder until the next chunk
        try:
            return self._decoder.decode(chunk)
        except UnicodeDecodeError as e:
            offset = self._reader.total_bytes - len(chunk) + e.start
            raise DecodeError(f"invalid UTF-8 at byte {offset}: {e.reason}", e) from e

    def _handle(self, record: str):
        self.counters.records_seen += 1
        logger.debug("%s", record)
        try:
            result = self._transformer.transform(record)
        except TransformError as e:
            if not self._continue_on_error:
                raise
            logger.info("Could not parse record %s: %s", self.counters.records_seen, e.cause)
            self.counters.records_skipped += 1
            if self._sentinel is not None:
                self._sink.write(self._sentinel)
        else:
            if isinstance(result, Emit):
                self._sink.write(result.data)
                self.counters.records_emitted += 1
            else:
                self.counters.records_empty += 1
        if self.counters.records_seen % self._progress_every == 0:
            logger.info(
                "Processed %s entities, %s outputted, %s skipped",
                self.counters.records_seen, self.counters.records_emitted,
                self.counters.records_skipped,
            )


def extract(config: RunConfig, cancel_event: Optional[threading.Event] = None) -> RunCounters:
    """Run one extraction described by ``config``.

    The filter is compiled and the destination checked before anything is
    opened, so a bad filter never truncates an existing output file. Source and
    sink are released on every exit path.
    """
    transformer = JqTransformer(config.filter_expression, validate=config.validate_records)
    check_destination(config.output_destination, config.overwrite_existing_output)
    logger.debug("Initializing buffer to size %s", config.chunk_size)
    source = open_source(config.input_source)
    try:
        with open_sink(config.output_destination) as sink:
            controller = RunController(
                source, sink, transformer,
                chunk_size=config.chunk_size,
                continue_on_error=config.continue_on_error,
                sentinel=config.sentinel_bytes,
                cancel_event=cancel_event,
                progress_every=config.progress_every,
            )
            return controller.run()
    finally:
        source.close()
