#!/usr/bin/env python3
"""Run configuration and environment defaults."""
import os
import pathlib
from dataclasses import dataclass, field
from typing import Optional

# must be large enough to hold the largest entity for one read per record
DEFAULT_CHUNK_SIZE = 500000
DEFAULT_PROGRESS_EVERY = 100000
DEFAULT_SENTINEL = "null\n"


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if not raw:
        return default
    value = int(raw)
    if value < 1:
        raise ValueError(f"{name} must be a positive integer, got {raw!r}")
    return value


def default_chunk_size() -> int:
    return _env_int("DUMP_CHUNK_SIZE", DEFAULT_CHUNK_SIZE)


def default_progress_every() -> int:
    return _env_int("DUMP_PROGRESS_EVERY", DEFAULT_PROGRESS_EVERY)


def debug_enabled() -> bool:
    return os.environ.get("DEBUG", "").lower() in ("1", "true", "yes")


@dataclass
class RunConfig:
    """Parameters for one extraction run.

    ``output_destination`` of None writes to stdout. ``sentinel`` is written in
    place of a record whose transform failed when ``continue_on_error`` is set;
    None drops such records without writing anything.
    """

    input_source: pathlib.Path
    filter_expression: str
    output_destination: Optional[pathlib.Path] = None
    continue_on_error: bool = False
    overwrite_existing_output: bool = False
    chunk_size: int = field(default_factory=default_chunk_size)
    sentinel: Optional[str] = DEFAULT_SENTINEL
    validate_records: bool = False
    progress_every: int = field(default_factory=default_progress_every)

    def __post_init__(self):
        self.input_source = pathlib.Path(self.input_source)
        if self.output_destination is not None:
            self.output_destination = pathlib.Path(self.output_destination)
        if self.chunk_size < 1:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")
        if self.progress_every < 1:
            raise ValueError(f"progress_every must be positive, got {self.progress_every}")

    @property
    def sentinel_bytes(self) -> Optional[bytes]:
        return None if self.sentinel is None else self.sentinel.encode("utf-8")
