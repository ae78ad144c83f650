#!/usr/bin/env python3
"""Error types raised by the extraction pipeline.

Every error carries a ``stage`` naming the part of the run that failed so the
CLI and the HTTP service can report it without inspecting the type.
"""


class DumpError(Exception):
    """Base class for all extraction failures."""

    stage = "run"

    def __init__(self, message: str, cause: Exception = None):
        super().__init__(message)
        self.cause = cause

    def describe(self) -> str:
        return f"{self.stage}: {self}"


class SourceError(DumpError):
    """Compressed input is unreadable, corrupted or not in the dump shape."""

    stage = "source read"


class UnexpectedEof(DumpError):
    """Input ended before the closing marker was seen."""

    stage = "source read"


class DecodeError(DumpError):
    """Decompressed bytes are not valid UTF-8."""

    stage = "decode"


class FilterCompileError(DumpError):
    stage = "filter compile"

    def __init__(self, expression: str, cause: Exception = None):
        super().__init__(f"invalid jq filter {expression!r}: {cause}", cause)
        self.expression = expression


class TransformError(DumpError):
    """One record failed evaluation. Recoverable under continue-on-error."""

    stage = "per-record transform"

    def __init__(self, record_text: str, cause: Exception = None):
        preview = record_text if len(record_text) <= 200 else record_text[:200] + "..."
        super().__init__(f"could not transform record {preview!r}: {cause}", cause)
        self.record_text = record_text


class SinkError(DumpError):
    stage = "sink write"


class RunCancelled(DumpError):
    stage = "cancelled"


class DownloadError(DumpError):
    stage = "download"
