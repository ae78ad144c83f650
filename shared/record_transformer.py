#!/usr/bin/env python3
"""Apply a compiled jq program to one record's raw text."""
import io, json, logging
from dataclasses import dataclass

import ijson
import jq

from shared.errors import FilterCompileError, TransformError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Emit:
    data: bytes


class Skip:
    """The filter produced no output for the record."""

    def __repr__(self):
        return "SKIP"


SKIP = Skip()


class JqTransformer:
    """Holds one compiled jq program and runs it serially over records.

    Each value the program produces is written as compact JSON followed by a
    newline. Evaluation failures are raised as ``TransformError``; the caller
    decides whether the run continues.
    """

    def __init__(self, expression: str, validate: bool = False):
        self.expression = expression
        self.validate = validate
        try:
            self._program = jq.compile(expression)
        except ValueError as e:
            raise FilterCompileError(expression, e) from e
        logger.debug("Compiled jq filter %r", expression)

    def transform(self, record_text: str):
        if self.validate:
            check_single_object(record_text)
        try:
            values = self._program.input_text(record_text).all()
        except ValueError as e:
            raise TransformError(record_text, e) from e
        if not values:
            return SKIP
        return Emit("".join(compact(v) + "\n" for v in values).encode("utf-8"))


def compact(value) -> str:
    """Serialise one jq output value the way ``jq -c`` prints it."""
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def check_single_object(record_text: str) -> None:
    """Raise ``TransformError`` unless the text is exactly one JSON object."""
    try:
        values = list(ijson.items(io.BytesIO(record_text.encode("utf-8")), "", multiple_values=True))
    except ijson.JSONError as e:
        raise TransformError(record_text, e) from e
    if len(values) != 1 or not isinstance(values[0], dict):
        raise TransformError(record_text, ValueError(f"expected one JSON object, found {len(values)} value(s)"))
