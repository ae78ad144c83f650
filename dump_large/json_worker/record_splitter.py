#!/usr/bin/env python3
"""Split decoded dump text into records on the comma-newline delimiter.

A dump is laid out as::

    [
    {...},
    {...},
    ...
    {...}
    ]

so every record but the last is followed by ",\\n" and the last one by "\\n]".
Records are never parsed here; boundaries come from the delimiter alone, which
assumes no record contains a literal comma-newline inside a string.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

logger = logging.getLogger(__name__)

OPEN_MARKER = b"[\n"
DELIMITER = ",\n"
CLOSE_MARKER = "\n]"


def is_terminal(tail: str) -> Optional[str]:
    """Return the final record if ``tail`` closes the array, else None.

    Trailing whitespace after the closing bracket is tolerated.
    """
    end = len(tail)
    while end and tail[end - 1].isspace():
        end -= 1
    if tail.endswith(CLOSE_MARKER, 0, end):
        return tail[:end - len(CLOSE_MARKER)]
    return None


class ReassemblyBuffer:
    """Decoded text not yet resolved into a complete record.

    Appended pieces are kept in a list and only joined when a boundary is
    found. ``scanned`` is how far the text is known to hold no delimiter
    start, so a record spanning many chunks is not searched again from its
    beginning.
    """

    def __init__(self):
        self._searched: List[str] = []
        self._searched_len = 0
        self._pending: List[str] = []
        self._length = 0

    def append(self, text: str) -> None:
        if text:
            self._pending.append(text)
            self._length += len(text)

    @property
    def scanned(self) -> int:
        return max(0, self._searched_len - (len(DELIMITER) - 1))

    def unsearched(self) -> str:
        """Text from ``scanned`` to the end, without joining the searched pieces."""
        keep = self._searched_len - self.scanned
        overlap = "".join(self._searched[-keep:])[-keep:] if keep else ""
        return overlap + "".join(self._pending)

    def mark_searched(self) -> None:
        self._searched.extend(self._pending)
        self._searched_len = self._length
        self._pending = []

    def take_and_reset(self, remainder: str) -> None:
        self._searched = [remainder] if remainder else []
        self._searched_len = self._length = len(remainder)
        self._pending = []

    @property
    def text(self) -> str:
        return "".join(self._searched + self._pending)

    def __len__(self):
        return self._length


@dataclass
class SplitResult:
    records: List[str] = field(default_factory=list)
    complete: bool = False
    final_record: Optional[str] = None


class BoundarySplitter:
    def __init__(self):
        self._produced_any = False

    def split(self, buffer: ReassemblyBuffer) -> SplitResult:
        """Resolve complete records from the buffer and reset it to the tail.

        When the tail closes the array the result is marked complete and the
        final record (marker stripped) is returned separately; an empty array
        completes with no final record.
        """
        if self._produced_any or len(buffer) > 8:
            window = buffer.unsearched()
            if DELIMITER not in window and is_terminal(window) is None:
                buffer.mark_searched()
                return SplitResult()

        text = buffer.text
        result = SplitResult()
        start = 0
        pos = text.find(DELIMITER, buffer.scanned)
        while pos != -1:
            result.records.append(text[start:pos])
            start = pos + len(DELIMITER)
            pos = text.find(DELIMITER, start)
        tail = text[start:]
        if result.records:
            self._produced_any = True

        final = is_terminal(tail)
        if final is not None:
            logger.debug("Last entity")
            result.complete = True
            result.final_record = final
            tail = ""
        elif not self._produced_any and len(tail) <= 8 and tail.strip() == "]":
            logger.debug("Empty array")
            result.complete = True
            tail = ""

        buffer.take_and_reset(tail)
        return result
