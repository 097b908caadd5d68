"""
Recipe Factory - Streaming Recipe Reader

Reads a recipe document incrementally from a byte stream.

The top level of the document is scanned token by token; the `variables`
object and each element of the `steps` array are decoded as complete
subtrees, one at a time, so a step is never materialized before the previous
one has been handed back to the caller.
"""

from __future__ import annotations
import codecs
import json
from dataclasses import dataclass
from typing import Any, BinaryIO, Iterator, Optional
import logging

from recipe_factory.errors import RecipeFormatError

logger = logging.getLogger(__name__)

_WHITESPACE = " \t\n\r"

# Longest partial token that still decodes once more input arrives
_TRUNCATION_MARGIN = 8


@dataclass(frozen=True)
class RecipeNode:
    """A top-level element of a recipe document."""
    kind: str  # "variables", "step" or "field"
    value: Any
    key: Optional[str] = None
    index: Optional[int] = None


class RecipeReader:
    """
    Incremental reader over a JSON recipe document.

    Yields:
    - one `variables` node for the top-level `variables` object
    - one `step` node per element of the top-level `steps` array
    - one `field` node per other top-level key (name, description, ...)

    Nodes are produced in document order.
    """

    VARIABLES = "variables"
    STEP = "step"
    FIELD = "field"

    CHUNK_SIZE = 64 * 1024

    def __init__(
        self,
        stream: BinaryIO,
        chunk_size: int = CHUNK_SIZE,
        skip_steps: bool = False,
    ):
        """
        Initialize reader.

        Args:
            stream: Binary (or text) stream positioned at the document start
            chunk_size: Number of bytes read per refill
            skip_steps: Consume the `steps` array without yielding its elements
        """
        self.stream = stream
        self.chunk_size = chunk_size
        self.skip_steps = skip_steps

        self._decoder = json.JSONDecoder()
        self._text_decoder = codecs.getincrementaldecoder("utf-8-sig")()
        self._buf = ""
        self._pos = 0
        self._offset = 0
        self._eof = False

    # =========================================================================
    # BUFFER MANAGEMENT
    # =========================================================================

    def _fill(self) -> bool:
        """Read the next chunk into the buffer. Returns False at end of stream."""
        if self._eof:
            return False

        # Drop the consumed prefix
        if self._pos:
            self._offset += self._pos
            self._buf = self._buf[self._pos:]
            self._pos = 0

        chunk = self.stream.read(self.chunk_size)
        if isinstance(chunk, str):
            text = chunk
            if not chunk:
                self._eof = True
        else:
            try:
                text = self._text_decoder.decode(chunk or b"", final=not chunk)
            except UnicodeDecodeError as e:
                raise RecipeFormatError(
                    "Recipe is not valid UTF-8",
                    position=self._offset + len(self._buf),
                ) from e
            if not chunk:
                self._eof = True

        self._buf += text
        return bool(text) or not self._eof

    def _peek(self) -> str:
        """Skip whitespace and return the next character ('' at end of stream)."""
        while True:
            while self._pos < len(self._buf) and self._buf[self._pos] in _WHITESPACE:
                self._pos += 1
            if self._pos < len(self._buf):
                return self._buf[self._pos]
            if not self._fill():
                return ""

    def _expect(self, char: str, message: str) -> None:
        if self._peek() != char:
            raise RecipeFormatError(message, position=self._offset + self._pos)
        self._pos += 1

    def _may_be_truncated(self, error: json.JSONDecodeError) -> bool:
        """
        True when a decode error could be caused by the buffer ending early.

        Partial tokens (`tru`, `-`, `\\u00`) fail within a few characters of
        the buffer end; an open string fails at its opening quote.
        """
        if error.msg.startswith("Unterminated string"):
            return True
        return error.pos >= len(self._buf) - _TRUNCATION_MARGIN

    def _decode_value(self) -> Any:
        """Decode one complete JSON value starting at the current position."""
        if not self._peek():
            raise RecipeFormatError(
                "Unexpected end of recipe document",
                position=self._offset + self._pos,
            )

        while True:
            try:
                value, end = self._decoder.raw_decode(self._buf, self._pos)
            except json.JSONDecodeError as e:
                if self._may_be_truncated(e) and self._fill():
                    continue
                raise RecipeFormatError(
                    f"Invalid JSON in recipe: {e.msg}",
                    position=self._offset + e.pos,
                ) from e

            # A scalar that ends exactly at the buffer edge may be truncated
            if end >= len(self._buf) and not self._eof:
                self._fill()
                continue

            self._pos = end
            return value

    # =========================================================================
    # DOCUMENT TRAVERSAL
    # =========================================================================

    def __iter__(self) -> Iterator[RecipeNode]:
        if self._peek() != "{":
            raise RecipeFormatError(
                "Recipe document must be a JSON object",
                position=self._offset + self._pos,
            )
        self._pos += 1

        if self._peek() == "}":
            self._pos += 1
        else:
            while True:
                key = self._decode_value()
                if not isinstance(key, str):
                    raise RecipeFormatError(
                        "Expected a property name",
                        position=self._offset + self._pos,
                    )
                self._expect(":", f"Expected ':' after property '{key}'")

                if key == "steps":
                    yield from self._read_steps()
                else:
                    value = self._decode_value()
                    if key == "variables":
                        if not isinstance(value, dict):
                            raise RecipeFormatError("'variables' must be a JSON object")
                        yield RecipeNode(kind=self.VARIABLES, value=value, key=key)
                    else:
                        yield RecipeNode(kind=self.FIELD, value=value, key=key)

                separator = self._peek()
                self._pos += 1
                if separator == "}":
                    break
                if separator != ",":
                    raise RecipeFormatError(
                        "Expected ',' or '}' in recipe document",
                        position=self._offset + self._pos - 1,
                    )

        if self._peek():
            raise RecipeFormatError(
                "Unexpected data after recipe document",
                position=self._offset + self._pos,
            )

    def _read_steps(self) -> Iterator[RecipeNode]:
        self._expect("[", "'steps' must be a JSON array")

        if self._peek() == "]":
            self._pos += 1
            return

        index = 0
        while True:
            step = self._decode_value()
            if not isinstance(step, dict):
                raise RecipeFormatError(f"Recipe step {index} must be a JSON object")
            if not self.skip_steps:
                yield RecipeNode(kind=self.STEP, value=step, index=index)
            index += 1

            separator = self._peek()
            self._pos += 1
            if separator == "]":
                break
            if separator != ",":
                raise RecipeFormatError(
                    "Expected ',' or ']' in 'steps'",
                    position=self._offset + self._pos - 1,
                )

        logger.debug(f"Read {index} recipe steps")


def read_header(stream: BinaryIO) -> dict:
    """
    Read the top-level fields of a recipe, skipping its steps.

    Args:
        stream: Recipe byte stream

    Returns:
        Mapping of top-level keys to values (`variables` included, `steps` excluded)
    """
    header = {}
    for node in RecipeReader(stream, skip_steps=True):
        header[node.key] = node.value
    return header
