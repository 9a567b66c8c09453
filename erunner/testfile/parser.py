# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Streaming parser for test-definition files.

A test-definition file holds input/expected-output pairs written as
brace-delimited blocks:

    #trim
    {3
     1 2 3} -> {6}

    #disable:trim
    {  padded } -> {  padded  }

Rules, applied line by line:
  - A line whose trimmed text starts with `#` is a directive:
    `#flag`, `#enable:flag` or `#disable:flag`. Flags are `standalone`
    (default off), `trim` (default on) and `explicit-newline` (default off).
    Unknown flags are ignored.
  - `{` and `}` nest. Text is captured only while the nesting depth is
    above zero; the braces themselves are never captured.
  - `->` pipes an input block to its output block. Exactly one arrow
    must sit between them; an arrow inside a block counts too, while a
    lone `-` inside a block is plain text.
  - With `explicit-newline` on, `\\n` inside a block is a newline and the
    physical line breaks are dropped. With it off, line breaks inside a
    block are kept and backslashes are plain text.
  - With `standalone` on, every top-level block is an input on its own and
    is emitted with an empty expected output.

The parser is an iterator over SimpleTest records. It reads the file lazily,
one line at a time, and cannot be rewound: iterating again means opening the
file again. A syntax error raises DefinitionFormatError and ends the
iteration.
"""

import enum
from dataclasses import dataclass
from pathlib import Path
from types import TracebackType
from typing import IO, Iterator, Optional

from erunner.logging.logger import get_logger

logger = get_logger(__name__)

FLAG_STANDALONE = "standalone"
FLAG_TRIM = "trim"
FLAG_EXPLICIT_NEWLINE = "explicit-newline"

DEFAULT_FLAGS: dict[str, bool] = {
    FLAG_STANDALONE: False,
    FLAG_TRIM: True,
    FLAG_EXPLICIT_NEWLINE: False,
}


@dataclass(frozen=True)
class SimpleTest:
    """One input/expected-output pair read from a definition file."""

    input: str
    expected_output: str = ""


class DefinitionFormatError(ValueError):
    """A test-definition file violates the block grammar."""

    def __init__(self, reason: str, path: Path, line: int, column: Optional[int] = None) -> None:
        self.reason = reason
        self.path = path
        self.line = line
        self.column = column
        location = f"{path}:{line}" if column is None else f"{path}:{line}:{column}"
        super().__init__(f"{location}: {reason}")


class _Modifier(enum.Enum):
    ENABLE = "enable"
    DISABLE = "disable"
    SAME = "same"

    @classmethod
    def parse(cls, text: str) -> "_Modifier":
        lowered = text.strip().lower()
        if lowered == "enable":
            return cls.ENABLE
        if lowered == "disable":
            return cls.DISABLE
        return cls.SAME


def _trim_block(text: str) -> str:
    """Strip the block as a whole, then every line inside it."""
    return "\n".join(line.strip() for line in text.strip().split("\n"))


class DefinitionParser:
    """
    Pull-based parser state for one open definition file.

    State carried between records:
      - the capture buffer and the brace depth
      - the arrows seen since the last input block closed
      - the input of the record in progress, if one has been read
      - the current line and the column to resume from, so two records on
        one physical line (`{1}->{1} {2}->{4}`) both come out
      - the directive flags, which persist until changed

    Usage:
        with DefinitionParser(path) as parser:
            for record in parser:
                ...
    """

    def __init__(self, path: Path, *, standalone: Optional[bool] = None) -> None:
        self.path = path
        self.flags: dict[str, bool] = dict(DEFAULT_FLAGS)
        if standalone is not None:
            self.flags[FLAG_STANDALONE] = standalone

        self._file: Optional[IO[str]] = open(path, "r", encoding="utf-8")
        self._line_number = 0
        self._line: Optional[str] = None
        self._column = 0
        self._depth = 0
        self._arrows = 0
        self._buffer: list[str] = []
        self._pending_input: Optional[str] = None

    def __iter__(self) -> Iterator[SimpleTest]:
        return self

    def __next__(self) -> SimpleTest:
        if self._file is None:
            raise StopIteration

        try:
            record = self._advance(self._file)
        except BaseException:
            self.close()
            raise

        if record is None:
            self.close()
            raise StopIteration
        return record

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None

    def __enter__(self) -> "DefinitionParser":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def _advance(self, file: IO[str]) -> Optional[SimpleTest]:
        """Consume input until a record completes or the file ends."""
        while True:
            line = self._line
            if line is None:
                raw = file.readline()
                if not raw:
                    # An unterminated block at end of file is dropped silently.
                    return None
                self._line_number += 1
                line = raw.rstrip("\n")
                if self._apply_directive(line):
                    continue
                self._line = line
                self._column = 0

            record = self._scan_line(line)
            if record is not None:
                return record
            self._finish_line()

    def _apply_directive(self, line: str) -> bool:
        stripped = line.strip()
        if not stripped.startswith("#"):
            return False

        body = stripped[1:]
        if ":" in body:
            modifier_text, name = body.split(":", 1)
            modifier = _Modifier.parse(modifier_text)
        else:
            modifier, name = _Modifier.ENABLE, body
        name = name.strip()

        if name not in self.flags:
            logger.debug(
                "Ignoring unknown directive",
                extra={"path": str(self.path), "line": self._line_number, "directive": name},
            )
            return True

        if modifier is _Modifier.ENABLE:
            self.flags[name] = True
        elif modifier is _Modifier.DISABLE:
            self.flags[name] = False
        return True

    def _scan_line(self, line: str) -> Optional[SimpleTest]:

        while self._column < len(line):
            column = self._column
            char = line[column]
            self._column += 1

            if char == "{":
                self._depth += 1
            elif char == "}":
                self._depth -= 1
                if self._depth < 0:
                    raise DefinitionFormatError(
                        "unmatched closing bracket", self.path, self._line_number, column + 1
                    )
                if self._depth == 0:
                    record = self._close_block(column + 1)
                    if record is not None:
                        return record
            elif char == "-" and line.startswith(">", self._column):
                self._arrows += 1
                self._column += 1
            elif (
                char == "\\"
                and self.flags[FLAG_EXPLICIT_NEWLINE]
                and line.startswith("n", self._column)
            ):
                if self._depth > 0:
                    self._buffer.append("\n")
                self._column += 1
            elif self._depth > 0:
                self._buffer.append(char)

        return None

    def _finish_line(self) -> None:
        # Physical line breaks only matter inside a block, and only when
        # newlines aren't spelled out as `\n`.
        if self._depth > 0 and not self.flags[FLAG_EXPLICIT_NEWLINE]:
            self._buffer.append("\n")
        self._line = None

    def _close_block(self, column: int) -> Optional[SimpleTest]:
        text = "".join(self._buffer)
        self._buffer.clear()
        if self.flags[FLAG_TRIM]:
            text = _trim_block(text)

        if self._pending_input is None:
            self._arrows = 0
            if self.flags[FLAG_STANDALONE]:
                return SimpleTest(input=text, expected_output="")
            self._pending_input = text
            return None

        if self._arrows == 1:
            record = SimpleTest(input=self._pending_input, expected_output=text)
            self._pending_input = None
            self._arrows = 0
            return record

        raise DefinitionFormatError(
            f"every input must be piped to output with `->` (found {self._arrows} arrows)",
            self.path,
            self._line_number,
            column,
        )


class MergedDefinitionIterator:
    """
    Pairs two definition files record by record.

    The first file supplies inputs, the second expected outputs; the Nth
    record of one is matched with the Nth record of the other. Iteration
    stops as soon as either file runs out, so a trailing unmatched input is
    never emitted. A format error from either side propagates immediately.
    """

    def __init__(self, inputs: DefinitionParser, outputs: DefinitionParser) -> None:
        self._inputs = inputs
        self._outputs = outputs

    def __iter__(self) -> Iterator[SimpleTest]:
        return self

    def __next__(self) -> SimpleTest:
        try:
            input_record = next(self._inputs)
            output_record = next(self._outputs)
        except BaseException:
            self.close()
            raise
        return SimpleTest(input=input_record.input, expected_output=output_record.input)

    def close(self) -> None:
        self._inputs.close()
        self._outputs.close()

    def __enter__(self) -> "MergedDefinitionIterator":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()


def read_definition_file(path: Path, *, standalone: Optional[bool] = None) -> DefinitionParser:
    """
    Open a definition file for parsing.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        OSError: If it can't be opened.
    """
    return DefinitionParser(path, standalone=standalone)


def merge_definition_files(input_path: Path, output_path: Path) -> MergedDefinitionIterator:
    """
    Open an inputs file and an outputs file as one stream of pairs.

    Both files are read in input-only mode (`standalone` on from the first
    line): every top-level block is one record, no arrows involved.
    """
    inputs = read_definition_file(input_path, standalone=True)
    try:
        outputs = read_definition_file(output_path, standalone=True)
    except BaseException:
        inputs.close()
        raise
    return MergedDefinitionIterator(inputs, outputs)
