# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Persisted data model for the project registry (erunner_cache.json).

One document per project:

    {
      "binary_dir_path": "/home/me/contest/binary",
      "files": {
        "main.c": {
          "source_hash": "9F86D0...",
          "tests": [
            {"StringTest": {"input": "5\\n", "expected_output": "25\\n"}},
            {"RefTest": {"input": "/home/me/contest/t.txt", "expected_output": null}}
          ]
        }
      },
      "languages_config": {"c": "gcc $(FILE) -o $(BIN_DIR)/$(FILENAME).$(EXE_EXT)"}
    }

The Python attribute names (binary_dir, entries, build_commands, input_file,
...) are aliased onto the document keys above, so documents written by
earlier releases load unchanged. Tests are externally tagged on disk and
become one of two closed model types in memory, StringTest or RefTest.

Every model is frozen. A mutation is always "load the whole document,
build a modified copy, write the whole document back" (see store.py).
"""

import re
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

# Reserved source_hash meaning "the binary is known to be missing or stale,
# rebuild on the next decision no matter what the source hashes to".
PENDING_RECOMPILATION = "PENDING_RECOMPILATION"

_HEX_DIGEST = re.compile(r"[0-9A-Fa-f]+")


class StringTest(BaseModel):
    """A literal test: input and expected output stored inline."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    input: str
    expected_output: str


class RefTest(BaseModel):
    """
    A file-linked test.

    With only `input_file`, that file holds alternating input/output blocks.
    With both, `input_file` holds the inputs and `expected_output_file` the
    outputs, paired record by record.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    input_file: Path = Field(alias="input")
    expected_output_file: Optional[Path] = Field(default=None, alias="expected_output")


Test = Union[StringTest, RefTest]

_TEST_KINDS: dict[str, type[BaseModel]] = {
    "StringTest": StringTest,
    "RefTest": RefTest,
}


def encode_test(test: Test) -> dict[str, Any]:
    """Externally tagged JSON form of a test: {"StringTest": {...}} or {"RefTest": {...}}."""
    if isinstance(test, StringTest):
        return {"StringTest": test.model_dump(mode="json")}
    if isinstance(test, RefTest):
        return {"RefTest": test.model_dump(mode="json", by_alias=True)}
    raise TypeError(f"Unknown test kind: {type(test).__name__}")


def decode_test(raw: Any) -> Test:
    """
    Inverse of encode_test.

    Raises:
        ValueError: If `raw` is not a single-key mapping naming a known kind.
    """
    if isinstance(raw, (StringTest, RefTest)):
        return raw
    if not isinstance(raw, dict) or len(raw) != 1:
        raise ValueError(f"A test must be a single-key object tagged with its kind, got {raw!r}")

    ((kind, body),) = raw.items()
    model = _TEST_KINDS.get(kind)
    if model is None:
        raise ValueError(f"Unknown test kind {kind!r}, expected one of {sorted(_TEST_KINDS)}")
    return model.model_validate(body)  # type: ignore[return-value]


class FileCache(BaseModel):
    """Everything the registry knows about one tracked source file."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    source_hash: str
    tests: list[Test] = Field(default_factory=list)

    @field_validator("source_hash")
    @classmethod
    def _hash_or_sentinel(cls, value: str) -> str:
        if value == PENDING_RECOMPILATION or _HEX_DIGEST.fullmatch(value):
            return value
        raise ValueError(
            f"source_hash must be a hex digest or {PENDING_RECOMPILATION!r}, got {value!r}"
        )

    @field_validator("tests", mode="before")
    @classmethod
    def _untag_tests(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, (list, tuple)):
            return [decode_test(item) for item in value]
        return value

    @field_serializer("tests")
    def _tag_tests(self, tests: list[Test]) -> list[dict[str, Any]]:
        return [encode_test(test) for test in tests]

    @property
    def pending_recompilation(self) -> bool:
        return self.source_hash == PENDING_RECOMPILATION

    def with_test(self, test: Test) -> "FileCache":
        """Copy of this entry with `test` appended (insertion order is display order)."""
        return self.model_copy(update={"tests": [*self.tests, test]})

    def with_hash(self, source_hash: str) -> "FileCache":
        return FileCache(source_hash=source_hash, tests=list(self.tests))


class Registry(BaseModel):
    """
    The whole project document.

    Unknown top-level keys (older releases wrote a `no_readme` flag) are
    dropped on load instead of failing the project.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    binary_dir: Path = Field(alias="binary_dir_path")
    entries: dict[str, FileCache] = Field(default_factory=dict, alias="files")
    build_commands: dict[str, str] = Field(default_factory=dict, alias="languages_config")

    def build_command_for(self, extension: str) -> Optional[str]:
        return self.build_commands.get(extension.lstrip("."))

    def with_entry(self, filename: str, file_cache: FileCache) -> "Registry":
        """Copy of the registry with `filename` inserted or overwritten."""
        return self.model_copy(update={"entries": {**self.entries, filename: file_cache}})

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
