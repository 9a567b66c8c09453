# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Errors raised while building or running a tracked source file.

A failing test is not an error: it is recorded in the run report. These
exceptions are for conditions that stop the invocation.
"""

from pathlib import Path


class ExecutionError(Exception):
    """Base for all build/run errors."""


class UnsupportedExtensionError(ExecutionError):
    """No build command is configured for the source file's extension."""

    def __init__(self, source_path: Path, extension: str) -> None:
        self.source_path = source_path
        self.extension = extension
        shown = extension or "<none>"
        super().__init__(
            f"File type {shown!r} of {source_path.name} is not supported. "
            "Add a build command for it under languages_config in the cache file."
        )


class TemplateError(ExecutionError):
    """A macro could not be expanded for this source path."""


class EmptyBuildCommandError(ExecutionError):
    """The build command expanded to no words at all."""


class BuildError(ExecutionError):
    """The build command ran and exited non-zero (or could not be started)."""

    def __init__(self, source_path: Path, command: list[str], exit_code: int | None, reason: str = "") -> None:
        self.source_path = source_path
        self.command = command
        self.exit_code = exit_code
        detail = reason or f"exit code {exit_code}"
        super().__init__(f"Failed to compile {source_path} ({detail})")


class BinaryDirectoryMissingError(ExecutionError):
    """The configured binary directory does not exist."""


class BinaryMissingError(ExecutionError):
    """The build reported success but the expected binary never appeared."""


class SelectorIndexError(ExecutionError):
    """A selector names a test or sub-test that isn't registered."""
