# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Low-level build and execution of one source file's binary.

Two subprocess entry points live here:

  recompile_binary  runs the configured build command with the terminal's
                    stdio, so compiler diagnostics reach the user directly.
  execute_binary    runs the compiled binary, either attached to the
                    terminal or fed a test input through a pipe while its
                    stdout is captured.

Neither one touches the cache document; deciding when to build and what to
record is the runner's job (see runner.py).
"""

import contextlib
import subprocess
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Optional, Union

from erunner.cache.models import Registry
from erunner.execute.exceptions import BuildError, UnsupportedExtensionError
from erunner.execute.templater import build_command
from erunner.logging.logger import get_logger
from erunner.utils.paths import binary_path

logger = get_logger(__name__)

DEFAULT_CHUNK_SIZE = 1024


@dataclass(frozen=True)
class InheritTerminal:
    """The binary reads from and writes to the user's terminal."""


@dataclass(frozen=True)
class CustomInput:
    """Feed `text` on stdin and capture stdout."""

    text: str


ExecutionInput = Union[InheritTerminal, CustomInput]


@dataclass(frozen=True)
class Successful:
    """The binary exited with status 0."""

    output: str
    elapsed_seconds: float


@dataclass(frozen=True)
class NeedsRecompilation:
    """No binary at the expected path. Nothing was run."""

    binary_path: Path


@dataclass(frozen=True)
class Failed:
    """The binary could not be started or exited non-zero."""

    reason: str
    exit_code: Optional[int] = None
    output: str = ""


ExecutionOutcome = Union[Successful, NeedsRecompilation, Failed]


def recompile_binary(source_path: Path, registry: Registry) -> list[str]:
    """
    Build `source_path` with the command registered for its extension.

    The compiler inherits stdin/stdout/stderr. The command is run as an
    argument vector, never through a shell.

    Returns:
        The argv that was run.

    Raises:
        UnsupportedExtensionError: No build command for the extension.
        TemplateError / EmptyBuildCommandError: Template can't be used.
        BuildError: The compiler couldn't be started or exited non-zero.
    """
    extension = source_path.suffix.lstrip(".")
    template = registry.build_command_for(extension) if extension else None
    if template is None:
        raise UnsupportedExtensionError(source_path, extension)

    argv = build_command(template, source_path, registry.binary_dir)
    logger.info(
        "Compiling",
        extra={"source": str(source_path), "command": argv},
    )

    start = time.monotonic()
    try:
        result = subprocess.run(argv, check=False)
    except FileNotFoundError as err:
        logger.error(
            "Compiler not found",
            extra={"source": str(source_path), "program": argv[0]},
        )
        raise BuildError(source_path, argv, None, reason=f"{argv[0]!r} not found") from err
    except OSError as err:
        raise BuildError(source_path, argv, None, reason=f"cannot start {argv[0]!r}: {err}") from err

    elapsed = time.monotonic() - start
    logger.debug(
        "Compilation finished",
        extra={
            "success": result.returncode == 0,
            "exit_code": result.returncode,
            "elapsed_seconds": round(elapsed, 3),
            "source": str(source_path),
        },
    )

    if result.returncode != 0:
        raise BuildError(source_path, argv, result.returncode)
    return argv


def execute_binary(
    binary_dir: Path,
    filename: str,
    execution_input: ExecutionInput,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> ExecutionOutcome:
    """
    Run the compiled binary for `filename`.

    There is no time limit: a binary that never exits blocks the caller.

    Returns:
        NeedsRecompilation when the binary doesn't exist, otherwise
        Successful or Failed.
    """
    path = binary_path(binary_dir, filename)
    if not path.is_file():
        logger.warning("Binary not found", extra={"binary": str(path)})
        return NeedsRecompilation(binary_path=path)

    if isinstance(execution_input, InheritTerminal):
        return _run_attached(path)
    if isinstance(execution_input, CustomInput):
        return _run_with_input(path, execution_input.text, chunk_size)
    raise TypeError(f"Unknown execution input: {type(execution_input).__name__}")


def _run_attached(path: Path) -> ExecutionOutcome:
    start = time.monotonic()
    try:
        result = subprocess.run([str(path)], check=False)
    except OSError as err:
        return Failed(reason=f"Failed to start {path.name}: {err}")

    elapsed = time.monotonic() - start
    if result.returncode != 0:
        return Failed(
            reason=f"Binary exited with status {result.returncode}",
            exit_code=result.returncode,
        )
    return Successful(output="", elapsed_seconds=elapsed)


def _feed_stdin(stream: IO[bytes], data: bytes, chunk_size: int, binary: Path) -> None:
    """Write `data` to the child's stdin in chunks, then close it."""
    try:
        for offset in range(0, len(data), chunk_size):
            stream.write(data[offset : offset + chunk_size])
        stream.flush()
    except BrokenPipeError:
        # The child exited or closed stdin before reading everything.
        logger.warning(
            "Binary stopped reading its input early",
            extra={"binary": str(binary), "input_bytes": len(data)},
        )
    except OSError as err:
        logger.error(
            "Failed to write test input",
            extra={"binary": str(binary), "error": str(err)},
        )
    finally:
        # close() flushes the buffer, which fails again on a broken pipe;
        # the descriptor is released either way.
        with contextlib.suppress(BrokenPipeError):
            stream.close()


def _run_with_input(path: Path, text: str, chunk_size: int) -> ExecutionOutcome:
    start = time.monotonic()
    try:
        process = subprocess.Popen(
            [str(path)],
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
        )
    except OSError as err:
        return Failed(reason=f"Failed to start {path.name}: {err}")

    with process:
        stdin, stdout = process.stdin, process.stdout
        if stdin is None or stdout is None:
            raise RuntimeError(f"Pipes to {path.name} were not opened")
        # stdin is written from its own thread; a child that fills its
        # stdout pipe before draining stdin would otherwise deadlock us.
        writer = threading.Thread(
            target=_feed_stdin,
            args=(stdin, text.encode("utf-8"), chunk_size, path),
            name=f"erunner-stdin-{path.name}",
            daemon=True,
        )
        writer.start()
        raw_output = stdout.read()
        exit_code = process.wait()
        writer.join()

    elapsed = time.monotonic() - start
    output = raw_output.decode("utf-8", errors="replace")

    logger.debug(
        "Binary finished",
        extra={
            "binary": str(path),
            "exit_code": exit_code,
            "elapsed_seconds": round(elapsed, 3),
        },
    )

    if exit_code != 0:
        return Failed(
            reason=f"Binary exited with status {exit_code}",
            exit_code=exit_code,
            output=output,
        )
    return Successful(output=output, elapsed_seconds=elapsed)
