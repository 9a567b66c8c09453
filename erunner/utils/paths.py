# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Path utilities for erunner.

All the naming rules for things on disk live here: where the project root
is, what the compiled binary for a source file is called, and which
extension the current OS gives executables.
"""

import sys
from pathlib import Path

DEFAULT_CACHE_FILE = "erunner_cache.json"
DEFAULT_BINARY_DIR = "binary"


def is_windows() -> bool:
    return sys.platform == "win32"


def executable_extension() -> str:
    """The `$(EXE_EXT)` value: `exe` on Windows, `out` everywhere else."""
    return "exe" if is_windows() else "out"


def binary_name(filename: str) -> str:
    """
    Name of the compiled binary for a tracked source file.

    The source's full file name is kept, extension included, so `main.c` and
    `main.cpp` in the same project get distinct binaries
    (`main.c.out`, `main.cpp.out`).
    """
    return f"{filename}.{executable_extension()}"


def binary_path(binary_dir: Path, filename: str) -> Path:
    return binary_dir / binary_name(filename)


def resolve_project_root(start: Path, cache_file: str = DEFAULT_CACHE_FILE) -> Path:
    """
    Walk up from `start` to find the directory holding the cache document.

    This lets commands run from a sub-directory of a project (say,
    `contest/day1/`) still find the project's erunner_cache.json.

    Args:
        start: Directory to start the search from, usually the cwd.
        cache_file: Name of the cache document to look for.

    Returns:
        Absolute path of the first ancestor (or `start` itself) that contains
        the cache document.

    Raises:
        FileNotFoundError: If no ancestor contains it.
    """
    current = start.resolve()
    while True:
        if (current / cache_file).is_file():
            return current
        if current == current.parent:
            break
        current = current.parent
    raise FileNotFoundError(
        f"No {cache_file} found in {start} or any parent directory."
    )


def ensure_directory(path: Path) -> Path:
    """Create a directory (and parents) if it doesn't exist. Returns the path for chaining."""
    path.mkdir(parents=True, exist_ok=True)
    return path
