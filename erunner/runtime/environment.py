# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Environment checks for erunner.

Two kinds of check live here. The interpreter check runs before any
command and is fatal. The build tool check is advisory: a compiler that is
missing from PATH only matters once a file of that language gets built, so
`status` reports it as a warning instead of refusing to run.
"""

import platform
import shlex
import shutil
import sys
from typing import Mapping, NamedTuple, Optional

from erunner.utils.paths import executable_extension, is_windows

MINIMUM_PYTHON_MAJOR = 3
MINIMUM_PYTHON_MINOR = 11


class SystemInfo(NamedTuple):
    """What the runner logs about the host at startup."""

    python_version: str
    platform: str
    executable_extension: str


def get_python_version() -> tuple[int, int, int]:
    return sys.version_info[:3]


def check_minimum_python() -> None:
    """
    Raises:
        RuntimeError: If the interpreter is older than 3.11.
    """
    major, minor, _ = get_python_version()
    if (major, minor) < (MINIMUM_PYTHON_MAJOR, MINIMUM_PYTHON_MINOR):
        raise RuntimeError(
            f"erunner requires Python >= {MINIMUM_PYTHON_MAJOR}.{MINIMUM_PYTHON_MINOR}, "
            f"found {major}.{minor}"
        )


def get_system_info() -> SystemInfo:
    return SystemInfo(
        python_version=platform.python_version(),
        platform=platform.system(),
        executable_extension=executable_extension(),
    )


def build_tool(command: str) -> Optional[str]:
    """
    The program a build command template starts with, or None when it
    can't be told statically (empty, unbalanced quotes, or a macro).
    """
    try:
        argv = shlex.split(command, posix=not is_windows())
    except ValueError:
        return None
    if not argv or "$(" in argv[0]:
        return None
    return argv[0].strip("\"")


def missing_build_tools(build_commands: Mapping[str, str]) -> dict[str, str]:
    """
    Map each extension whose build tool is not on PATH to that tool.

    Absolute or relative tool paths are checked as files by shutil.which
    too, so `./tools/cc` works as expected.
    """
    missing: dict[str, str] = {}
    for extension, command in sorted(build_commands.items()):
        tool = build_tool(command)
        if tool is not None and shutil.which(tool) is None:
            missing[extension] = tool
    return missing
