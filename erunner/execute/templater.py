# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Build command templates.

Each language in the registry maps a file extension to a command line with
macros in it, for example

    gcc $(FILE) -o $(BIN_DIR)/$(FILENAME).$(EXE_EXT)

Macros:
    $(FILE)      full source file path
    $(FILENAME)  source file name, extension included
    $(DIR)       path of the source's directory
    $(DIRNAME)   name of the source's directory
    $(BIN_DIR)   configured binary directory
    $(EXE_EXT)   `exe` on Windows, `out` elsewhere

All macros are replaced in one pass, so the result doesn't depend on macro
order and text produced by one macro is never expanded again. The expanded
string is then split into an argument vector with shell quoting rules;
values are substituted as-is, so a path containing spaces needs quotes
around the macro in the template (`gcc "$(FILE)" ...`).
"""

import re
import shlex
from pathlib import Path

from erunner.execute.exceptions import EmptyBuildCommandError, TemplateError
from erunner.utils.paths import executable_extension, is_windows

MACROS = ("FILE", "FILENAME", "DIR", "DIRNAME", "BIN_DIR", "EXE_EXT")

_MACRO_PATTERN = re.compile(r"\$\((" + "|".join(MACROS) + r")\)")


def _macro_value(name: str, source_path: Path, binary_dir: Path) -> str:
    if name == "FILE":
        return str(source_path)
    if name == "FILENAME":
        return source_path.name
    if name == "DIR":
        return str(source_path.parent)
    if name == "DIRNAME":
        dirname = source_path.parent.name
        if not dirname:
            raise TemplateError(f"{source_path} has no parent directory name for $(DIRNAME)")
        return dirname
    if name == "BIN_DIR":
        return str(binary_dir)
    if name == "EXE_EXT":
        return executable_extension()
    raise TemplateError(f"Unknown macro $({name})")


def expand_template(template: str, source_path: Path, binary_dir: Path) -> str:
    """
    Substitute every recognized macro in `template`.

    Unrecognized `$(...)` sequences are left alone.

    Raises:
        TemplateError: If the source path has no file name, or $(DIRNAME)
            is used for a file in a root directory.
    """
    if not source_path.name:
        raise TemplateError(f"Source path {source_path} has no file name")

    return _MACRO_PATTERN.sub(
        lambda match: _macro_value(match.group(1), source_path, binary_dir),
        template,
    )


def _unquote(word: str) -> str:
    if len(word) >= 2 and word[0] == word[-1] and word[0] in "\"'":
        return word[1:-1]
    return word


def split_command(command: str) -> list[str]:
    """
    Split a command line into words, honouring quotes.

    POSIX rules everywhere except Windows, where backslashes are path
    separators rather than escapes.

    Raises:
        TemplateError: On unbalanced quotes.
    """
    try:
        if is_windows():
            return [_unquote(word) for word in shlex.split(command, posix=False)]
        return shlex.split(command)
    except ValueError as err:
        raise TemplateError(f"Cannot parse build command {command!r}: {err}") from err


def build_command(template: str, source_path: Path, binary_dir: Path) -> list[str]:
    """
    Expand `template` for `source_path` and split it into an argv list.

    Raises:
        TemplateError: Expansion or splitting failed.
        EmptyBuildCommandError: Nothing left to run after expansion.
    """
    argv = split_command(expand_template(template, source_path, binary_dir))
    if not argv:
        raise EmptyBuildCommandError(
            f"Build command for {source_path.name} is empty (template {template!r})"
        )
    return argv
