# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Shared pytest fixtures for erunner tests.

The orchestrator tests don't need a C toolchain. `fake_compiler` writes a
small Python "compiler" that turns a `.py` source into an executable
script in the binary directory (the source with a shebang for the current
interpreter). A source containing the word COMPILE_ERROR fails to build.
Every build appends the source's file name to a log, so tests can count
rebuilds.
"""

import shlex
import sys
import textwrap
from pathlib import Path

import pytest

from erunner.execute.runner import Runner, initialize_project

_FAKE_COMPILER = textwrap.dedent("""\
    import os
    import sys

    source, target, build_log = sys.argv[1], sys.argv[2], sys.argv[3]
    with open(source, encoding="utf-8") as f:
        body = f.read()

    with open(build_log, "a", encoding="utf-8") as f:
        f.write(os.path.basename(source) + "\\n")

    if "COMPILE_ERROR" in body:
        sys.stderr.write("fake_cc: error: " + source + "\\n")
        sys.exit(1)

    with open(target, "w", encoding="utf-8") as f:
        f.write("#!" + sys.executable + "\\n" + body)
    os.chmod(target, 0o755)
""")


class FakeProject:
    """An initialized project whose `py` build command is the fake compiler."""

    def __init__(self, project_dir: Path, build_log: Path) -> None:
        self.project_dir = project_dir
        self.build_log = build_log
        self.runner = Runner.for_project(project_dir)

    @property
    def binary_dir(self) -> Path:
        return self.project_dir / "binary"

    def write_source(self, name: str, body: str) -> Path:
        path = self.project_dir / name
        path.write_text(textwrap.dedent(body), encoding="utf-8")
        return path

    def builds(self) -> list[str]:
        if not self.build_log.exists():
            return []
        return self.build_log.read_text(encoding="utf-8").splitlines()


@pytest.fixture()
def fake_compiler(tmp_path: Path) -> Path:
    tools = tmp_path / "tools"
    tools.mkdir()
    compiler = tools / "fake_cc.py"
    compiler.write_text(_FAKE_COMPILER, encoding="utf-8")
    return compiler


@pytest.fixture()
def project(tmp_path: Path, fake_compiler: Path) -> FakeProject:
    project_dir = tmp_path / "project"
    project_dir.mkdir()
    build_log = tmp_path / "builds.log"

    command = " ".join([
        shlex.quote(sys.executable),
        shlex.quote(str(fake_compiler)),
        "$(FILE)",
        "$(BIN_DIR)/$(FILENAME).$(EXE_EXT)",
        shlex.quote(str(build_log)),
    ])
    initialize_project(project_dir, languages={"py": command})
    return FakeProject(project_dir, build_log)


@pytest.fixture()
def square_source(project: FakeProject) -> Path:
    """Reads an integer, prints its square."""
    return project.write_source(
        "square.py",
        """\
        import sys
        n = int(sys.stdin.read())
        print(n * n)
        """,
    )


@pytest.fixture()
def tmp_config_file(tmp_path: Path) -> Path:
    """The smallest settings file that passes validation."""
    config_content = textwrap.dedent("""\
        global:
          config_version: "1.0.0"
          log_level: "DEBUG"
    """)
    config_file = tmp_path / "erunner.yaml"
    config_file.write_text(config_content, encoding="utf-8")
    return config_file


@pytest.fixture()
def invalid_config_file(tmp_path: Path) -> Path:
    """Valid YAML, but `global` lacks its required config_version."""
    config_content = textwrap.dedent("""\
        global:
          log_level: "INFO"
    """)
    config_file = tmp_path / "invalid.yaml"
    config_file.write_text(config_content, encoding="utf-8")
    return config_file


@pytest.fixture()
def broken_yaml_file(tmp_path: Path) -> Path:
    config_file = tmp_path / "broken.yaml"
    config_file.write_text("{{not: yaml: at: all:::", encoding="utf-8")
    return config_file
