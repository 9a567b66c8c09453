# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
End-to-end tests of the Runner against a real project directory.

Builds go through the fake compiler from conftest.py; one scenario uses
gcc and is skipped where it isn't installed.
"""

import os
import shlex
import shutil
import sys
import textwrap
from pathlib import Path

import pytest

from erunner.cache.exceptions import CacheNotInitializedError
from erunner.cache.models import PENDING_RECOMPILATION, RefTest, StringTest
from erunner.config.schema import RunnerConfig
from erunner.execute.core import Failed, Successful
from erunner.execute.decision import BuildReason
from erunner.execute.exceptions import (
    BinaryDirectoryMissingError,
    BinaryMissingError,
    BuildError,
    SelectorIndexError,
    UnsupportedExtensionError,
)
from erunner.execute.results import RefTestResult, StringTestResult
from erunner.execute.runner import Runner, initialize_project
from erunner.selector.evaluator import SelectorError
from erunner.utils.paths import binary_path

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="binaries are shebang scripts")


def _write(path: Path, content: str) -> Path:
    path.write_text(content, encoding="utf-8")
    return path


class TestInitializeProject:
    def test_creates_cache_and_binary_dir(self, tmp_path: Path) -> None:
        assert initialize_project(tmp_path) is True
        registry = Runner.for_project(tmp_path).store.get_config()

        assert (tmp_path / "binary").is_dir()
        assert registry.binary_dir == (tmp_path / "binary").resolve()
        assert set(registry.build_commands) == {"c", "cpp"}
        assert registry.entries == {}

    def test_relative_binary_dir_is_under_project(self, tmp_path: Path) -> None:
        initialize_project(tmp_path, binary_dir=Path("build/bin"))
        assert (tmp_path / "build" / "bin").is_dir()

    def test_existing_project_is_left_untouched(self, tmp_path: Path) -> None:
        initialize_project(tmp_path, languages={"c": "gcc $(FILE)"})
        before = (tmp_path / "erunner_cache.json").read_text(encoding="utf-8")

        assert initialize_project(tmp_path, languages={"rs": "rustc $(FILE)"}) is False
        assert (tmp_path / "erunner_cache.json").read_text(encoding="utf-8") == before

    def test_runner_on_uninitialized_project_raises(self, tmp_path: Path) -> None:
        source = _write(tmp_path / "a.c", "int main() {}\n")
        with pytest.raises(CacheNotInitializedError):
            Runner.for_project(tmp_path).run_tests(source)


class TestBuildDecisions:
    def test_first_run_builds_and_tracks_file(self, project, square_source: Path) -> None:
        plan = project.runner.ensure_built(square_source)

        assert plan.reason is BuildReason.NEW_FILE
        assert project.builds() == ["square.py"]
        assert binary_path(project.binary_dir, "square.py").is_file()
        assert project.runner.store.get_entry("square.py") is not None

    def test_unchanged_source_is_not_rebuilt(self, project, square_source: Path) -> None:
        project.runner.ensure_built(square_source)
        plan = project.runner.ensure_built(square_source)

        assert plan.needs_rebuild is False
        assert project.builds() == ["square.py"]

    def test_edited_source_is_rebuilt_keeping_tests(self, project, square_source: Path) -> None:
        project.runner.add_test(square_source, "5", "25")
        project.runner.run_tests(square_source)
        first_hash = project.runner.store.get_entry("square.py").source_hash

        square_source.write_text(square_source.read_text(encoding="utf-8") + "# edited\n", encoding="utf-8")
        report = project.runner.run_tests(square_source)
        entry = project.runner.store.get_entry("square.py")

        assert report.passed is True
        assert entry.source_hash != first_hash
        assert entry.tests == [StringTest(input="5", expected_output="25")]
        assert len(project.builds()) == 2

    def test_force_rebuilds(self, project, square_source: Path) -> None:
        project.runner.ensure_built(square_source)
        project.runner.ensure_built(square_source, force=True)
        assert len(project.builds()) == 2

    def test_failed_build_leaves_cache_untouched(self, project) -> None:
        source = project.write_source("broken.py", "COMPILE_ERROR\n")
        with pytest.raises(BuildError):
            project.runner.ensure_built(source)
        assert project.runner.store.get_entry("broken.py") is None

    def test_unsupported_extension(self, project) -> None:
        source = project.write_source("main.rs", "fn main() {}\n")
        with pytest.raises(UnsupportedExtensionError):
            project.runner.ensure_built(source)

    def test_missing_binary_directory(self, project, square_source: Path) -> None:
        shutil.rmtree(project.binary_dir)
        with pytest.raises(BinaryDirectoryMissingError):
            project.runner.ensure_built(square_source)


class TestMissingBinaryRetry:
    def test_deleted_binary_is_rebuilt_and_rerun(self, project, square_source: Path) -> None:
        project.runner.add_test(square_source, "3", "9")
        project.runner.run_tests(square_source)
        binary_path(project.binary_dir, "square.py").unlink()

        report = project.runner.run_tests(square_source)

        assert report.passed is True
        assert len(project.builds()) == 2
        assert project.runner.store.get_entry("square.py").pending_recompilation is False

    def test_no_retries_allowed_leaves_file_pending(self, project, square_source: Path) -> None:
        project.runner.add_test(square_source, "3", "9")
        project.runner.run_tests(square_source)
        binary_path(project.binary_dir, "square.py").unlink()

        runner = Runner(project.runner.store, RunnerConfig(max_rebuild_retries=0))
        with pytest.raises(BinaryMissingError):
            runner.run_tests(square_source)
        assert project.runner.store.get_entry("square.py").source_hash == PENDING_RECOMPILATION

    def test_pending_file_is_rebuilt_on_next_run(self, project, square_source: Path) -> None:
        project.runner.add_test(square_source, "3", "9")
        project.runner.run_tests(square_source)
        binary_path(project.binary_dir, "square.py").unlink()
        with pytest.raises(BinaryMissingError):
            Runner(project.runner.store, RunnerConfig(max_rebuild_retries=0)).run_tests(square_source)

        plan = project.runner.ensure_built(square_source)
        assert plan.reason is BuildReason.PENDING_RECOMPILATION
        assert plan.file_cache.tests == [StringTest(input="3", expected_output="9")]

    def test_build_that_produces_nothing(self, tmp_path: Path) -> None:
        project_dir = tmp_path / "empty_builds"
        project_dir.mkdir()
        initialize_project(project_dir, languages={"py": f"{shlex.quote(sys.executable)} -c pass"})
        source = _write(project_dir / "a.py", "print(1)\n")
        runner = Runner.for_project(project_dir)
        runner.add_test(source, "", "1")

        with pytest.raises(BinaryMissingError, match="build succeeded but binary missing"):
            runner.run_tests(source)


class TestLiteralTests:
    def test_passing_test(self, project, square_source: Path) -> None:
        project.runner.add_test(square_source, "5\n", "25\n")
        report = project.runner.run_tests(square_source)

        (result,) = report.results
        assert isinstance(result, StringTestResult)
        assert result.passed is True
        assert result.output == "25\n"

    def test_comparison_ignores_surrounding_whitespace(self, project, square_source: Path) -> None:
        project.runner.add_test(square_source, "  4  ", "\n16   \n")
        assert project.runner.run_tests(square_source).passed is True

    def test_wrong_answer(self, project, square_source: Path) -> None:
        project.runner.add_test(square_source, "5", "26")
        (result,) = project.runner.run_tests(square_source).results

        assert result.passed is False
        assert result.failure_reason == "wrong answer"

    def test_runtime_error_is_recorded(self, project, square_source: Path) -> None:
        project.runner.add_test(square_source, "not a number", "0")
        project.runner.add_test(square_source, "2", "4")
        report = project.runner.run_tests(square_source)

        failed, passed = report.results
        assert failed.passed is False
        assert "status" in failed.failure_reason
        assert passed.passed is True
        assert report.passed_count == 1

    def test_tests_run_in_registration_order(self, project, square_source: Path) -> None:
        for n in (1, 2, 3):
            project.runner.add_test(square_source, str(n), str(n * n))
        report = project.runner.run_tests(square_source)
        assert [result.index for result in report.results] == [1, 2, 3]

    def test_file_without_tests(self, project, square_source: Path) -> None:
        report = project.runner.run_tests(square_source)
        assert report.results == ()
        assert report.passed is True


class TestLinkedTests:
    def test_pairs_file(self, project, square_source: Path, tmp_path: Path) -> None:
        cases = _write(tmp_path / "cases.txt", "{2} -> {4}\n{3} -> {10}\n{4} -> {16}\n")
        project.runner.add_file_link(square_source, cases)

        (result,) = project.runner.run_tests(square_source).results
        assert isinstance(result, RefTestResult)
        assert result.total == 3
        assert result.passed_count == 2
        assert [record.passed for record in result.records] == [True, False, True]
        assert result.passed is False

    def test_separate_input_and_output_files(self, project, square_source: Path, tmp_path: Path) -> None:
        inputs = _write(tmp_path / "in.txt", "{1}\n{2}\n{3}\n")
        outputs = _write(tmp_path / "out.txt", "{1}\n{4}\n")
        project.runner.add_file_link(square_source, inputs, outputs)

        (result,) = project.runner.run_tests(square_source).results
        assert result.total == 2
        assert result.passed is True

    def test_link_paths_are_stored_absolute(self, project, square_source: Path, tmp_path: Path) -> None:
        _write(tmp_path / "cases.txt", "{1} -> {1}\n")
        relative = Path(os.path.relpath(tmp_path / "cases.txt"))
        entry = project.runner.add_file_link(square_source, relative)

        (test,) = entry.tests
        assert isinstance(test, RefTest)
        assert test.input_file.is_absolute()

    def test_linking_missing_file_raises(self, project, square_source: Path, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            project.runner.add_file_link(square_source, tmp_path / "absent.txt")

    def test_malformed_file_keeps_earlier_records_and_moves_on(
        self, project, square_source: Path, tmp_path: Path
    ) -> None:
        cases = _write(tmp_path / "cases.txt", "{2} -> {4}\n}\n{3} -> {9}\n")
        project.runner.add_file_link(square_source, cases)
        project.runner.add_test(square_source, "5", "25")

        linked, literal = project.runner.run_tests(square_source).results
        assert linked.total == 1
        assert linked.error is not None and "unmatched closing bracket" in linked.error
        assert linked.passed is False
        assert literal.passed is True

    def test_deleted_linked_file_is_recorded(self, project, square_source: Path, tmp_path: Path) -> None:
        cases = _write(tmp_path / "cases.txt", "{2} -> {4}\n")
        project.runner.add_file_link(square_source, cases)
        cases.unlink()

        (result,) = project.runner.run_tests(square_source).results
        assert result.error is not None
        assert result.passed is False


class TestSelectedTests:
    @pytest.fixture()
    def registered(self, project, square_source: Path, tmp_path: Path) -> Path:
        project.runner.add_test(square_source, "2", "4")
        cases = _write(tmp_path / "cases.txt", "{1} -> {1}\n{2} -> {4}\n{3} -> {9}\n{4} -> {0}\n")
        project.runner.add_file_link(square_source, cases)
        project.runner.add_test(square_source, "3", "9")
        return square_source

    def test_single_sub_test(self, project, registered: Path) -> None:
        (result,) = project.runner.run_selected(registered, "2.2").results
        assert [record.index for record in result.records] == [2]

    def test_sub_range(self, project, registered: Path) -> None:
        (result,) = project.runner.run_selected(registered, "2.2-2.3").results
        assert [record.index for record in result.records] == [2, 3]
        assert result.passed is True

    def test_backwards_sub_range_fails_with_no_records(self, project, registered: Path) -> None:
        (result,) = project.runner.run_selected(registered, "2.3-2.1").results
        assert result.records == ()
        assert result.passed is False

    def test_range_across_tests(self, project, registered: Path) -> None:
        report = project.runner.run_selected(registered, "1-2.2")
        first, second = report.results
        assert first.index == 1
        assert [record.index for record in second.records] == [1, 2]

    def test_selection_order_is_kept(self, project, registered: Path) -> None:
        report = project.runner.run_selected(registered, "3,1")
        assert [result.index for result in report.results] == [3, 1]

    def test_whole_linked_test(self, project, registered: Path) -> None:
        (result,) = project.runner.run_selected(registered, "2").results
        assert result.total == 4
        assert result.passed_count == 3

    def test_sub_range_past_the_end_matches_nothing(self, project, registered: Path) -> None:
        (result,) = project.runner.run_selected(registered, "2.9").results
        assert result.total == 0
        assert result.passed is False

    def test_unknown_test_index(self, project, registered: Path) -> None:
        with pytest.raises(SelectorIndexError):
            project.runner.run_selected(registered, "4")

    def test_zero_index(self, project, registered: Path) -> None:
        with pytest.raises(SelectorIndexError):
            project.runner.run_selected(registered, "0")

    def test_bad_expression_builds_nothing(self, project, registered: Path) -> None:
        with pytest.raises(SelectorError):
            project.runner.run_selected(registered, "1-2-3")
        assert project.builds() == []


class TestRegistration:
    def test_adding_to_unknown_file_does_not_build(self, project, square_source: Path) -> None:
        entry = project.runner.add_test(square_source, "1", "1")
        assert len(entry.tests) == 1
        assert entry.pending_recompilation is False
        assert project.builds() == []

    def test_tests_accumulate(self, project, square_source: Path) -> None:
        project.runner.add_test(square_source, "1", "1")
        entry = project.runner.add_test(square_source, "2", "4")
        assert [test.input for test in entry.tests] == ["1", "2"]


class TestInspection:
    def test_describe_tests(self, project, square_source: Path, tmp_path: Path) -> None:
        project.runner.add_test(square_source, "5", "25")
        cases = _write(tmp_path / "cases.txt", "{1} -> {1}\n{2} -> {4}\n")
        project.runner.add_file_link(square_source, cases)

        assert project.runner.describe_tests(square_source) == [
            "Testcase 1",
            " Input : 5",
            " Output: 25",
            f"Testcase 2 (linked: {cases.resolve()})",
            " Testcase 2.1",
            "  Input : 1",
            "  Output: 1",
            " Testcase 2.2",
            "  Input : 2",
            "  Output: 4",
        ]

    def test_describe_multi_line_test(self, project, square_source: Path) -> None:
        project.runner.add_test(square_source, "1\n2", "3")
        assert project.runner.describe_tests(square_source) == [
            "Testcase 1",
            " Input :",
            "   1",
            "   2",
            " Output:",
            "   3",
        ]

    def test_describe_without_tests(self, project, square_source: Path) -> None:
        assert project.runner.describe_tests(square_source) == []

    def test_status_lists_test_kinds(self, project, square_source: Path, tmp_path: Path) -> None:
        project.runner.add_test(square_source, "1", "1")
        project.runner.add_file_link(square_source, _write(tmp_path / "c.txt", "{1} -> {1}\n"))

        (status,) = project.runner.status()
        assert status.filename == "square.py"
        assert status.test_kinds == "SR"
        assert status.test_count == 2


class TestMaintenance:
    def test_clean_removes_deleted_files(self, project, square_source: Path) -> None:
        gone = project.write_source("gone.py", "print(1)\n")
        project.runner.add_test(square_source, "1", "1")
        project.runner.add_test(gone, "", "1")
        gone.unlink()

        assert project.runner.clean() == 1
        assert [status.filename for status in project.runner.status()] == ["square.py"]

    def test_clean_with_nothing_stale(self, project, square_source: Path) -> None:
        project.runner.add_test(square_source, "1", "1")
        assert project.runner.clean() == 0

    def test_purge_removes_everything(self, project, square_source: Path) -> None:
        project.runner.add_test(square_source, "1", "1")
        assert project.runner.purge() == 1
        assert project.runner.status() == []

    def test_recompile_only_changed_files(self, project, square_source: Path) -> None:
        other = project.write_source("other.py", "print(2)\n")
        project.runner.ensure_built(square_source)
        project.runner.ensure_built(other)
        other.write_text("print(3)\n", encoding="utf-8")

        summary = project.runner.recompile_all()
        assert summary.rebuilt == ("other.py",)
        assert summary.up_to_date == ("square.py",)

    def test_recompile_all_continues_past_failures(self, project, square_source: Path) -> None:
        broken = project.write_source("broken.py", "print(1)\n")
        project.runner.ensure_built(broken)
        project.runner.ensure_built(square_source)
        broken.write_text("COMPILE_ERROR\n", encoding="utf-8")
        project.write_source("lost.py", "print(1)\n")
        project.runner.add_test(project.project_dir / "lost.py", "", "1")
        (project.project_dir / "lost.py").unlink()

        summary = project.runner.recompile_all(rebuild_all=True)
        assert summary.failed == ("broken.py",)
        assert summary.rebuilt == ("square.py",)
        assert summary.missing == ("lost.py",)


class TestRunFile:
    def test_run_file_builds_and_runs(self, project) -> None:
        source = project.write_source("hello.py", "pass\n")
        outcome = project.runner.run_file(source)
        assert isinstance(outcome, Successful)
        assert project.builds() == ["hello.py"]

    def test_run_file_reports_failure(self, project) -> None:
        source = project.write_source("exit.py", "import sys\nsys.exit(5)\n")
        outcome = project.runner.run_file(source)
        assert isinstance(outcome, Failed)
        assert outcome.exit_code == 5


@pytest.mark.skipif(shutil.which("gcc") is None, reason="gcc not installed")
class TestWithGcc:
    def test_register_build_run_edit_rebuild(self, tmp_path: Path) -> None:
        initialize_project(tmp_path)
        source = _write(
            tmp_path / "main.c",
            textwrap.dedent("""\
                #include <stdio.h>
                int main(void) {
                    int n;
                    if (scanf("%d", &n) != 1) return 1;
                    printf("%d\\n", n * n);
                    return 0;
                }
            """),
        )
        runner = Runner.for_project(tmp_path)
        runner.add_test(source, "5\n", "25\n")

        assert runner.run_tests(source).passed is True
        first_hash = runner.store.get_entry("main.c").source_hash

        source.write_text(source.read_text(encoding="utf-8") + "/* edited */\n", encoding="utf-8")
        assert runner.run_tests(source).passed is True

        entry = runner.store.get_entry("main.c")
        assert entry.source_hash != first_hash
        assert entry.tests == [StringTest(input="5\n", expected_output="25\n")]
