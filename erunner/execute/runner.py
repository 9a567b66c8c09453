# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
The compile-and-run orchestrator.

Runner ties the pieces together for one project:

    source file ──fingerprint──> rebuild decision ──> build command
         │                                                │
         └────────── tests from the cache ──> binary <────┘
                                                │
                                  output compared per test

Every public method is one user-facing operation (run a file, run its
tests, register a test, ...). State lives in the cache document only; the
runner re-reads it whenever it needs it and writes through CacheStore.

When a binary turns out to be missing at execution time, the entry is
marked PENDING_RECOMPILATION on disk first, then rebuilt and the
execution retried. The number of rebuild-and-retry cycles per execution
is capped by RunnerConfig.max_rebuild_retries; past the cap the run stops
with BinaryMissingError. The marker stays on disk in that case, so the
next invocation rebuilds regardless of the source fingerprint.
"""

from pathlib import Path
from typing import Iterator, Optional, Union

from erunner.cache.models import (
    PENDING_RECOMPILATION,
    FileCache,
    RefTest,
    Registry,
    StringTest,
    Test,
)
from erunner.cache.store import CacheStore
from erunner.config.schema import DEFAULT_LANGUAGES, RunnerConfig
from erunner.execute.core import (
    CustomInput,
    ExecutionInput,
    Failed,
    InheritTerminal,
    NeedsRecompilation,
    Successful,
    execute_binary,
    recompile_binary,
)
from erunner.execute.decision import BuildPlan, plan_build
from erunner.execute.exceptions import (
    BinaryDirectoryMissingError,
    BinaryMissingError,
    ExecutionError,
    SelectorIndexError,
)
from erunner.execute.results import (
    FileStatus,
    RecompileSummary,
    RefTestResult,
    RunReport,
    StringTestResult,
    SubTestResult,
    TestOutcome,
    outputs_match,
)
from erunner.logging.logger import get_logger
from erunner.selector.evaluator import SubTestRange, evaluate
from erunner.testfile.parser import (
    DefinitionFormatError,
    DefinitionParser,
    MergedDefinitionIterator,
    SimpleTest,
    merge_definition_files,
    read_definition_file,
)
from erunner.utils.hashing import compute_fingerprint
from erunner.utils.paths import DEFAULT_CACHE_FILE, ensure_directory

logger = get_logger(__name__)

# `show` cuts long inputs down to this many columns and lines.
SHOW_MAX_WIDTH = 50
SHOW_MAX_LINES = 20

LinkedRecords = Union[DefinitionParser, MergedDefinitionIterator]


def initialize_project(
    project_dir: Path,
    binary_dir: Optional[Path] = None,
    languages: Optional[dict[str, str]] = None,
    cache_file: str = DEFAULT_CACHE_FILE,
) -> bool:
    """
    Set up a new project in `project_dir`.

    Creates the binary directory (default `<project_dir>/binary`) and
    writes a registry with no tracked files and the given build commands
    (default: c and cpp).

    Returns:
        True if the project was created, False if a cache document was
        already there. An existing project is never modified.
    """
    store = CacheStore.for_project(project_dir, cache_file)
    if store.is_initialized():
        logger.info("Project already initialized", extra={"path": str(store.path)})
        return False

    if binary_dir is None:
        binary_dir = project_dir / "binary"
    elif not binary_dir.is_absolute():
        binary_dir = project_dir / binary_dir
    binary_dir = ensure_directory(binary_dir).resolve()

    registry = Registry(
        binary_dir=binary_dir,
        entries={},
        build_commands=dict(DEFAULT_LANGUAGES if languages is None else languages),
    )
    return store.create(registry)


class Runner:
    """Build, run and test the source files tracked by one project."""

    def __init__(self, store: CacheStore, settings: Optional[RunnerConfig] = None) -> None:
        self._store = store
        self._settings = settings or RunnerConfig()

    @classmethod
    def for_project(cls, project_dir: Path, settings: Optional[RunnerConfig] = None) -> "Runner":
        settings = settings or RunnerConfig()
        return cls(CacheStore.for_project(project_dir, settings.cache_file), settings)

    @property
    def store(self) -> CacheStore:
        return self._store

    # Building

    def ensure_built(self, source_path: Path, force: bool = False) -> BuildPlan:
        """
        Rebuild `source_path` if its fingerprint says so, and persist the
        entry.

        Raises:
            CacheNotInitializedError: No project here.
            BinaryDirectoryMissingError: The binary directory is gone.
            UnsupportedExtensionError / TemplateError / EmptyBuildCommandError
            BuildError: The compiler failed. The entry is not updated.
        """
        filename = source_path.name
        fingerprint = compute_fingerprint(source_path)
        registry = self._store.get_config()
        plan = plan_build(registry.entries.get(filename), fingerprint, force=force)

        logger.debug(
            "Rebuild decision",
            extra={
                "file": filename,
                "needs_rebuild": plan.needs_rebuild,
                "reason": plan.reason.value,
            },
        )

        if plan.needs_rebuild:
            self._require_binary_dir(registry)
            recompile_binary(source_path, registry)
            self._store.put_entry(filename, plan.file_cache)
            logger.info(
                "Compiled",
                extra={"file": filename, "reason": plan.reason.value},
            )
        return plan

    def recompile_all(self, rebuild_all: bool = False) -> RecompileSummary:
        """
        Rebuild every tracked file whose source changed, or every tracked
        file with `rebuild_all=True`.

        A failing build is logged and the loop moves on to the next file.
        Files that no longer exist are reported as missing.
        """
        registry = self._store.get_config()
        self._require_binary_dir(registry)

        rebuilt: list[str] = []
        failed: list[str] = []
        missing: list[str] = []
        up_to_date: list[str] = []

        for filename, entry in registry.entries.items():
            source_path = self._store.project_dir / filename
            if not source_path.is_file():
                logger.warning("Tracked file not found", extra={"file": filename})
                missing.append(filename)
                continue

            plan = plan_build(entry, compute_fingerprint(source_path), force=rebuild_all)
            if not plan.needs_rebuild:
                up_to_date.append(filename)
                continue

            try:
                recompile_binary(source_path, registry)
            except ExecutionError as err:
                logger.error("Build failed", extra={"file": filename, "error": str(err)})
                failed.append(filename)
                continue

            self._store.put_entry(filename, plan.file_cache)
            rebuilt.append(filename)

        summary = RecompileSummary(
            rebuilt=tuple(rebuilt),
            failed=tuple(failed),
            missing=tuple(missing),
            up_to_date=tuple(up_to_date),
        )
        logger.info(
            "Recompile finished",
            extra={
                "rebuilt": len(summary.rebuilt),
                "failed": len(summary.failed),
                "missing": len(summary.missing),
                "up_to_date": len(summary.up_to_date),
            },
        )
        return summary

    def _require_binary_dir(self, registry: Registry) -> None:
        if not registry.binary_dir.is_dir():
            raise BinaryDirectoryMissingError(
                f"Binary directory {registry.binary_dir} does not exist. "
                "Create it or re-run `erunner init --bin-dir DIR` in a fresh project."
            )

    def _rebuild(self, source_path: Path) -> None:
        filename = source_path.name
        registry = self._store.get_config()
        self._require_binary_dir(registry)
        recompile_binary(source_path, registry)

        fingerprint = compute_fingerprint(source_path)
        entry = registry.entries.get(filename)
        updated = entry.with_hash(fingerprint) if entry else FileCache(source_hash=fingerprint)
        self._store.put_entry(filename, updated)

    def _mark_pending(self, filename: str) -> None:
        entry = self._store.get_entry(filename)
        if entry is None:
            entry = FileCache(source_hash=PENDING_RECOMPILATION)
        self._store.put_entry(filename, entry.with_hash(PENDING_RECOMPILATION))

    # Executing

    def _execute(
        self,
        source_path: Path,
        binary_dir: Path,
        execution_input: ExecutionInput,
    ) -> Union[Successful, Failed]:
        filename = source_path.name
        rebuilds = 0
        while True:
            outcome = execute_binary(
                binary_dir,
                filename,
                execution_input,
                chunk_size=self._settings.stdin_chunk_size,
            )
            if not isinstance(outcome, NeedsRecompilation):
                return outcome

            self._mark_pending(filename)
            if rebuilds >= self._settings.max_rebuild_retries:
                if rebuilds:
                    detail = "build succeeded but binary missing"
                else:
                    detail = "binary missing and rebuilding is disabled"
                raise BinaryMissingError(f"{outcome.binary_path}: {detail}")

            rebuilds += 1
            logger.warning(
                "Binary missing, rebuilding",
                extra={"file": filename, "attempt": rebuilds},
            )
            self._rebuild(source_path)

    def run_file(self, source_path: Path, force_recompile: bool = False) -> Union[Successful, Failed]:
        """Build if needed, then run the binary attached to the terminal."""
        self.ensure_built(source_path, force=force_recompile)
        binary_dir = self._store.get_config().binary_dir
        outcome = self._execute(source_path, binary_dir, InheritTerminal())

        if isinstance(outcome, Successful):
            logger.info(
                "Run finished",
                extra={"file": source_path.name, "elapsed_seconds": round(outcome.elapsed_seconds, 3)},
            )
        else:
            logger.error("Run failed", extra={"file": source_path.name, "reason": outcome.reason})
        return outcome

    def run_tests(self, source_path: Path) -> RunReport:
        """Build if needed, then run every registered test in order."""
        plan = self.ensure_built(source_path)
        binary_dir = self._store.get_config().binary_dir

        results = [
            self._run_test(source_path, binary_dir, index, test)
            for index, test in enumerate(plan.file_cache.tests, start=1)
        ]
        return self._report(source_path.name, results)

    def run_selected(self, source_path: Path, expression: str) -> RunReport:
        """
        Run the tests picked by a selector expression, in selector order.

        Raises:
            SelectorError: The expression doesn't parse. Nothing is built.
            SelectorIndexError: It names a test that isn't registered.
        """
        ranges = evaluate(expression)
        plan = self.ensure_built(source_path)
        tests = plan.file_cache.tests

        for selected in ranges:
            if not 1 <= selected.main_index <= len(tests):
                raise SelectorIndexError(
                    f"Test {selected.main_index} does not exist for {source_path.name} "
                    f"({len(tests)} registered)"
                )
            if selected.sub_range is not None and selected.sub_range.first < 1:
                raise SelectorIndexError(f"Sub-test indices start at 1, got {selected}")

        binary_dir = self._store.get_config().binary_dir
        results = [
            self._run_test(
                source_path,
                binary_dir,
                selected.main_index,
                tests[selected.main_index - 1],
                selected.sub_range,
            )
            for selected in ranges
        ]
        return self._report(source_path.name, results)

    def _report(self, filename: str, results: list[TestOutcome]) -> RunReport:
        report = RunReport(filename=filename, results=tuple(results))
        logger.info(
            "Tests finished",
            extra={
                "file": filename,
                "passed": report.passed_count,
                "total": len(report.results),
            },
        )
        return report

    def _run_test(
        self,
        source_path: Path,
        binary_dir: Path,
        index: int,
        test: Test,
        sub_range: Optional[SubTestRange] = None,
    ) -> TestOutcome:
        if isinstance(test, StringTest):
            return self._run_string_test(source_path, binary_dir, index, test)
        if isinstance(test, RefTest):
            return self._run_ref_test(source_path, binary_dir, index, test, sub_range)
        raise TypeError(f"Unknown test kind: {type(test).__name__}")

    def _run_string_test(
        self, source_path: Path, binary_dir: Path, index: int, test: StringTest
    ) -> StringTestResult:
        outcome = self._execute(source_path, binary_dir, CustomInput(test.input))
        if isinstance(outcome, Failed):
            logger.warning("Test failed", extra={"test": index, "reason": outcome.reason})
            return StringTestResult(
                index=index,
                passed=False,
                output=outcome.output,
                failure_reason=outcome.reason,
            )

        passed = outputs_match(outcome.output, test.expected_output)
        logger.debug("Test finished", extra={"test": index, "passed": passed})
        return StringTestResult(
            index=index,
            passed=passed,
            output=outcome.output,
            elapsed_seconds=outcome.elapsed_seconds,
            failure_reason=None if passed else "wrong answer",
        )

    def _run_ref_test(
        self,
        source_path: Path,
        binary_dir: Path,
        index: int,
        test: RefTest,
        sub_range: Optional[SubTestRange],
    ) -> RefTestResult:
        try:
            records = _open_linked(test)
        except OSError as err:
            logger.error(
                "Cannot open linked test file",
                extra={"test": index, "path": str(test.input_file), "error": str(err)},
            )
            return RefTestResult(
                index=index, source=test.input_file, sub_range=sub_range, error=str(err)
            )

        results: list[SubTestResult] = []
        error: Optional[str] = None
        try:
            with records:
                for sub_index, record in _select(records, sub_range):
                    results.append(
                        self._run_record(source_path, binary_dir, sub_index, record)
                    )
        except DefinitionFormatError as err:
            logger.error("Linked test file is malformed", extra={"test": index, "error": str(err)})
            error = str(err)

        result = RefTestResult(
            index=index,
            source=test.input_file,
            records=tuple(results),
            sub_range=sub_range,
            error=error,
        )
        logger.debug(
            "Linked test finished",
            extra={"test": index, "passed": result.passed_count, "total": result.total},
        )
        return result

    def _run_record(
        self, source_path: Path, binary_dir: Path, sub_index: int, record: SimpleTest
    ) -> SubTestResult:
        outcome = self._execute(source_path, binary_dir, CustomInput(record.input))
        if isinstance(outcome, Failed):
            return SubTestResult(
                index=sub_index,
                passed=False,
                output=outcome.output,
                expected_output=record.expected_output,
                failure_reason=outcome.reason,
            )

        passed = outputs_match(outcome.output, record.expected_output)
        return SubTestResult(
            index=sub_index,
            passed=passed,
            output=outcome.output,
            expected_output=record.expected_output,
            elapsed_seconds=outcome.elapsed_seconds,
            failure_reason=None if passed else "wrong answer",
        )

    # Registering tests

    def add_test(self, source_path: Path, input: str, expected_output: str) -> FileCache:
        """Register a literal test for `source_path`."""
        return self._register(source_path, StringTest(input=input, expected_output=expected_output))

    def add_file_link(
        self,
        source_path: Path,
        tests_file: Path,
        expected_output_file: Optional[Path] = None,
    ) -> FileCache:
        """
        Register a linked test.

        With only `tests_file`, that file holds `{input} -> {output}` pairs.
        With `expected_output_file` as well, inputs and outputs live in two
        files of plain blocks, paired in order. Paths are stored absolute.

        Raises:
            FileNotFoundError: A linked file doesn't exist.
        """
        linked = [tests_file] if expected_output_file is None else [tests_file, expected_output_file]
        for path in linked:
            if not path.is_file():
                raise FileNotFoundError(f"Linked test file {path} not found")

        test = RefTest(
            input_file=tests_file.resolve(),
            expected_output_file=None if expected_output_file is None else expected_output_file.resolve(),
        )
        return self._register(source_path, test)

    def _register(self, source_path: Path, test: Test) -> FileCache:
        filename = source_path.name
        entry = self._store.get_entry(filename)
        if entry is None:
            # Tracked from now on; the first run builds it.
            entry = FileCache(source_hash=compute_fingerprint(source_path), tests=[])
            logger.info("Tracking new file", extra={"file": filename})

        updated = entry.with_test(test)
        self._store.put_entry(filename, updated)
        logger.info(
            "Test added",
            extra={"file": filename, "kind": type(test).__name__, "index": len(updated.tests)},
        )
        return updated

    # Inspecting and maintaining the registry

    def describe_tests(self, source_path: Path) -> list[str]:
        """
        Text listing of every test registered for `source_path`.

        Linked tests are expanded into their records. Long inputs are cut
        down to SHOW_MAX_WIDTH columns and SHOW_MAX_LINES lines.
        """
        entry = self._store.get_entry(source_path.name)
        if entry is None or not entry.tests:
            return []

        lines: list[str] = []
        for index, test in enumerate(entry.tests, start=1):
            if isinstance(test, StringTest):
                lines.append(f"Testcase {index}")
                lines.extend(_describe_pair(test.input, test.expected_output, indent=" "))
                continue

            lines.append(f"Testcase {index} (linked: {_describe_link(test)})")
            try:
                with _open_linked(test) as records:
                    for sub_index, record in enumerate(records, start=1):
                        lines.append(f" Testcase {index}.{sub_index}")
                        lines.extend(
                            _describe_pair(record.input, record.expected_output, indent="  ")
                        )
            except (OSError, DefinitionFormatError) as err:
                lines.append(f"  error: {err}")
        return lines

    def status(self) -> list[FileStatus]:
        """One FileStatus per tracked file; test kinds are `S` literal, `R` linked."""
        registry = self._store.get_config()
        return [
            FileStatus(
                filename=filename,
                source_hash=entry.source_hash,
                test_kinds="".join("S" if isinstance(test, StringTest) else "R" for test in entry.tests),
            )
            for filename, entry in registry.entries.items()
        ]

    def clean(self) -> int:
        """
        Forget every tracked file that no longer exists in the project
        directory.

        Returns:
            Number of entries removed.
        """
        registry = self._store.get_config()
        kept = {
            filename: entry
            for filename, entry in registry.entries.items()
            if (self._store.project_dir / filename).is_file()
        }
        removed = len(registry.entries) - len(kept)
        if removed:
            self._store.put_config(registry.model_copy(update={"entries": kept}))
        logger.info("Cleaned cache", extra={"removed": removed})
        return removed

    def purge(self) -> int:
        """Forget every tracked file. Returns the number of entries removed."""
        registry = self._store.get_config()
        removed = len(registry.entries)
        self._store.put_config(registry.model_copy(update={"entries": {}}))
        logger.info("Purged cache", extra={"removed": removed})
        return removed


def _open_linked(test: RefTest) -> LinkedRecords:
    if test.expected_output_file is None:
        return read_definition_file(test.input_file)
    return merge_definition_files(test.input_file, test.expected_output_file)


def _select(
    records: LinkedRecords, sub_range: Optional[SubTestRange]
) -> Iterator[tuple[int, SimpleTest]]:
    """Number records from 1 and keep those inside `sub_range`."""
    for sub_index, record in enumerate(records, start=1):
        if sub_range is None or sub_index in sub_range:
            yield sub_index, record
        elif sub_index > sub_range.last:
            return


def _describe_link(test: RefTest) -> str:
    if test.expected_output_file is None:
        return str(test.input_file)
    return f"{test.input_file} + {test.expected_output_file}"


def _abbreviate(text: str, max_width: int = SHOW_MAX_WIDTH, max_lines: int = SHOW_MAX_LINES) -> list[str]:
    lines = text.split("\n")
    shown = [line if len(line) <= max_width else line[: max_width - 3] + "..." for line in lines[:max_lines]]
    if len(lines) > max_lines:
        shown.append("...")
    return shown


def _describe_pair(input: str, expected_output: str, indent: str) -> list[str]:
    if "\n" not in input and "\n" not in expected_output:
        return [
            f"{indent}Input : {_abbreviate(input, max_lines=1)[0]}",
            f"{indent}Output: {_abbreviate(expected_output, max_lines=1)[0]}",
        ]

    lines = [f"{indent}Input :"]
    lines.extend(f"{indent}  {line}" for line in _abbreviate(input))
    lines.append(f"{indent}Output:")
    lines.extend(f"{indent}  {line}" for line in _abbreviate(expected_output))
    return lines
