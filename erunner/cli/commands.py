# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Subcommand handlers for the erunner CLI.

Each function here corresponds to one CLI subcommand and returns an exit
code. Handlers do the argument plumbing and the exit-code mapping; the
work itself is one Runner call.

No print() calls. Everything, test verdicts and listings included, goes
through the structured logger on stderr.
"""

import argparse
import logging
from pathlib import Path
from typing import Callable, Optional

from erunner.cache.exceptions import CacheCorruptedError, CacheNotInitializedError
from erunner.cli.exit_codes import CONFIG_ERROR, RUNTIME_ERROR, SUCCESS, TEST_FAILURE, USER_ERROR
from erunner.config.exceptions import ConfigError
from erunner.config.loader import default_config, load_config, resolve_config_path
from erunner.config.schema import ErunnerConfig
from erunner.execute.core import Successful
from erunner.execute.exceptions import (
    BinaryDirectoryMissingError,
    BinaryMissingError,
    BuildError,
    EmptyBuildCommandError,
    SelectorIndexError,
    TemplateError,
    UnsupportedExtensionError,
)
from erunner.execute.results import RefTestResult, RunReport
from erunner.execute.runner import Runner, initialize_project
from erunner.logging.logger import configure_package_logging, get_logger
from erunner.runtime.bootstrap import bootstrap
from erunner.runtime.environment import missing_build_tools
from erunner.selector.evaluator import SelectorError
from erunner.testfile.parser import DefinitionFormatError
from erunner.utils.paths import resolve_project_root

_USER_ERRORS = (SelectorError, SelectorIndexError, DefinitionFormatError, CacheCorruptedError)
_CONFIG_ERRORS = (
    ConfigError,
    CacheNotInitializedError,
    UnsupportedExtensionError,
    BinaryDirectoryMissingError,
    TemplateError,
    EmptyBuildCommandError,
)
_RUNTIME_ERRORS = (BuildError, BinaryMissingError, OSError)


def _load_and_bootstrap(
    args: argparse.Namespace,
    command_name: str,
) -> tuple[int, Optional[ErunnerConfig], logging.Logger]:
    """
    The shared setup every command needs: load settings, run bootstrap.

    Returns (exit_code, config, logger). If exit_code is not SUCCESS the
    caller returns it immediately.
    """
    logger = get_logger(f"erunner.cli.{command_name}", log_level=args.log_level or "INFO")

    config_path = resolve_config_path(args.config)
    if config_path is not None:
        try:
            config = load_config(config_path)
        except ConfigError as err:
            logger.error(
                "Configuration error",
                extra={"command": command_name, "error": str(err)},
            )
            return CONFIG_ERROR, None, logger
    else:
        config = default_config(args.log_level or "INFO")

    bootstrap(config.global_config)
    if args.log_level is not None:
        # The command line wins over the settings file.
        configure_package_logging(args.log_level)

    return SUCCESS, config, logger


def _open_runner(config: ErunnerConfig) -> Runner:
    """
    Runner for the project containing the working directory.

    Raises:
        CacheNotInitializedError: Neither the working directory nor any
            parent holds a cache document.
    """
    try:
        project_dir = resolve_project_root(Path.cwd(), config.runner.cache_file)
    except FileNotFoundError as err:
        raise CacheNotInitializedError(f"{err} Run `erunner init` first.") from err
    return Runner.for_project(project_dir, config.runner)


def _guarded(
    args: argparse.Namespace,
    command_name: str,
    action: Callable[[ErunnerConfig, logging.Logger], int],
) -> int:
    """Bootstrap, run `action` and map whatever it raises to an exit code."""
    exit_code, config, logger = _load_and_bootstrap(args, command_name)
    if exit_code != SUCCESS or config is None:
        return exit_code

    try:
        return action(config, logger)
    except _USER_ERRORS as err:
        logger.error("Invalid input", extra={"command": command_name, "error": str(err)})
        return USER_ERROR
    except _CONFIG_ERRORS as err:
        logger.error("Configuration error", extra={"command": command_name, "error": str(err)})
        return CONFIG_ERROR
    except _RUNTIME_ERRORS as err:
        logger.error("Command failed", extra={"command": command_name, "error": str(err)})
        return RUNTIME_ERROR
    except Exception as err:
        logger.error(
            "Runtime error",
            extra={"command": command_name, "error": str(err)},
            exc_info=True,
        )
        return RUNTIME_ERROR


def _log_report(logger: logging.Logger, report: RunReport) -> int:
    if not report.results:
        logger.info("No tests registered", extra={"file": report.filename})
        return SUCCESS

    for result in report.results:
        if isinstance(result, RefTestResult):
            for record in result.records:
                logger.info(
                    "Sub-test",
                    extra={
                        "test": f"{result.index}.{record.index}",
                        "passed": record.passed,
                        "elapsed_seconds": round(record.elapsed_seconds, 3),
                        "reason": record.failure_reason,
                        "output": None if record.passed else record.output,
                        "expected_output": None if record.passed else record.expected_output,
                    },
                )
            logger.info(
                "Linked test",
                extra={
                    "test": result.index,
                    "source": str(result.source),
                    "passed": result.passed,
                    "passed_records": result.passed_count,
                    "total_records": result.total,
                    "error": result.error,
                },
            )
        else:
            logger.info(
                "Test",
                extra={
                    "test": result.index,
                    "passed": result.passed,
                    "elapsed_seconds": round(result.elapsed_seconds, 3),
                    "reason": result.failure_reason,
                    "output": None if result.passed else result.output,
                },
            )

    logger.info(
        "Summary",
        extra={
            "file": report.filename,
            "passed": report.passed_count,
            "total": len(report.results),
        },
    )
    return SUCCESS if report.passed else TEST_FAILURE


def handle_init(args: argparse.Namespace) -> int:
    """Create a project in the working directory."""

    def action(config: ErunnerConfig, logger: logging.Logger) -> int:
        project_dir = Path.cwd()
        binary_dir = Path(args.bin_dir) if args.bin_dir else Path(config.runner.binary_directory)
        created = initialize_project(
            project_dir,
            binary_dir=binary_dir,
            languages=config.runner.languages,
            cache_file=config.runner.cache_file,
        )
        if created:
            logger.info("Project initialized", extra={"project_dir": str(project_dir)})
        else:
            logger.info("Project already initialized, left untouched", extra={"project_dir": str(project_dir)})
        return SUCCESS

    return _guarded(args, "init", action)


def handle_run(args: argparse.Namespace) -> int:
    """Build a source file if needed and run it attached to the terminal."""

    def action(config: ErunnerConfig, logger: logging.Logger) -> int:
        runner = _open_runner(config)
        outcome = runner.run_file(Path(args.path), force_recompile=args.force_recompile)
        return SUCCESS if isinstance(outcome, Successful) else RUNTIME_ERROR

    return _guarded(args, "run", action)


def handle_test(args: argparse.Namespace) -> int:
    """Dispatch `erunner test PATH <action>`."""

    def action(config: ErunnerConfig, logger: logging.Logger) -> int:
        runner = _open_runner(config)
        source_path = Path(args.path)

        if args.test_command == "add":
            entry = runner.add_test(source_path, args.input, args.output)
            logger.info("Literal test registered", extra={"index": len(entry.tests)})
            return SUCCESS

        if args.test_command == "add-link":
            expected = Path(args.standalone) if args.standalone else None
            entry = runner.add_file_link(source_path, Path(args.tests), expected)
            logger.info("Linked test registered", extra={"index": len(entry.tests)})
            return SUCCESS

        if args.test_command == "run":
            return _log_report(logger, runner.run_tests(source_path))

        if args.test_command == "run-at":
            return _log_report(logger, runner.run_selected(source_path, args.expression))

        if args.test_command == "show":
            lines = runner.describe_tests(source_path)
            if not lines:
                logger.info("No tests registered", extra={"file": source_path.name})
            else:
                logger.info("Registered tests", extra={"file": source_path.name, "listing": lines})
            return SUCCESS

        logger.error("Unknown test action", extra={"action": args.test_command})
        return USER_ERROR

    return _guarded(args, "test", action)


def handle_status(args: argparse.Namespace) -> int:
    """List tracked files with their fingerprints and test kinds."""

    def action(config: ErunnerConfig, logger: logging.Logger) -> int:
        runner = _open_runner(config)
        statuses = runner.status()
        for status in statuses:
            logger.info(
                "Tracked file",
                extra={
                    "file": status.filename,
                    "source_hash": status.source_hash,
                    "tests": status.test_kinds,
                },
            )
        logger.info("Status", extra={"tracked_files": len(statuses)})

        registry = runner.store.get_config()
        for extension, tool in missing_build_tools(registry.build_commands).items():
            logger.warning("Build tool not found on PATH", extra={"extension": extension, "tool": tool})
        return SUCCESS

    return _guarded(args, "status", action)


def handle_clean(args: argparse.Namespace) -> int:
    """Forget tracked files that no longer exist."""

    def action(config: ErunnerConfig, logger: logging.Logger) -> int:
        removed = _open_runner(config).clean()
        logger.info("Removed stale entries", extra={"removed": removed})
        return SUCCESS

    return _guarded(args, "clean", action)


def handle_purge(args: argparse.Namespace) -> int:
    """Forget every tracked file. Requires --yes."""

    def action(config: ErunnerConfig, logger: logging.Logger) -> int:
        if not args.yes:
            logger.error("Refusing to purge without --yes")
            return USER_ERROR
        removed = _open_runner(config).purge()
        logger.info("Removed all entries", extra={"removed": removed})
        return SUCCESS

    return _guarded(args, "purge", action)


def handle_recompile(args: argparse.Namespace) -> int:
    """Rebuild changed (or, with --all, every) tracked files."""

    def action(config: ErunnerConfig, logger: logging.Logger) -> int:
        summary = _open_runner(config).recompile_all(rebuild_all=args.rebuild_all)
        if summary.failed:
            logger.error("Some builds failed", extra={"failed": list(summary.failed)})
            return RUNTIME_ERROR
        return SUCCESS

    return _guarded(args, "recompile", action)
