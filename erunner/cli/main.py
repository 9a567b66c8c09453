# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
CLI entrypoint for erunner.

Every operation is a subcommand of `erunner`. There are no interactive
prompts: destructive commands take an explicit flag instead.

The global options (--config, --log-level) are inherited by every
subcommand through argparse's parent parser mechanism.

Usage:
    erunner init --bin-dir build
    erunner run main.c
    erunner test main.c add "2 3" "5"
    erunner test main.c add-link cases.txt
    erunner test main.c run-at 1,2.2-3
"""

import argparse
import sys

from erunner.cli.commands import (
    handle_clean,
    handle_init,
    handle_purge,
    handle_recompile,
    handle_run,
    handle_status,
    handle_test,
)
from erunner.cli.exit_codes import USER_ERROR


def _build_global_parser() -> argparse.ArgumentParser:
    """
    Parent parser with the options every subcommand accepts.

    add_help=False so its help text doesn't collide with the subcommand's.
    """
    parent = argparse.ArgumentParser(add_help=False)
    parent.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to a YAML settings file.",
    )
    parent.add_argument(
        "--log-level",
        type=str,
        default=None,
        dest="log_level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging verbosity (overrides the settings file).",
    )
    return parent


def _register_test_actions(
    test_parser: argparse.ArgumentParser,
    parent: argparse.ArgumentParser,
) -> None:
    # Global options go on the actions, after PATH: `erunner test main.c run --log-level DEBUG`.
    actions = test_parser.add_subparsers(dest="test_command", required=True)

    add = actions.add_parser("add", parents=[parent], help="Register a literal test.")
    add.add_argument("input", help="Text fed to the program on stdin.")
    add.add_argument("output", help="Expected stdout.")

    add_link = actions.add_parser("add-link", parents=[parent], help="Register a test-definition file.")
    add_link.add_argument("tests", help="File with `{input} -> {output}` pairs, or inputs only with --standalone.")
    add_link.add_argument(
        "--standalone",
        metavar="OUTPUT",
        default=None,
        help="File holding the expected outputs, paired in order with the blocks of TESTS.",
    )

    actions.add_parser("run", parents=[parent], help="Run every registered test.")

    run_at = actions.add_parser("run-at", parents=[parent], help="Run the tests picked by a selector.")
    run_at.add_argument("expression", help="Selector such as `1,2.2,3-4` or `1.2-3.2`.")

    actions.add_parser("show", parents=[parent], help="List registered tests.")


def _register_subcommands(
    subparsers: argparse._SubParsersAction,  # type: ignore[type-arg]
    parent: argparse.ArgumentParser,
) -> None:
    init = subparsers.add_parser("init", parents=[parent], help="Create a project here.")
    init.add_argument("--bin-dir", dest="bin_dir", default=None, help="Directory for compiled binaries.")
    init.set_defaults(func=handle_init)

    run = subparsers.add_parser("run", parents=[parent], help="Build if needed and run a file.")
    run.add_argument("path", help="Source file.")
    run.add_argument(
        "--force-recompile",
        action="store_true",
        default=False,
        dest="force_recompile",
        help="Rebuild even if the source is unchanged.",
    )
    run.set_defaults(func=handle_run)

    test = subparsers.add_parser("test", help="Manage and run tests of a file.")
    test.add_argument("path", help="Source file.")
    _register_test_actions(test, parent)
    test.set_defaults(func=handle_test)

    status = subparsers.add_parser("status", parents=[parent], help="List tracked files.")
    status.set_defaults(func=handle_status)

    clean = subparsers.add_parser("clean", parents=[parent], help="Forget files that no longer exist.")
    clean.set_defaults(func=handle_clean)

    purge = subparsers.add_parser("purge", parents=[parent], help="Forget every tracked file.")
    purge.add_argument("--yes", action="store_true", default=False, help="Confirm the purge.")
    purge.set_defaults(func=handle_purge)

    recompile = subparsers.add_parser("recompile", parents=[parent], help="Rebuild changed files.")
    recompile.add_argument(
        "--all",
        action="store_true",
        default=False,
        dest="rebuild_all",
        help="Rebuild every tracked file, changed or not.",
    )
    recompile.set_defaults(func=handle_recompile)


def main() -> None:
    """
    Main CLI entrypoint, the target of the `erunner` console script.

    If no subcommand is given, shows help and exits with USER_ERROR.
    """
    parent = _build_global_parser()

    root_parser = argparse.ArgumentParser(
        prog="erunner",
        description="easy-runner: compile, run and test single-file programs.",
        parents=[parent],
    )
    subparsers = root_parser.add_subparsers(dest="command")
    _register_subcommands(subparsers, parent)

    args = root_parser.parse_args()

    if not hasattr(args, "func") or args.func is None:
        root_parser.print_help()
        sys.exit(USER_ERROR)

    exit_code = args.func(args)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
