# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
CLI entrypoint for matrixci.

A single root command; every operation is a subcommand. There are no
interactive prompts.

The global options (--config, --log-level, --dry-run) are inherited by every
subcommand through argparse's parent parser mechanism.

Usage:
    matrixci <subcommand> [options]
    matrixci run --config .travis.yml
    matrixci run --arch arm64 --max-workers 2
    matrixci plan
    matrixci info
"""

import argparse
import sys

from matrixci.cli.commands import handle_info, handle_plan, handle_run, handle_validate
from matrixci.cli.exit_codes import USER_ERROR
from matrixci.config.loader import DEFAULT_CONFIG_NAME
from matrixci.pipeline.models import Architecture


def _build_global_parser() -> argparse.ArgumentParser:
    """
    Build the parent parser with global options.

    A separate parent parser (add_help=False) keeps the help text of the
    parent and the subcommand parsers from colliding.
    """
    parent = argparse.ArgumentParser(add_help=False)
    parent.add_argument(
        "--config",
        type=str,
        default=DEFAULT_CONFIG_NAME,
        help=f"Path to the YAML pipeline file (default: {DEFAULT_CONFIG_NAME}).",
    )
    parent.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        dest="log_level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set the logging verbosity level.",
    )
    parent.add_argument(
        "--dry-run",
        action="store_true",
        default=False,
        dest="dry_run",
        help="Show what would run without executing any hook.",
    )
    return parent


def _add_run_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--arch",
        type=str,
        default=None,
        choices=[arch.value for arch in Architecture],
        help="Only run entries for this architecture.",
    )
    parser.add_argument(
        "--entry",
        type=int,
        action="append",
        default=None,
        dest="entries",
        help="Only run the matrix entry with this 1-based index (repeatable).",
    )
    parser.add_argument(
        "--max-workers",
        type=int,
        default=None,
        dest="max_workers",
        help="Number of entries to run in parallel.",
    )
    parser.add_argument(
        "--timeout",
        type=int,
        default=None,
        dest="timeout",
        help="Per-command timeout in seconds.",
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        default=None,
        dest="output_dir",
        help="Where to write reports and entry logs.",
    )
    parser.add_argument(
        "--workdir",
        type=str,
        default=None,
        help="Directory hooks run in (default: the pipeline file's directory).",
    )
    parser.add_argument(
        "--install-addons",
        action="store_true",
        default=None,
        dest="install_addons",
        help="Install addons.apt.packages with apt-get before before_install.",
    )


def _register_subcommands(
    subparsers: argparse._SubParsersAction,  # type: ignore[type-arg]
    parent: argparse.ArgumentParser,
) -> None:
    """
    Register all subcommands with their handler functions.

    Each subcommand gets the global options from the parent parser and sets
    its handler via set_defaults(func=...).
    """
    commands = [
        ("run", "Run the build matrix.", handle_run),
        ("plan", "Show the expanded matrix and the commands of every stage.", handle_plan),
        ("validate", "Check that the pipeline file is valid.", handle_validate),
        ("info", "Display host environment info.", handle_info),
    ]

    for name, help_text, handler in commands:
        parser = subparsers.add_parser(name, parents=[parent], help=help_text)
        parser.set_defaults(func=handler)

    _add_run_arguments(subparsers.choices["run"])
    _add_run_arguments(subparsers.choices["plan"])


def build_parser() -> argparse.ArgumentParser:
    parent = _build_global_parser()

    root_parser = argparse.ArgumentParser(
        prog="matrixci",
        description="matrixci — run Travis-style CI build matrices locally.",
        parents=[parent],
    )
    subparsers = root_parser.add_subparsers(dest="command")
    _register_subcommands(subparsers, parent)
    return root_parser


def main(argv: list[str] | None = None) -> None:
    """
    Main CLI entrypoint; pyproject.toml's [project.scripts] points here.

    If no subcommand is given, we show help and exit with USER_ERROR.
    """
    root_parser = build_parser()
    args = root_parser.parse_args(argv)

    if getattr(args, "func", None) is None:
        root_parser.print_help()
        sys.exit(USER_ERROR)

    exit_code = args.func(args)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
