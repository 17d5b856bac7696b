# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Subcommand handlers for the matrixci CLI.

Each function here corresponds to one CLI subcommand and returns an exit
code. Errors are caught at this boundary, logged through the structured
logger and mapped onto the codes in exit_codes.py.

No print() calls. Everything goes through the structured logger.
"""

import argparse
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from matrixci.cli.exit_codes import (
    CONFIG_ERROR,
    PIPELINE_FAILED,
    RUNTIME_ERROR,
    SUCCESS,
    VALIDATION_ERROR,
)
from matrixci.config.exceptions import ConfigError
from matrixci.config.loader import config_snapshot, load_config
from matrixci.config.schema import PipelineConfig, RunnerConfig
from matrixci.logging.logger import get_logger
from matrixci.pipeline.cache import CacheStore
from matrixci.pipeline.exceptions import MatrixError
from matrixci.pipeline.matrix import build_matrix, select_entries
from matrixci.pipeline.models import Architecture, LifecycleStage, MatrixEntry
from matrixci.pipeline.plan import StagePlan, build_plan, count_commands
from matrixci.pipeline.reporting import write_report
from matrixci.pipeline.runner import RunContext, run_pipeline
from matrixci.runtime.bootstrap import bootstrap
from matrixci.utils.paths import resolve_under


def _load_and_bootstrap(
    args: argparse.Namespace,
    command_name: str,
) -> tuple[int, PipelineConfig | None, logging.Logger]:
    """
    The shared setup every pipeline command needs: bootstrap, load config.

    Returns (exit_code, config, logger). If exit_code is not SUCCESS, the
    caller should return it immediately.
    """
    logger = get_logger(f"matrixci.cli.{command_name}", log_level=args.log_level)
    try:
        bootstrap(args.log_level)
    except RuntimeError as err:
        logger.error(
            "Unsupported environment",
            extra={"command": command_name, "error": str(err)},
        )
        return RUNTIME_ERROR, None, logger

    try:
        config = load_config(Path(args.config))
    except ConfigError as err:
        logger.error(
            "Configuration error",
            extra={"command": command_name, "error": str(err)},
        )
        return CONFIG_ERROR, None, logger

    return SUCCESS, config, logger


def _runner_settings(args: argparse.Namespace, config: PipelineConfig) -> RunnerConfig:
    """
    Merge CLI overrides over the `runner:` section.

    Goes back through validation so `--max-workers 0` fails the same way a
    bad value in the file does.

    Raises:
        ValidationError: If an override is out of range.
    """
    overrides: dict[str, Any] = {}
    if getattr(args, "max_workers", None) is not None:
        overrides["max_workers"] = args.max_workers
    if getattr(args, "timeout", None) is not None:
        overrides["stage_timeout_seconds"] = args.timeout
    if getattr(args, "output_dir", None) is not None:
        overrides["output_directory"] = args.output_dir
    if getattr(args, "install_addons", None):
        overrides["install_apt_addons"] = True

    if not overrides:
        return config.runner
    return RunnerConfig.model_validate({**config.runner.model_dump(), **overrides})


def _workdir(args: argparse.Namespace) -> Path:
    if getattr(args, "workdir", None):
        return Path(args.workdir).expanduser().resolve()
    return Path(args.config).expanduser().resolve().parent


def _selected_entries(args: argparse.Namespace, config: PipelineConfig) -> list[MatrixEntry]:
    entries = build_matrix(config)
    architecture = Architecture(args.arch) if getattr(args, "arch", None) else None
    return select_entries(entries, architecture=architecture, indices=getattr(args, "entries", None))


def _log_plan(
    logger: logging.Logger,
    entries: list[MatrixEntry],
    plan: StagePlan,
) -> None:
    for entry in entries:
        logger.info(
            "Matrix entry",
            extra={
                "entry": entry.entry_id,
                "architecture": entry.architecture.value,
                "environment": entry.environment,
                "allow_failure": entry.allow_failure,
            },
        )
    for stage in LifecycleStage.ordered():
        logger.info(
            "Stage",
            extra={"stage": stage.value, "commands": plan[stage]},
        )


def handle_run(args: argparse.Namespace) -> int:
    """Run the build matrix and write the report."""
    exit_code, config, logger = _load_and_bootstrap(args, "run")
    if exit_code != SUCCESS or config is None:
        return exit_code

    try:
        settings = _runner_settings(args, config)
        entries = _selected_entries(args, config)
    except ValidationError as err:
        logger.error("Invalid runner settings", extra={"error": str(err)})
        return CONFIG_ERROR
    except MatrixError as err:
        logger.error("Invalid build matrix", extra={"error": str(err)})
        return VALIDATION_ERROR

    plan = build_plan(config, settings)

    if args.dry_run:
        logger.info(
            "Dry run — would run the build matrix",
            extra={"entries": len(entries), "commands_per_entry": count_commands(plan)},
        )
        _log_plan(logger, entries, plan)
        return SUCCESS

    try:
        workdir = _workdir(args)
        output_dir = resolve_under(workdir, settings.output_directory)
        context = RunContext(
            workdir=workdir,
            log_directory=output_dir / "logs",
            settings=settings,
            cache_store=CacheStore(
                resolve_under(workdir, settings.cache_directory),
                language=config.language,
                kinds=config.cache_kinds,
            ),
            language=config.language,
            dist=config.dist,
        )

        report = run_pipeline(entries, plan, context)
        write_report(report, output_dir, config_snapshot=config_snapshot(config))

    except Exception as err:
        logger.error("Run failed", extra={"error": str(err)}, exc_info=True)
        return RUNTIME_ERROR

    for result in report.failed:
        logger.error(
            "Failed entry",
            extra={
                "entry": result.entry.entry_id,
                "label": result.entry.label,
                "stage": result.stage_failed.value if result.stage_failed else None,
                "exit_code": result.exit_code,
                "log_path": result.log_path,
            },
        )

    return SUCCESS if report.succeeded else PIPELINE_FAILED


def handle_plan(args: argparse.Namespace) -> int:
    """Log the expanded matrix and the commands bound to every stage."""
    exit_code, config, logger = _load_and_bootstrap(args, "plan")
    if exit_code != SUCCESS or config is None:
        return exit_code

    try:
        settings = _runner_settings(args, config)
        entries = _selected_entries(args, config)
    except ValidationError as err:
        logger.error("Invalid runner settings", extra={"error": str(err)})
        return CONFIG_ERROR
    except MatrixError as err:
        logger.error("Invalid build matrix", extra={"error": str(err)})
        return VALIDATION_ERROR

    _log_plan(logger, entries, build_plan(config, settings))
    return SUCCESS


def handle_validate(args: argparse.Namespace) -> int:
    """Load the pipeline file and expand its matrix without running anything."""
    exit_code, config, logger = _load_and_bootstrap(args, "validate")
    if exit_code != SUCCESS or config is None:
        return exit_code

    try:
        entries = build_matrix(config)
    except MatrixError as err:
        logger.error("Invalid build matrix", extra={"error": str(err)})
        return VALIDATION_ERROR

    logger.info(
        "Pipeline file is valid",
        extra={"config": args.config, "entries": len(entries)},
    )
    return SUCCESS


def handle_info(args: argparse.Namespace) -> int:
    """Display host environment info. Doesn't need a pipeline file."""
    logger = get_logger("matrixci.cli.info", log_level=args.log_level)
    try:
        system_info = bootstrap(args.log_level)
    except RuntimeError as err:
        logger.error("Unsupported environment", extra={"error": str(err)})
        return RUNTIME_ERROR

    logger.info(
        "Host environment",
        extra={
            "python_version": system_info.python_version,
            "platform": system_info.platform,
            "machine": system_info.machine,
            "architecture": system_info.architecture.value if system_info.architecture else None,
            "hostname": system_info.hostname,
            "shell": system_info.shell,
        },
    )
    return SUCCESS
