# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Pipeline runner: the heart of matrixci.

For each matrix entry the runner:
  1. Prepares the entry's cache directory and environment
  2. Walks the lifecycle stages in declared order
  3. Runs each stage's commands one after another, appending output to the
     entry's log file
  4. Stops the entry at the first non-zero exit in before_install, install
     or script (StageFailed), skipping everything after it
  5. Runs after_success only when script got through cleanly

before_cache and after_success failures are recorded and logged but never
turn an entry red.

Entries never share state, so they can run on a thread pool. One entry
failing, or even crashing, has no effect on the others; results always come
back in matrix order.
"""

import os
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import IO

from matrixci.config.schema import RunnerConfig
from matrixci.logging.logger import get_logger
from matrixci.pipeline.cache import CacheStore
from matrixci.pipeline.exceptions import StageFailed
from matrixci.pipeline.matrix import expand_variables
from matrixci.pipeline.models import (
    LifecycleStage,
    MatrixEntry,
    PipelineReport,
    RunResult,
    StageOutcome,
)
from matrixci.pipeline.plan import StagePlan
from matrixci.pipeline.shell import run_command, working_directory
from matrixci.runtime.environment import host_architecture
from matrixci.utils.paths import ensure_directory

logger = get_logger(__name__)


@dataclass(frozen=True)
class RunContext:
    """Everything about a run that is the same for every entry."""

    workdir: Path
    log_directory: Path
    settings: RunnerConfig
    cache_store: CacheStore
    language: str = "generic"
    dist: str | None = None
    base_environment: dict[str, str] | None = None


def entry_environment(
    entry: MatrixEntry,
    context: RunContext,
    cache_dir: Path | None,
) -> dict[str, str]:
    """
    The environment an entry's commands start with.

    Process environment, then the entry's own variables, then the runner's
    MATRIXCI_* variables. Later layers win. Entry variables are expanded in
    declared order, so `PATH=$HOME/bin:$PATH` extends the inherited PATH and
    a variable may refer to one declared before it.
    """
    base = context.base_environment if context.base_environment is not None else os.environ
    env = dict(base)
    for name, value in entry.environment.items():
        env[name] = expand_variables(value, env)
    env.update({
        "CI": "true",
        "MATRIXCI": "true",
        "MATRIXCI_ARCH": entry.architecture.value,
        "MATRIXCI_ENTRY": entry.entry_id,
        "MATRIXCI_LANGUAGE": context.language,
        "MATRIXCI_BUILD_DIR": str(context.workdir),
        "PWD": str(context.workdir),
    })
    if context.dist:
        env["MATRIXCI_DIST"] = context.dist
    if cache_dir is not None:
        env["MATRIXCI_CACHE_DIR"] = str(cache_dir)
    return env


def _run_stage(
    entry: MatrixEntry,
    stage: LifecycleStage,
    commands: list[str],
    env: dict[str, str],
    context: RunContext,
    log_sink: IO[str],
) -> tuple[StageOutcome, dict[str, str]]:
    """Run one stage's commands in order, stopping at the first failure."""
    outcome = StageOutcome(stage=stage)
    log_sink.write(f"\n=== {stage.value} ===\n")

    for command in commands:
        result, env = run_command(
            command,
            env=env,
            cwd=working_directory(env, context.workdir),
            log_sink=log_sink,
            timeout_seconds=context.settings.stage_timeout_seconds,
            shell=context.settings.shell,
            persist_environment=context.settings.persist_environment,
        )
        outcome.commands.append(result)
        if not result.success:
            break

    return outcome, env


def run_entry(entry: MatrixEntry, plan: StagePlan, context: RunContext) -> RunResult:
    """
    Execute every stage of one matrix entry.

    Never raises for a failing build: the failure is in the returned
    RunResult. Unexpected errors (unwritable log directory, say) are caught
    at this boundary too, so a broken entry can't take the pool down.
    """
    start = time.monotonic()
    log_path = context.log_directory / f"{entry.entry_id}.log"
    result = RunResult(entry=entry, log_path=str(log_path))

    host = host_architecture()
    if host is not None and host != entry.architecture:
        logger.warning(
            "Entry targets a different architecture than this host",
            extra={"entry": entry.entry_id, "entry_arch": entry.architecture.value, "host_arch": host.value},
        )

    logger.info("Entry started", extra={"entry": entry.entry_id, "label": entry.label})

    try:
        ensure_directory(context.log_directory)
        cache_dir = context.cache_store.prepare(entry)
        env = entry_environment(entry, context, cache_dir)

        with open(log_path, "w", encoding="utf-8") as log_sink:
            log_sink.write(f"# matrixci entry {entry.entry_id}: {entry.label}\n")
            _run_stages(entry, plan, context, env, log_sink, result)

    except StageFailed as failure:
        result.stage_failed = failure.stage
        result.exit_code = failure.exit_code
        logger.error(
            "Entry failed",
            extra={
                "entry": entry.entry_id,
                "stage": failure.stage.value,
                "exit_code": failure.exit_code,
            },
        )

    except Exception as err:
        result.error = str(err)
        result.exit_code = -1
        logger.error(
            "Entry crashed",
            extra={"entry": entry.entry_id, "error": str(err)},
            exc_info=True,
        )

    result.elapsed_seconds = time.monotonic() - start

    if result.succeeded:
        logger.info(
            "Entry passed",
            extra={"entry": entry.entry_id, "elapsed_seconds": round(result.elapsed_seconds, 3)},
        )

    return result


def _run_stages(
    entry: MatrixEntry,
    plan: StagePlan,
    context: RunContext,
    env: dict[str, str],
    log_sink: IO[str],
    result: RunResult,
) -> None:
    for stage in LifecycleStage.ordered():
        commands = plan.get(stage, [])
        outcome, env = _run_stage(entry, stage, commands, env, context, log_sink)
        result.stages.append(outcome)

        if outcome.success:
            if stage is LifecycleStage.BEFORE_CACHE and commands:
                context.cache_store.record(entry)
            continue

        if stage.is_fatal:
            raise StageFailed(entry, stage, outcome.exit_code)

        logger.warning(
            "Non-fatal stage failed",
            extra={"entry": entry.entry_id, "stage": stage.value, "exit_code": outcome.exit_code},
        )


def run_pipeline(
    entries: list[MatrixEntry],
    plan: StagePlan,
    context: RunContext,
) -> PipelineReport:
    """
    Run every entry and collect the results in matrix order.

    With max_workers == 1 entries run one after another on the calling
    thread; otherwise they share a thread pool of that size.
    """
    ensure_directory(context.log_directory)
    start = time.monotonic()
    workers = min(context.settings.max_workers, len(entries)) or 1

    logger.info(
        "Pipeline started",
        extra={"entries": len(entries), "max_workers": workers},
    )

    if workers == 1:
        results = [run_entry(entry, plan, context) for entry in entries]
    else:
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="matrixci") as pool:
            results = list(pool.map(lambda entry: run_entry(entry, plan, context), entries))

    report = PipelineReport(results=results, elapsed_seconds=time.monotonic() - start)

    logger.info(
        "Pipeline finished",
        extra={
            "passed": len(report.passed),
            "failed": len(report.failed),
            "allowed_failures": len(report.allowed_failures),
            "succeeded": report.succeeded,
        },
    )
    return report
