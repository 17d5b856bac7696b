# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Pipeline report writer.

Writes the outcome of a run to disk:

    <output_dir>/
    ├── report.json           — machine-readable results, one item per entry
    ├── report.txt            — human-readable summary
    ├── config_snapshot.yaml  — the pipeline file as matrixci understood it
    └── logs/<entry>.log      — command output (written by the runner)

report.json is the authoritative output; report.txt is a convenience view of
the same data.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import yaml

from matrixci.logging.logger import get_logger
from matrixci.pipeline.models import PipelineReport, RunResult
from matrixci.utils.filesystem import atomic_write

logger = get_logger(__name__)


def result_to_dict(result: RunResult) -> dict[str, Any]:
    entry = result.entry
    return {
        "entry": {
            "id": entry.entry_id,
            "index": entry.index,
            "architecture": entry.architecture.value,
            "environment": dict(entry.environment),
            "allow_failure": entry.allow_failure,
        },
        "succeeded": result.succeeded,
        "stage_failed": result.stage_failed.value if result.stage_failed else None,
        "exit_code": result.exit_code,
        "error": result.error,
        "elapsed_seconds": round(result.elapsed_seconds, 3),
        "log_path": result.log_path,
        "stages": [
            {
                "stage": outcome.stage.value,
                "success": outcome.success,
                "commands": [
                    {
                        "command": command.command,
                        "exit_code": command.exit_code,
                        "elapsed_seconds": round(command.elapsed_seconds, 3),
                        "timed_out": command.timed_out,
                    }
                    for command in outcome.commands
                ],
            }
            for outcome in result.stages
        ],
    }


def report_to_dict(report: PipelineReport) -> dict[str, Any]:
    return {
        "succeeded": report.succeeded,
        "total": len(report.results),
        "passed": len(report.passed),
        "failed": len(report.failed),
        "allowed_failures": len(report.allowed_failures),
        "elapsed_seconds": round(report.elapsed_seconds, 3),
        "results": [result_to_dict(result) for result in report.results],
    }


def write_report(
    report: PipelineReport,
    output_dir: Path,
    config_snapshot: dict[str, Any] | None = None,
) -> Path:
    """
    Write report.json, report.txt and (optionally) config_snapshot.yaml.

    Returns the output directory.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    atomic_write(
        output_dir / "report.json",
        json.dumps(report_to_dict(report), indent=2, sort_keys=True),
    )
    atomic_write(output_dir / "report.txt", format_report_text(report))

    if config_snapshot is not None:
        atomic_write(
            output_dir / "config_snapshot.yaml",
            yaml.safe_dump(config_snapshot, default_flow_style=False, sort_keys=True),
        )

    logger.info("Pipeline report written", extra={"output_dir": str(output_dir)})

    return output_dir


def _verdict(result: RunResult) -> str:
    if result.succeeded:
        return "PASSED"
    if result.entry.allow_failure:
        return "FAILED (allowed)"
    return "FAILED"


def format_report_text(report: PipelineReport) -> str:
    timestamp = datetime.now(tz=timezone.utc).isoformat()
    lines: list[str] = [
        "=" * 60,
        "MATRIXCI PIPELINE REPORT",
        f"Generated: {timestamp}",
        f"Result: {'PASSED' if report.succeeded else 'FAILED'}",
        "=" * 60,
        "",
        "--- ENTRIES ---",
    ]

    for result in report.results:
        lines.append(f"[{result.entry.entry_id}] {result.entry.label}: {_verdict(result)}")
        if result.stage_failed is not None:
            lines.append(f"    stage: {result.stage_failed.value} (exit code {result.exit_code})")
        if result.error is not None:
            lines.append(f"    error: {result.error}")
        if not result.succeeded and result.log_path:
            lines.append(f"    log: {result.log_path}")

    lines.extend(
        [
            "",
            "--- SUMMARY ---",
            f"Total Entries: {len(report.results)}",
            f"Passed: {len(report.passed)}",
            f"Failed: {len(report.failed)}",
            f"Allowed Failures: {len(report.allowed_failures)}",
            f"Elapsed: {report.elapsed_seconds:.3f}s",
            "",
            "=" * 60,
        ]
    )
    return "\n".join(lines) + "\n"
