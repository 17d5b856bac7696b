# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Runs a single hook command.

Each command is handed to the configured shell (`bash -c` by default) as a
subprocess with a hard timeout, and its stdout and stderr are appended to the
entry's log file. The exit code is the only thing that matters for the
verdict; the output is there for whoever has to debug a red build.

The shell is started in its own session. On timeout the whole process group
is killed, so a `cargo build` started by `bash ci/script.sh` dies with the
script instead of outliving the entry.

Hooks like `source ~/.cargo/env` or `cd sub` only make sense if their effect
is visible to later commands. To get that without keeping a shell alive
between commands, the command is wrapped so the shell dumps its environment
(`env -0`) to a private temp directory right before exiting, with the
command's own exit status preserved. The dumped `PWD` becomes the next
command's working directory. If the command kills the shell first (`exit 3`,
`set -e; false`), the previous environment is kept.
"""

import os
import shutil
import signal
import subprocess
import tempfile
import time
from pathlib import Path
from typing import IO

from matrixci.logging.logger import get_logger
from matrixci.pipeline.models import CommandResult

logger = get_logger(__name__)

TIMEOUT_EXIT_CODE = -1
SHELL_NOT_FOUND_EXIT_CODE = 127

ENV_DUMP_NAME = "env.dump"

# Set by the shell itself on every invocation; carrying them over would
# only leak one command's bookkeeping into the next.
_VOLATILE_VARIABLES = frozenset({"_", "OLDPWD", "SHLVL", "__MATRIXCI_STATUS"})


def _wrap_command(command: str, env_dump: Path) -> str:
    quoted = "'" + str(env_dump).replace("'", "'\\''") + "'"
    return (
        f"{command}\n"
        "__MATRIXCI_STATUS=$?\n"
        f"env -0 > {quoted} 2>/dev/null\n"
        "exit $__MATRIXCI_STATUS\n"
    )


def parse_env_dump(data: bytes) -> dict[str, str]:
    """Parse the NUL-separated output of `env -0`."""
    env: dict[str, str] = {}
    for chunk in data.split(b"\0"):
        if not chunk:
            continue
        name, sep, value = chunk.decode("utf-8", errors="replace").partition("=")
        if not sep or name in _VOLATILE_VARIABLES:
            continue
        env[name] = value
    return env


def working_directory(env: dict[str, str], default: Path) -> Path:
    """
    Where the next command should start: the `PWD` the last one left behind.

    Falls back to `default` when `PWD` is unset or no longer a directory.
    """
    pwd = env.get("PWD")
    if pwd and Path(pwd).is_dir():
        return Path(pwd)
    return default


def _kill_process_group(process: subprocess.Popen) -> None:
    """SIGKILL the shell and everything it started, then reap the shell."""
    try:
        os.killpg(process.pid, signal.SIGKILL)
    except ProcessLookupError:
        # The whole group exited between the timeout and the kill.
        pass
    process.wait()


def run_command(
    command: str,
    env: dict[str, str],
    cwd: Path,
    log_sink: IO[str],
    timeout_seconds: int | None = None,
    shell: str = "bash",
    persist_environment: bool = True,
) -> tuple[CommandResult, dict[str, str]]:
    """
    Run one command and report how it went.

    Args:
        command: The hook command, exactly as written in the pipeline file.
        env: Full environment for the subprocess.
        cwd: Working directory.
        log_sink: Open text file the command's output is appended to.
        timeout_seconds: Kill the command after this long; None waits forever.
        shell: Shell executable used as `<shell> -c <command>`.
        persist_environment: Capture the environment the command leaves behind.

    Returns:
        The CommandResult and the environment the next command should use.
    """
    log_sink.write(f"$ {command}\n")
    log_sink.flush()

    dump_dir: Path | None = None
    script = command
    if persist_environment:
        dump_dir = Path(tempfile.mkdtemp(prefix="matrixci_env_"))
        script = _wrap_command(command, dump_dir / ENV_DUMP_NAME)

    try:
        result = _execute(command, script, env, cwd, log_sink, timeout_seconds, shell)

        next_env = env
        if dump_dir is not None:
            env_dump = dump_dir / ENV_DUMP_NAME
            if env_dump.is_file():
                next_env = parse_env_dump(env_dump.read_bytes())
    finally:
        if dump_dir is not None:
            shutil.rmtree(dump_dir, ignore_errors=True)

    logger.debug(
        "Command finished",
        extra={
            "command": command,
            "exit_code": result.exit_code,
            "elapsed_seconds": round(result.elapsed_seconds, 3),
        },
    )
    return result, next_env


def _execute(
    command: str,
    script: str,
    env: dict[str, str],
    cwd: Path,
    log_sink: IO[str],
    timeout_seconds: int | None,
    shell: str,
) -> CommandResult:
    start = time.monotonic()
    try:
        process = subprocess.Popen(
            [shell, "-c", script],
            stdin=subprocess.DEVNULL,
            stdout=log_sink,
            stderr=subprocess.STDOUT,
            cwd=str(cwd),
            env=env,
            start_new_session=True,
        )
    except FileNotFoundError:
        logger.error(
            "Shell not found",
            extra={"shell": shell, "cwd": str(cwd)},
        )
        log_sink.write(f"[matrixci] shell {shell!r} not found\n")
        log_sink.flush()
        return CommandResult(
            command=command,
            exit_code=SHELL_NOT_FOUND_EXIT_CODE,
            elapsed_seconds=time.monotonic() - start,
        )

    try:
        exit_code = process.wait(timeout=timeout_seconds)
    except subprocess.TimeoutExpired:
        _kill_process_group(process)
        elapsed = time.monotonic() - start
        logger.warning(
            "Command timed out",
            extra={"command": command, "timeout_seconds": timeout_seconds},
        )
        log_sink.write(f"\n[matrixci] command timed out after {timeout_seconds}s\n")
        log_sink.flush()
        return CommandResult(
            command=command,
            exit_code=TIMEOUT_EXIT_CODE,
            elapsed_seconds=elapsed,
            timed_out=True,
        )

    log_sink.flush()
    return CommandResult(
        command=command,
        exit_code=exit_code,
        elapsed_seconds=time.monotonic() - start,
    )
