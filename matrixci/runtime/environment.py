# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Environment inspection for matrixci.

Checks the interpreter version and works out which matrix architecture the
host machine corresponds to, so the runner can warn when an entry is built
on a foreign architecture.
"""

import platform
import shutil
import sys
from typing import NamedTuple

from matrixci.pipeline.models import Architecture

MINIMUM_PYTHON_MAJOR = 3
MINIMUM_PYTHON_MINOR = 11

# platform.machine() spellings seen on Linux, macOS and Windows.
_MACHINE_ALIASES: dict[str, Architecture] = {
    "x86_64": Architecture.AMD64,
    "amd64": Architecture.AMD64,
    "x64": Architecture.AMD64,
    "aarch64": Architecture.ARM64,
    "arm64": Architecture.ARM64,
}


class SystemInfo(NamedTuple):
    """Snapshot of the current system environment."""

    python_version: str
    platform: str
    machine: str
    architecture: Architecture | None
    hostname: str
    shell: str | None


def get_python_version() -> tuple[int, int, int]:
    """Return the current Python version as a (major, minor, micro) tuple."""
    return sys.version_info[:3]


def check_minimum_python() -> None:
    """
    Verify we're running Python 3.11+.

    Raises:
        RuntimeError: If Python version is below 3.11.
    """
    major, minor, _ = get_python_version()
    if major < MINIMUM_PYTHON_MAJOR or (
        major == MINIMUM_PYTHON_MAJOR and minor < MINIMUM_PYTHON_MINOR
    ):
        raise RuntimeError(
            f"matrixci requires Python >= {MINIMUM_PYTHON_MAJOR}.{MINIMUM_PYTHON_MINOR}, "
            f"but you're running {major}.{minor}. Please upgrade."
        )


def architecture_for_machine(machine: str) -> Architecture | None:
    """Map a platform.machine() string onto a matrix architecture, if known."""
    return _MACHINE_ALIASES.get(machine.strip().lower())


def host_architecture() -> Architecture | None:
    """The matrix architecture of the machine we're running on, or None."""
    return architecture_for_machine(platform.machine())


def get_system_info() -> SystemInfo:
    """Collect basic system information for logging and diagnostics."""
    machine = platform.machine()
    return SystemInfo(
        python_version=platform.python_version(),
        platform=platform.system(),
        machine=machine,
        architecture=architecture_for_machine(machine),
        hostname=platform.node(),
        shell=shutil.which("bash"),
    )
