# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Runtime bootstrap for matrixci.

One-time setup before any command does real work:
  1. Validate the interpreter
  2. Apply the requested log level to every matrixci logger
  3. Log what machine we're on

Every CLI command goes through this first.
"""

from matrixci.logging.logger import get_logger, set_package_log_level
from matrixci.runtime.environment import SystemInfo, check_minimum_python, get_system_info


def bootstrap(log_level: str = "INFO") -> SystemInfo:
    """
    Put the process into a known state and return the host description.

    Raises:
        RuntimeError: If the interpreter is too old.
        ValueError: If the log level isn't a known level name.
    """
    check_minimum_python()
    logger = get_logger("matrixci.runtime", log_level=log_level)
    set_package_log_level(log_level)

    system_info = get_system_info()
    logger.debug(
        "matrixci bootstrap complete",
        extra={
            "python_version": system_info.python_version,
            "platform": system_info.platform,
            "machine": system_info.machine,
            "shell": system_info.shell,
        },
    )
    return system_info
