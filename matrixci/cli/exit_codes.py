# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
CLI exit codes.

These are the only exit codes matrixci returns. PIPELINE_FAILED means the
tool itself worked but at least one matrix entry went red.
"""

SUCCESS: int = 0
USER_ERROR: int = 1
CONFIG_ERROR: int = 2
RUNTIME_ERROR: int = 3
VALIDATION_ERROR: int = 4
PIPELINE_FAILED: int = 5
