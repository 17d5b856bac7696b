# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""Errors raised while expanding or running a pipeline."""

from matrixci.pipeline.models import LifecycleStage, MatrixEntry


class PipelineError(Exception):
    """Base for all pipeline errors."""


class MatrixError(PipelineError):
    """Raised when the pipeline file can't be turned into a build matrix."""


class StageFailed(PipelineError):
    """
    A fatal stage exited non-zero.

    Only ever raised inside one entry's stage loop and caught at the entry
    boundary, so it never stops other entries.
    """

    def __init__(self, entry: MatrixEntry, stage: LifecycleStage, exit_code: int) -> None:
        self.entry = entry
        self.stage = stage
        self.exit_code = exit_code
        super().__init__(
            f"Entry {entry.entry_id} failed in {stage.value} with exit code {exit_code}"
        )
