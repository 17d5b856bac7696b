# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Data models for the pipeline runner.

Matrix entries are frozen: once the matrix is expanded, nothing is allowed to
change which architecture or environment a build leg uses. Results are plain
dataclasses built up while an entry runs and serialized once at the end.
"""

import enum
from dataclasses import dataclass, field


class Architecture(str, enum.Enum):
    """CPU architectures a matrix entry can ask for."""

    ARM64 = "arm64"
    AMD64 = "amd64"


class LifecycleStage(str, enum.Enum):
    """
    The hooks of a build, in the order they execute.

    Declaration order is execution order; `LifecycleStage.ordered()` is the
    only place the runner gets its sequence from.
    """

    BEFORE_CACHE = "before_cache"
    BEFORE_INSTALL = "before_install"
    INSTALL = "install"
    SCRIPT = "script"
    AFTER_SUCCESS = "after_success"

    @classmethod
    def ordered(cls) -> list["LifecycleStage"]:
        return list(cls)

    @property
    def is_fatal(self) -> bool:
        """Whether a non-zero exit in this stage fails the entry."""
        return self in _FATAL_STAGES


_FATAL_STAGES = frozenset({
    LifecycleStage.BEFORE_INSTALL,
    LifecycleStage.INSTALL,
    LifecycleStage.SCRIPT,
})


@dataclass(frozen=True)
class MatrixEntry:
    """
    One build leg: an architecture plus the environment variables for it.

    `index` is the 1-based position in the expanded matrix and doubles as
    the stable identifier the CLI uses for `--entry`.
    """

    index: int
    architecture: Architecture
    environment: dict[str, str] = field(default_factory=dict)
    allow_failure: bool = False

    @property
    def entry_id(self) -> str:
        return f"{self.index}-{self.architecture.value}"

    @property
    def label(self) -> str:
        env_text = " ".join(f"{k}={v}" for k, v in self.environment.items())
        if env_text:
            return f"{self.architecture.value} {env_text}"
        return self.architecture.value


@dataclass(frozen=True)
class CommandResult:
    """What came back from running one hook command."""

    command: str
    exit_code: int
    elapsed_seconds: float
    timed_out: bool = False

    @property
    def success(self) -> bool:
        return self.exit_code == 0


@dataclass
class StageOutcome:
    """All command results for one stage of one entry."""

    stage: LifecycleStage
    commands: list[CommandResult] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return all(result.success for result in self.commands)

    @property
    def exit_code(self) -> int:
        for result in self.commands:
            if not result.success:
                return result.exit_code
        return 0


@dataclass
class RunResult:
    """
    The verdict for one matrix entry.

    `stage_failed` is set to the first fatal stage that exited non-zero, and
    `exit_code` carries that exit code. Both stay at their defaults when the
    entry passed.
    """

    entry: MatrixEntry
    stage_failed: LifecycleStage | None = None
    exit_code: int = 0
    stages: list[StageOutcome] = field(default_factory=list)
    elapsed_seconds: float = 0.0
    log_path: str | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.stage_failed is None and self.error is None

    @property
    def executed_stages(self) -> list[LifecycleStage]:
        return [outcome.stage for outcome in self.stages]


@dataclass
class PipelineReport:
    """Aggregated results for the whole matrix, in matrix order."""

    results: list[RunResult] = field(default_factory=list)
    elapsed_seconds: float = 0.0

    @property
    def passed(self) -> list[RunResult]:
        return [r for r in self.results if r.succeeded]

    @property
    def failed(self) -> list[RunResult]:
        return [r for r in self.results if not r.succeeded and not r.entry.allow_failure]

    @property
    def allowed_failures(self) -> list[RunResult]:
        return [r for r in self.results if not r.succeeded and r.entry.allow_failure]

    @property
    def succeeded(self) -> bool:
        return not self.failed
