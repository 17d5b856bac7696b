# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Type-safe schema for Travis-style pipeline files.

Every section of the pipeline file gets its own frozen pydantic model. Frozen
means a loaded pipeline can't be mutated while entries are running; CLI
overrides build a new, re-validated RunnerConfig instead.

The models use pydantic v2's ConfigDict with:
  - frozen=True: immutability after construction
  - extra="forbid": unknown keys fail loudly instead of being silently ignored
  - validate_default=True: even defaults get type-checked

Several keys accept more than one shape because the file format does: a hook
can be a single command or a list, `env` can be "A=1 B=2", a list of such
strings, or a mapping. The models only check shapes; turning env strings into
variables is the matrix module's job.
"""

from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from matrixci.pipeline.models import Architecture, LifecycleStage

EnvValue = Union[str, list[str], dict[str, str]]

_SUDO_ENABLED = {"required", "enabled", "true", "yes"}


def _stringify_env(value: Any) -> Any:
    """YAML turns `JOBS: 4` into an int; environment values are always strings."""
    if isinstance(value, dict):
        return {
            str(k): ("" if v is None else str(v).lower() if isinstance(v, bool) else str(v))
            for k, v in value.items()
        }
    if isinstance(value, list):
        return [item if isinstance(item, (str, dict)) else str(item) for item in value]
    return value


def _as_command_list(value: Any) -> Any:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return value


class EntryMatcher(BaseModel):
    """
    Selects matrix entries for `exclude` and `allow_failures`.

    Every field that is set has to match. `env` matches when all of its
    variables are present in the entry with the same values.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    arch: Optional[Architecture] = Field(default=None)
    env: Optional[EnvValue] = Field(default=None)

    @field_validator("env", mode="before")
    @classmethod
    def _normalize_env(cls, value: Any) -> Any:
        return _stringify_env(value)

    @model_validator(mode="after")
    def _not_empty(self) -> "EntryMatcher":
        if self.arch is None and self.env is None:
            raise ValueError("A matrix matcher needs at least one of 'arch' or 'env'")
        return self


class MatrixInclude(BaseModel):
    """One explicitly listed build leg under `matrix.include`."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    arch: Architecture = Field(
        default=Architecture.AMD64,
        description="CPU architecture this leg is built on",
    )
    env: EnvValue = Field(
        default_factory=dict,
        description="Environment for this leg: 'A=1 B=2', a list of those, or a mapping",
    )
    name: Optional[str] = Field(default=None, description="Display name, informational only")

    @field_validator("env", mode="before")
    @classmethod
    def _normalize_env(cls, value: Any) -> Any:
        return _stringify_env(value)


class MatrixConfig(BaseModel):
    """The `matrix:` (or `jobs:`) section."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    include: list[MatrixInclude] = Field(default_factory=list)
    exclude: list[EntryMatcher] = Field(default_factory=list)
    allow_failures: list[EntryMatcher] = Field(
        default_factory=list,
        description="Entries that may fail without failing the pipeline",
    )


class EnvConfig(BaseModel):
    """
    The mapping form of the top-level `env:` key.

    `global` applies to every entry; `jobs` (or its older name `matrix`) is a
    matrix dimension, one entry per item.
    """

    model_config = ConfigDict(
        frozen=True, extra="forbid", validate_default=True, populate_by_name=True,
    )

    global_env: list[EnvValue] = Field(default_factory=list, alias="global")
    jobs: list[EnvValue] = Field(default_factory=list)
    matrix: list[EnvValue] = Field(default_factory=list)

    @field_validator("global_env", "jobs", "matrix", mode="before")
    @classmethod
    def _normalize_lists(cls, value: Any) -> Any:
        return _stringify_env(_as_command_list(value))

    @property
    def job_values(self) -> list[EnvValue]:
        return list(self.jobs) + list(self.matrix)


class AptAddon(BaseModel):
    """System packages to install with apt before the build."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    packages: list[str] = Field(default_factory=list)
    update: bool = Field(default=True, description="Run apt-get update before installing")

    @field_validator("packages", mode="before")
    @classmethod
    def _normalize_packages(cls, value: Any) -> Any:
        return _as_command_list(value)


class AddonsConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    apt: AptAddon = Field(default_factory=AptAddon)


class RunnerConfig(BaseModel):
    """
    Settings for the local runner itself, under the `runner:` key.

    These never change what a build does, only how matrixci drives it.
    CLI flags take precedence.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    max_workers: int = Field(
        default=1,
        ge=1,
        le=32,
        description="Number of matrix entries that may run at the same time",
    )
    stage_timeout_seconds: Optional[int] = Field(
        default=None,
        ge=1,
        description="Max seconds a single hook command may run; None means no limit",
    )
    output_directory: str = Field(
        default=".matrixci",
        description="Where reports and per-entry logs are written, relative to the workdir",
    )
    cache_directory: str = Field(
        default=".matrixci/cache",
        description="Root of the per-entry dependency caches, relative to the workdir",
    )
    install_apt_addons: bool = Field(
        default=False,
        description="Actually run apt-get for addons.apt.packages",
    )
    persist_environment: bool = Field(
        default=True,
        description="Carry variables exported by one command over to the next",
    )
    shell: str = Field(default="bash", description="Shell used to run hook commands")


class PipelineConfig(BaseModel):
    """
    Top-level container for a pipeline file.

    Only the keys below are understood. Hooks that aren't present run nothing.
    """

    model_config = ConfigDict(
        frozen=True, extra="forbid", validate_default=True, populate_by_name=True,
    )

    language: str = Field(default="generic")
    sudo: Union[bool, str] = Field(default=False)
    cache: Union[bool, str, list[str], None] = Field(default=None)
    dist: Optional[str] = Field(default=None)
    os: Optional[str] = Field(default=None)
    arch: Union[Architecture, list[Architecture], None] = Field(default=None)
    env: Union[EnvConfig, list[EnvValue], str, None] = Field(default=None)
    matrix: Optional[MatrixConfig] = Field(default=None)
    jobs: Optional[MatrixConfig] = Field(default=None)
    addons: AddonsConfig = Field(default_factory=AddonsConfig)
    runner: RunnerConfig = Field(default_factory=RunnerConfig)

    before_cache: list[str] = Field(default_factory=list)
    before_install: list[str] = Field(default_factory=list)
    install: list[str] = Field(default_factory=list)
    script: list[str] = Field(default_factory=list)
    after_success: list[str] = Field(default_factory=list)

    @field_validator(
        "before_cache", "before_install", "install", "script", "after_success",
        mode="before",
    )
    @classmethod
    def _normalize_hooks(cls, value: Any) -> Any:
        return _as_command_list(value)

    @field_validator("env", mode="before")
    @classmethod
    def _normalize_top_level_env(cls, value: Any) -> Any:
        if isinstance(value, list):
            return _stringify_env(value)
        return value

    @field_validator("cache", mode="before")
    @classmethod
    def _normalize_cache(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip()
        return value

    @model_validator(mode="after")
    def _matrix_or_jobs(self) -> "PipelineConfig":
        if self.matrix is not None and self.jobs is not None:
            raise ValueError("Use either 'matrix' or 'jobs', not both")
        return self

    @property
    def matrix_spec(self) -> MatrixConfig:
        """The matrix section, whichever of the two keys it was written under."""
        if self.jobs is not None:
            return self.jobs
        if self.matrix is not None:
            return self.matrix
        return MatrixConfig()

    @property
    def uses_sudo(self) -> bool:
        if isinstance(self.sudo, bool):
            return self.sudo
        return self.sudo.strip().lower() in _SUDO_ENABLED

    @property
    def cache_kinds(self) -> list[str]:
        """Names of the caches requested (e.g. ["cargo"]); empty means caching is off."""
        if self.cache is None or self.cache is False:
            return []
        if self.cache is True:
            return [self.language]
        if isinstance(self.cache, str):
            return [self.cache] if self.cache else []
        return [kind for kind in self.cache if kind]

    @property
    def architectures(self) -> list[Architecture]:
        if self.arch is None:
            return []
        if isinstance(self.arch, list):
            return list(self.arch)
        return [self.arch]

    def hook(self, stage: LifecycleStage) -> list[str]:
        """Commands bound to a lifecycle stage, in declared order."""
        return list(getattr(self, stage.value))
