# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Stage plan: which commands run in which lifecycle stage.

The plan is the same for every matrix entry; only the environment differs.
It is built once per run, keyed in lifecycle order, with an empty list for
any hook the pipeline file leaves out.
"""

import shlex

from matrixci.config.schema import PipelineConfig, RunnerConfig
from matrixci.pipeline.models import LifecycleStage

StagePlan = dict[LifecycleStage, list[str]]


def addon_commands(config: PipelineConfig) -> list[str]:
    """apt-get invocations for `addons.apt.packages`, or nothing if there are none."""
    apt = config.addons.apt
    if not apt.packages:
        return []

    prefix = "sudo " if config.uses_sudo else ""
    packages = " ".join(shlex.quote(package) for package in apt.packages)

    commands = []
    if apt.update:
        commands.append(f"{prefix}apt-get update -qq")
    commands.append(f"{prefix}apt-get install -y --no-install-recommends {packages}")
    return commands


def build_plan(config: PipelineConfig, settings: RunnerConfig) -> StagePlan:
    """
    Bind every lifecycle stage to its commands.

    Apt addons become the first commands of before_install when the runner
    is allowed to install them.
    """
    plan: StagePlan = {stage: config.hook(stage) for stage in LifecycleStage.ordered()}

    if settings.install_apt_addons:
        plan[LifecycleStage.BEFORE_INSTALL] = (
            addon_commands(config) + plan[LifecycleStage.BEFORE_INSTALL]
        )

    return plan


def count_commands(plan: StagePlan) -> int:
    return sum(len(commands) for commands in plan.values())
