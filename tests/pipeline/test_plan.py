# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""Tests for binding lifecycle stages to commands."""

from pathlib import Path

from matrixci.config.loader import load_config
from matrixci.config.schema import PipelineConfig, RunnerConfig
from matrixci.pipeline.models import LifecycleStage
from matrixci.pipeline.plan import addon_commands, build_plan, count_commands


class TestBuildPlan:
    def test_plan_follows_lifecycle_order(self, tmp_pipeline_file: Path) -> None:
        plan = build_plan(load_config(tmp_pipeline_file), RunnerConfig())
        assert list(plan) == [
            LifecycleStage.BEFORE_CACHE,
            LifecycleStage.BEFORE_INSTALL,
            LifecycleStage.INSTALL,
            LifecycleStage.SCRIPT,
            LifecycleStage.AFTER_SUCCESS,
        ]
        assert plan[LifecycleStage.SCRIPT] == ["bash ci/script.sh"]
        assert count_commands(plan) == 7

    def test_addons_skipped_by_default(self, tmp_pipeline_file: Path) -> None:
        plan = build_plan(load_config(tmp_pipeline_file), RunnerConfig())
        assert plan[LifecycleStage.BEFORE_INSTALL] == ["set -e", "rustup self update"]

    def test_addons_prepended_to_before_install(self, tmp_pipeline_file: Path) -> None:
        plan = build_plan(
            load_config(tmp_pipeline_file), RunnerConfig(install_apt_addons=True),
        )
        assert plan[LifecycleStage.BEFORE_INSTALL] == [
            "sudo apt-get update -qq",
            "sudo apt-get install -y --no-install-recommends libssl-dev",
            "set -e",
            "rustup self update",
        ]

    def test_missing_hooks_are_empty(self) -> None:
        plan = build_plan(PipelineConfig.model_validate({"script": "make"}), RunnerConfig())
        assert plan[LifecycleStage.BEFORE_CACHE] == []
        assert plan[LifecycleStage.AFTER_SUCCESS] == []
        assert count_commands(plan) == 1


class TestAddonCommands:
    def test_no_packages_no_commands(self) -> None:
        assert addon_commands(PipelineConfig()) == []

    def test_without_sudo_and_update(self) -> None:
        config = PipelineConfig.model_validate(
            {"addons": {"apt": {"packages": ["libssl-dev", "pkg-config"], "update": False}}}
        )
        assert addon_commands(config) == [
            "apt-get install -y --no-install-recommends libssl-dev pkg-config"
        ]
