# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""Tests for host inspection and bootstrap."""

from unittest import mock

import pytest

from matrixci.pipeline.models import Architecture
from matrixci.runtime import environment
from matrixci.runtime.bootstrap import bootstrap


class TestArchitectureMapping:
    @pytest.mark.parametrize(
        ("machine", "expected"),
        [
            ("x86_64", Architecture.AMD64),
            ("AMD64", Architecture.AMD64),
            ("aarch64", Architecture.ARM64),
            ("arm64", Architecture.ARM64),
            ("ppc64le", None),
            ("armv8l", None),
            ("armv7l", None),
        ],
    )
    def test_machine_names(self, machine: str, expected: Architecture | None) -> None:
        assert environment.architecture_for_machine(machine) is expected

    def test_host_architecture_uses_platform(self) -> None:
        with mock.patch.object(environment.platform, "machine", return_value="aarch64"):
            assert environment.host_architecture() is Architecture.ARM64


class TestPythonCheck:
    def test_current_python_passes(self) -> None:
        environment.check_minimum_python()

    def test_old_python_rejected(self) -> None:
        with mock.patch.object(environment, "get_python_version", return_value=(3, 8, 0)):
            with pytest.raises(RuntimeError, match="3.11"):
                environment.check_minimum_python()


class TestBootstrap:
    def test_returns_system_info(self) -> None:
        info = bootstrap("WARNING")
        assert info.python_version
        assert info.machine

    def test_rejects_unknown_level(self) -> None:
        with pytest.raises(ValueError):
            bootstrap("LOUD")
