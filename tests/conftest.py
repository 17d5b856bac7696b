# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Shared pytest fixtures for matrixci tests.

Kept minimal: pipeline files that several test modules need, and a factory
for run contexts rooted in a temp directory.
"""

import textwrap
from pathlib import Path
from typing import Callable

import pytest

from matrixci.config.schema import RunnerConfig
from matrixci.pipeline.cache import CacheStore
from matrixci.pipeline.runner import RunContext


@pytest.fixture()
def tmp_pipeline_file(tmp_path: Path) -> Path:
    """The two-architecture Rust pipeline every test suite here starts from."""
    content = textwrap.dedent("""\
        language: rust
        sudo: required
        cache: cargo

        matrix:
          include:
            - arch: arm64
              env: TARGET=aarch64-unknown-linux-gnu
            - arch: amd64
              env: TARGET=x86_64-unknown-linux-musl
        dist: trusty
        addons:
          apt:
            packages:
              - libssl-dev

        before_cache:
          - bash ci/install_tarpaulin.sh

        before_install:
          - set -e
          - rustup self update

        install:
          - bash ci/install_rust.sh
          - source ~/.cargo/env || true

        script:
          - bash ci/script.sh

        after_success:
          - bash ci/coverage.sh
    """)
    config_file = tmp_path / ".travis.yml"
    config_file.write_text(content, encoding="utf-8")
    return config_file


@pytest.fixture()
def invalid_pipeline_file(tmp_path: Path) -> Path:
    """Valid YAML, but `arch` isn't an architecture we know."""
    content = textwrap.dedent("""\
        language: rust
        matrix:
          include:
            - arch: sparc
              env: TARGET=sparc-unknown-linux-gnu
    """)
    config_file = tmp_path / "invalid.yml"
    config_file.write_text(content, encoding="utf-8")
    return config_file


@pytest.fixture()
def broken_yaml_file(tmp_path: Path) -> Path:
    """A file that isn't valid YAML at all."""
    config_file = tmp_path / "broken.yml"
    config_file.write_text("{{not: yaml: at: all:::", encoding="utf-8")
    return config_file


@pytest.fixture()
def make_context(tmp_path: Path) -> Callable[..., RunContext]:
    """
    Build a RunContext whose workdir, logs and caches all live under tmp_path.

    Keyword arguments are RunnerConfig overrides, plus `cache_kinds`.
    """

    def _make(cache_kinds: list[str] | None = None, **settings: object) -> RunContext:
        workdir = tmp_path / "work"
        workdir.mkdir(exist_ok=True)
        return RunContext(
            workdir=workdir,
            log_directory=tmp_path / "out" / "logs",
            settings=RunnerConfig.model_validate(settings),
            cache_store=CacheStore(tmp_path / "cache", language="rust", kinds=cache_kinds or []),
            language="rust",
            dist="trusty",
        )

    return _make
