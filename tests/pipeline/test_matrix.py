# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Tests for build matrix expansion.

The matrix decides how many independent runs there are and what each one
sees, so every expansion rule gets a test here: include lists, top-level
dimensions, global env, exclusion, allowed failures and CLI filtering.
"""

from pathlib import Path

import pytest

from matrixci.config.loader import load_config
from matrixci.config.schema import PipelineConfig
from matrixci.pipeline.exceptions import MatrixError
from matrixci.pipeline.matrix import (
    build_matrix,
    expand_variables,
    parse_env,
    select_entries,
)
from matrixci.pipeline.models import Architecture


def _config(**data: object) -> PipelineConfig:
    return PipelineConfig.model_validate(data)


class TestParseEnv:
    def test_single_assignment(self) -> None:
        assert parse_env("TARGET=aarch64-unknown-linux-gnu") == {
            "TARGET": "aarch64-unknown-linux-gnu"
        }

    def test_several_assignments_with_quotes(self) -> None:
        assert parse_env('A=1 B="two words" C=') == {"A": "1", "B": "two words", "C": ""}

    def test_list_later_items_win(self) -> None:
        assert parse_env(["A=1 B=2", "A=3"]) == {"A": "3", "B": "2"}

    def test_mapping_passes_through(self) -> None:
        assert parse_env({"A": "1"}) == {"A": "1"}

    def test_none_is_empty(self) -> None:
        assert parse_env(None) == {}

    def test_value_may_contain_equals(self) -> None:
        assert parse_env("FLAGS='-C opt-level=3'") == {"FLAGS": "-C opt-level=3"}

    @pytest.mark.parametrize("text", ["NOT_AN_ASSIGNMENT", "1ABC=x", "A-B=1", 'A="unterminated'])
    def test_invalid_env_raises(self, text: str) -> None:
        with pytest.raises(MatrixError):
            parse_env(text)


class TestExpandVariables:
    def test_plain_and_braced_references(self) -> None:
        env = {"HOME": "/home/ci", "PATH": "/usr/bin"}
        assert expand_variables("$HOME/tools:${PATH}", env) == "/home/ci/tools:/usr/bin"

    def test_unset_reference_is_empty(self) -> None:
        assert expand_variables("a${MISSING}b", {}) == "ab"

    def test_text_without_references_unchanged(self) -> None:
        assert expand_variables("-C opt-level=3", {"C": "nope"}) == "-C opt-level=3"


class TestBuildMatrix:
    def test_two_architecture_pipeline_gives_two_entries(self, tmp_pipeline_file: Path) -> None:
        entries = build_matrix(load_config(tmp_pipeline_file))

        assert len(entries) == 2
        assert entries[0].architecture is Architecture.ARM64
        assert entries[0].environment == {"TARGET": "aarch64-unknown-linux-gnu"}
        assert entries[1].architecture is Architecture.AMD64
        assert entries[1].environment == {"TARGET": "x86_64-unknown-linux-musl"}
        assert [e.entry_id for e in entries] == ["1-arm64", "2-amd64"]

    def test_no_matrix_builds_once_on_amd64(self) -> None:
        entries = build_matrix(_config(script="make"))
        assert len(entries) == 1
        assert entries[0].architecture is Architecture.AMD64
        assert entries[0].environment == {}

    def test_arch_and_env_dimensions_cross(self) -> None:
        entries = build_matrix(_config(arch=["arm64", "amd64"], env=["V=1", "V=2"]))
        assert [(e.architecture.value, e.environment["V"]) for e in entries] == [
            ("arm64", "1"),
            ("arm64", "2"),
            ("amd64", "1"),
            ("amd64", "2"),
        ]

    def test_include_is_appended_after_dimensions(self) -> None:
        entries = build_matrix(
            _config(arch="arm64", matrix={"include": [{"arch": "amd64", "env": "EXTRA=1"}]})
        )
        assert [e.entry_id for e in entries] == ["1-arm64", "2-amd64"]
        assert entries[1].environment == {"EXTRA": "1"}

    def test_global_env_merged_under_entry_env(self) -> None:
        entries = build_matrix(
            _config(
                env={"global": ["RUST_BACKTRACE=1 TARGET=default"]},
                matrix={"include": [{"env": "TARGET=x86_64-unknown-linux-musl"}]},
            )
        )
        assert entries[0].environment == {
            "RUST_BACKTRACE": "1",
            "TARGET": "x86_64-unknown-linux-musl",
        }

    def test_exclude_removes_generated_entries(self) -> None:
        entries = build_matrix(
            _config(
                arch=["arm64", "amd64"],
                env=["V=1", "V=2"],
                matrix={"exclude": [{"arch": "arm64", "env": "V=2"}]},
            )
        )
        assert len(entries) == 3
        assert all(not (e.architecture is Architecture.ARM64 and e.environment["V"] == "2") for e in entries)

    def test_excluding_everything_raises(self) -> None:
        with pytest.raises(MatrixError, match="empty"):
            build_matrix(_config(arch="amd64", matrix={"exclude": [{"arch": "amd64"}]}))

    def test_allow_failures_flags_matching_entries(self, tmp_pipeline_file: Path) -> None:
        config = load_config(tmp_pipeline_file)
        data = config.model_dump(by_alias=True, exclude_none=True)
        data["matrix"]["allow_failures"] = [{"env": "TARGET=x86_64-unknown-linux-musl"}]

        entries = build_matrix(PipelineConfig.model_validate(data))
        assert [e.allow_failure for e in entries] == [False, True]

    def test_expansion_is_deterministic(self, tmp_pipeline_file: Path) -> None:
        config = load_config(tmp_pipeline_file)
        assert build_matrix(config) == build_matrix(config)


class TestSelectEntries:
    def test_filter_by_architecture(self, tmp_pipeline_file: Path) -> None:
        entries = build_matrix(load_config(tmp_pipeline_file))
        selected = select_entries(entries, architecture=Architecture.AMD64)
        assert [e.entry_id for e in selected] == ["2-amd64"]

    def test_filter_by_index_keeps_matrix_order(self, tmp_pipeline_file: Path) -> None:
        entries = build_matrix(load_config(tmp_pipeline_file))
        selected = select_entries(entries, indices=[2, 1])
        assert [e.index for e in selected] == [1, 2]

    def test_unknown_index_raises(self, tmp_pipeline_file: Path) -> None:
        entries = build_matrix(load_config(tmp_pipeline_file))
        with pytest.raises(MatrixError, match="index 7"):
            select_entries(entries, indices=[7])

    def test_nothing_left_raises(self, tmp_pipeline_file: Path) -> None:
        entries = build_matrix(load_config(tmp_pipeline_file))
        with pytest.raises(MatrixError):
            select_entries(entries, architecture=Architecture.ARM64, indices=[2])
