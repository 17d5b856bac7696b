# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""Tests for per-entry cache directories and their manifests."""

from pathlib import Path

from matrixci.pipeline.cache import MANIFEST_NAME, CacheStore
from matrixci.pipeline.models import Architecture, MatrixEntry


def _entry(index: int = 1, arch: Architecture = Architecture.ARM64, **env: str) -> MatrixEntry:
    return MatrixEntry(index=index, architecture=arch, environment=env)


class TestCacheKeys:
    def test_key_includes_language_kind_and_arch(self, tmp_path: Path) -> None:
        store = CacheStore(tmp_path, language="rust", kinds=["cargo"])
        key = store.key_for(_entry(TARGET="aarch64-unknown-linux-gnu"))
        assert key.startswith("rust-cargo-arm64-")

    def test_different_env_gives_different_key(self, tmp_path: Path) -> None:
        store = CacheStore(tmp_path, language="rust", kinds=["cargo"])
        a = store.key_for(_entry(TARGET="aarch64-unknown-linux-gnu"))
        b = store.key_for(_entry(TARGET="x86_64-unknown-linux-musl"))
        assert a != b

    def test_key_ignores_entry_index(self, tmp_path: Path) -> None:
        store = CacheStore(tmp_path, language="rust", kinds=["cargo"])
        assert store.key_for(_entry(1, TARGET="x")) == store.key_for(_entry(5, TARGET="x"))


class TestCacheLifecycle:
    def test_disabled_store_does_nothing(self, tmp_path: Path) -> None:
        store = CacheStore(tmp_path / "cache", language="rust", kinds=[])
        assert store.enabled is False
        assert store.prepare(_entry()) is None
        assert store.record(_entry()) is None
        assert not (tmp_path / "cache").exists()

    def test_prepare_creates_directory(self, tmp_path: Path) -> None:
        store = CacheStore(tmp_path, language="rust", kinds=["cargo"])
        directory = store.prepare(_entry())
        assert directory is not None
        assert directory.is_dir()
        assert directory.parent == tmp_path

    def test_record_writes_manifest(self, tmp_path: Path) -> None:
        store = CacheStore(tmp_path, language="rust", kinds=["cargo"])
        entry = _entry(TARGET="aarch64-unknown-linux-gnu")
        store.prepare(entry)

        path = store.record(entry)
        assert path is not None
        assert path.name == MANIFEST_NAME

        manifest = store.load_manifest(entry)
        assert manifest is not None
        assert manifest["architecture"] == "arm64"
        assert manifest["environment"] == {"TARGET": "aarch64-unknown-linux-gnu"}
        assert manifest["key"] == store.key_for(entry)

    def test_missing_manifest_is_none(self, tmp_path: Path) -> None:
        store = CacheStore(tmp_path, language="rust", kinds=["cargo"])
        assert store.load_manifest(_entry()) is None
