# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Per-entry dependency caches.

Every matrix entry gets its own cache directory, keyed by language, cache
kind, architecture and a fingerprint of the entry's environment, so two
entries never write to the same place and no locking is needed. Hooks find
the directory through MATRIXCI_CACHE_DIR. The directory survives between
runs; that is the whole point of it.

After before_cache succeeds a manifest.json is written next to the cached
files recording which entry last populated it and when.
"""

import json
from datetime import datetime, timezone
from pathlib import Path

from matrixci.logging.logger import get_logger
from matrixci.pipeline.models import MatrixEntry
from matrixci.utils.filesystem import atomic_write
from matrixci.utils.hashing import fingerprint_mapping
from matrixci.utils.paths import ensure_directory

logger = get_logger(__name__)

MANIFEST_NAME = "manifest.json"


class CacheStore:
    """Hands out and records cache directories under one root."""

    def __init__(self, root: Path, language: str, kinds: list[str]) -> None:
        self._root = root
        self._language = language
        self._kinds = list(kinds)

    @property
    def enabled(self) -> bool:
        return bool(self._kinds)

    @property
    def root(self) -> Path:
        return self._root

    def key_for(self, entry: MatrixEntry) -> str:
        kinds = "+".join(sorted(self._kinds)) or "none"
        return "-".join([
            self._language,
            kinds,
            entry.architecture.value,
            fingerprint_mapping(entry.environment),
        ])

    def directory_for(self, entry: MatrixEntry) -> Path:
        return self._root / self.key_for(entry)

    def prepare(self, entry: MatrixEntry) -> Path | None:
        """Create the entry's cache directory. Returns None when caching is off."""
        if not self.enabled:
            return None
        directory = ensure_directory(self.directory_for(entry))
        logger.debug(
            "Cache prepared",
            extra={"entry": entry.entry_id, "key": self.key_for(entry), "path": str(directory)},
        )
        return directory

    def record(self, entry: MatrixEntry) -> Path | None:
        """Write the manifest for an entry whose before_cache stage succeeded."""
        if not self.enabled:
            return None
        manifest_path = self.directory_for(entry) / MANIFEST_NAME
        manifest = {
            "key": self.key_for(entry),
            "kinds": sorted(self._kinds),
            "architecture": entry.architecture.value,
            "environment": entry.environment,
            "written_at": datetime.now(tz=timezone.utc).isoformat(),
        }
        atomic_write(manifest_path, json.dumps(manifest, indent=2, sort_keys=True))
        return manifest_path

    def load_manifest(self, entry: MatrixEntry) -> dict[str, object] | None:
        manifest_path = self.directory_for(entry) / MANIFEST_NAME
        if not manifest_path.is_file():
            return None
        return json.loads(manifest_path.read_text(encoding="utf-8"))
