# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""Hashing helpers used to derive stable cache keys."""

import hashlib
import json
from collections.abc import Mapping


def compute_sha256_bytes(data: bytes) -> str:
    """Return the lowercase hex SHA256 digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def fingerprint_mapping(values: Mapping[str, str], length: int = 12) -> str:
    """
    Short, order-independent fingerprint of a string mapping.

    Keys are sorted before hashing so {"A": "1", "B": "2"} and
    {"B": "2", "A": "1"} give the same fingerprint.
    """
    if length < 1:
        raise ValueError(f"Fingerprint length must be >= 1, got {length}")
    canonical = json.dumps(dict(values), sort_keys=True, separators=(",", ":"))
    return compute_sha256_bytes(canonical.encode("utf-8"))[:length]
