# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Path utilities for matrixci.

Relative paths coming from the pipeline file or CLI are anchored at the
working directory of the pipeline, never at the caller's cwd.
"""

from pathlib import Path


def ensure_directory(path: Path) -> Path:
    """Create a directory (and parents) if it doesn't exist. Returns the path for chaining."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def resolve_under(base: Path, path: str | Path) -> Path:
    """
    Resolve `path` relative to `base` unless it is already absolute.

    Args:
        base: Directory that relative paths are anchored to.
        path: The configured path.

    Returns:
        An absolute path.
    """
    candidate = Path(path).expanduser()
    if candidate.is_absolute():
        return candidate
    return (base / candidate).resolve()
