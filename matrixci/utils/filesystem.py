# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Safe filesystem operations for matrixci.

Reports and cache manifests are read by later runs (and by people poking at
a red build), so they must never be left half-written. Writes go to a temp
file in the target directory and are renamed into place; rename on the same
filesystem is atomic on POSIX.
"""

import tempfile
from pathlib import Path


def atomic_write(target_path: Path, content: str, encoding: str = "utf-8") -> None:
    """
    Write content to a file atomically.

    If anything goes wrong during the write (disk full, permissions, crash),
    the target file is never touched: you either get the full new content or
    the old content.

    Args:
        target_path: Where the final file should end up.
        content: The string content to write.
        encoding: Text encoding to use.

    Raises:
        OSError: If the write or rename fails.
    """
    target_path.parent.mkdir(parents=True, exist_ok=True)

    # delete=False so the file survives closing and can be renamed.
    temp_fd = tempfile.NamedTemporaryFile(
        mode="w",
        encoding=encoding,
        dir=str(target_path.parent),
        prefix=".matrixci_tmp_",
        suffix=".tmp",
        delete=False,
    )
    temp_path = Path(temp_fd.name)

    try:
        temp_fd.write(content)
        temp_fd.flush()
        temp_fd.close()
        temp_path.replace(target_path)
    except BaseException:
        temp_fd.close()
        if temp_path.exists():
            temp_path.unlink()
        raise
