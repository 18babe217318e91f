# src/storage/local_writer.py — v3
"""Local filesystem writer with create-new-or-replace-atomically semantics.

Every write goes to a temporary file in the destination directory and is then
renamed over the target, so a concurrent reader sees either the previous file
or the complete new one, never a partial write. Methods are blocking; async
callers run them in a worker thread.
"""

from __future__ import annotations

import contextlib
import os
import shutil
import tempfile
from pathlib import Path

TEMP_SUFFIX = ".tmp"


class LocalWriter:
    """Write outputs to the local filesystem."""

    def write(self, path: str | Path, content: bytes | str) -> Path:
        """Atomically create or replace a file, creating parent directories."""
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        data = content.encode("utf-8") if isinstance(content, str) else content

        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{target.name}.", suffix=TEMP_SUFFIX, dir=target.parent
        )
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, target)
        except BaseException:
            with contextlib.suppress(FileNotFoundError):
                os.unlink(tmp_name)
            raise
        return target

    def exists(self, path: str | Path) -> bool:
        return Path(path).is_file()

    def has_content(self, path: str | Path, data: bytes) -> bool:
        """True when path is a file holding exactly data."""
        target = Path(path)
        if not target.is_file():
            return False
        if target.stat().st_size != len(data):
            return False
        return target.read_bytes() == data

    def list_dir(self, path: str | Path) -> list[str]:
        """List directory contents, skipping in-flight temporary files."""
        p = Path(path)
        if not p.is_dir():
            return []
        return [
            entry.name
            for entry in sorted(p.iterdir())
            if not entry.name.endswith(TEMP_SUFFIX)
        ]

    def remove(self, path: str | Path) -> bool:
        """Delete a file or directory tree. Returns whether anything was removed."""
        p = Path(path)
        if p.is_dir() and not p.is_symlink():
            shutil.rmtree(p)
            return True
        if p.exists() or p.is_symlink():
            p.unlink()
            return True
        return False
