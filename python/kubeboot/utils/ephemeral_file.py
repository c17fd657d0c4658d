"""
kubeboot/utils/ephemeral_file.py

Async context manager for ephemeral files in `/dev/shm`, used to hold SSH private
keys and known_hosts for exactly the lifetime of one ssh invocation.
"""

import os
import tempfile
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import aiofiles


@asynccontextmanager
async def ephemeral_file(
    file_name: str,
    *,
    content: Optional[str] = None,
    mode: int = 0o600,
    prefix: str = "ephemeral-",
    parent_dir: str = "/dev/shm",
) -> AsyncGenerator[str, None]:
    """
    Create a private directory under `parent_dir`, yield a path inside it, and
    remove both on exit.

    Args:
        file_name: Name of the file inside the ephemeral directory.
        content: If given, written to the file before yielding.
        mode: Permissions applied after writing `content`.
        prefix: Prefix for the ephemeral directory name.
        parent_dir: Where the directory is created. Falls back to the system temp
            dir when `/dev/shm` is unavailable (e.g. macOS).

    Yields:
        The ephemeral file path.
    """
    if not os.path.isdir(parent_dir):
        parent_dir = tempfile.gettempdir()

    ephemeral_dir = tempfile.mkdtemp(dir=parent_dir, prefix=prefix)
    ephemeral_path = os.path.join(ephemeral_dir, file_name)

    try:
        if content is not None:
            async with aiofiles.open(ephemeral_path, "w", encoding="utf-8") as fh:
                await fh.write(content)
            os.chmod(ephemeral_path, mode)
        yield ephemeral_path

    finally:
        for item in os.listdir(ephemeral_dir):
            item_path = os.path.join(ephemeral_dir, item)
            if os.path.isfile(item_path) or os.path.islink(item_path):
                os.remove(item_path)
        os.rmdir(ephemeral_dir)
