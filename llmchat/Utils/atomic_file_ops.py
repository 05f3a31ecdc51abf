"""
Atomic file operations utility module.

Writes go to a temporary file in the target directory which is then renamed
over the target, so the config file is either fully written or untouched.
"""

import os
import tempfile
from pathlib import Path
from typing import Union
from loguru import logger


def atomic_write_text(
    file_path: Union[str, Path],
    content: str,
    encoding: str = 'utf-8',
    mode: int = 0o600
) -> None:
    """
    Write text content to a file atomically.

    Args:
        file_path: Path to the target file
        content: Text content to write
        encoding: Text encoding (default: utf-8)
        mode: File permissions (default: 0o600, the config may name a keyring service)

    Raises:
        OSError: If the write or rename operation fails
    """
    file_path = Path(file_path)
    parent_dir = file_path.parent
    parent_dir.mkdir(parents=True, exist_ok=True)

    temp_path = None
    try:
        fd, temp_path = tempfile.mkstemp(
            dir=parent_dir,
            prefix=f".{file_path.name}.",
            suffix=".tmp",
            text=True
        )
        with os.fdopen(fd, 'w', encoding=encoding) as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())

        os.chmod(temp_path, mode)
        # os.replace is atomic on POSIX and best-effort on Windows
        os.replace(temp_path, str(file_path))

        logger.debug(f"Atomically wrote {len(content)} chars to {file_path}")

    except OSError as e:
        if temp_path and os.path.exists(temp_path):
            try:
                os.unlink(temp_path)
            except OSError:
                logger.warning(f"Could not remove temporary file {temp_path}")
        logger.error(f"Failed to atomically write to {file_path}: {e}")
        raise
