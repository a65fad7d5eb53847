"""Scoped temporary files for uploaded and encoded images.

Every file created here is removed when its ``with`` block exits,
whether the block completes or raises.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, BinaryIO

from facefinder.errors import StorageError

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger(__name__)

COPY_CHUNK_SIZE: int = 1024 * 1024


@contextmanager
def scoped_temp_file(
    prefix: str = "image",
    suffix: str = "",
    directory: str | None = None,
) -> Iterator[Path]:
    """Create a uniquely named empty file and remove it on exit."""
    try:
        fd, name = tempfile.mkstemp(prefix=prefix, suffix=suffix, dir=directory)
    except OSError as exc:
        raise StorageError("Unable to create temp file") from exc
    os.close(fd)

    path = Path(name)
    try:
        yield path
    finally:
        path.unlink(missing_ok=True)
        logger.debug("Removed temp file %s", path)


@contextmanager
def persist_stream(stream: BinaryIO, directory: str | None = None) -> Iterator[Path]:
    """Copy an upload stream into a scoped temp file and yield its path."""
    with scoped_temp_file(prefix="image", directory=directory) as path:
        try:
            with path.open("wb") as out:
                shutil.copyfileobj(stream, out, COPY_CHUNK_SIZE)
        except OSError as exc:
            raise StorageError("Unable to copy file to tmp folder") from exc
        yield path
