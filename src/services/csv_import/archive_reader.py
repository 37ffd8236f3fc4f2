"""
Zip archive reader for media uploads.
"""
from __future__ import annotations

import io
import logging
import zipfile
from typing import List

from src.core.exceptions import ExceptionFactory

from .models import ArchiveEntry

logger = logging.getLogger(__name__)


class ZipArchiveReader:
    """Legge un archivio zip in memoria e ne espone le voci nell'ordine dell'archivio"""

    def __init__(self, archive_bytes: bytes):
        try:
            self._archive = zipfile.ZipFile(io.BytesIO(archive_bytes), "r")
        except (zipfile.BadZipFile, ValueError) as e:
            logger.error(f"Failed to open zip archive: {e}")
            raise ExceptionFactory.invalid_archive(str(e))

    def entries(self) -> List[ArchiveEntry]:
        return [
            ArchiveEntry(
                path=info.filename,
                is_directory=info.is_dir(),
                get_bytes=self._reader(info.filename)
            )
            for info in self._archive.infolist()
        ]

    def _reader(self, name: str):
        return lambda: self._archive.read(name)

    def close(self) -> None:
        self._archive.close()

    def __enter__(self) -> "ZipArchiveReader":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()
