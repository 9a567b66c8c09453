# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
The project cache store: one JSON document, read and rewritten whole.

Every operation here loads the full document from disk, applies at most
one change and writes the full document back (through atomic_write, so a
crash never leaves half a document). Nothing is cached in memory between
calls: two consecutive get_entry calls read the file twice.

There is no locking. Two erunner processes mutating the same project at
the same time can lose one of the updates; a project is assumed to have a
single writer at a time.
"""

import json
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from erunner.cache.exceptions import CacheCorruptedError, CacheNotInitializedError
from erunner.cache.models import FileCache, Registry
from erunner.logging.logger import get_logger
from erunner.utils.filesystem import atomic_write, safe_read
from erunner.utils.paths import DEFAULT_CACHE_FILE

logger = get_logger(__name__)


class CacheStore:
    """Read/write access to one project's erunner_cache.json."""

    def __init__(self, cache_path: Path) -> None:
        self._path = cache_path

    @classmethod
    def for_project(cls, project_dir: Path, cache_file: str = DEFAULT_CACHE_FILE) -> "CacheStore":
        return cls(project_dir / cache_file)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def project_dir(self) -> Path:
        return self._path.parent

    def is_initialized(self) -> bool:
        return self._path.is_file()

    def create(self, registry: Registry) -> bool:
        """
        Write the initial document if the project has none yet.

        Returns:
            True if a document was written, False if one already existed
            (it is left untouched).
        """
        if self.is_initialized():
            return False
        self._write(registry)
        logger.info("Cache document created", extra={"path": str(self._path)})
        return True

    def get_config(self) -> Registry:
        """
        Load the whole document.

        Raises:
            CacheNotInitializedError: The document does not exist.
            CacheCorruptedError: The document is not valid JSON or fails validation.
            OSError: The document exists but cannot be read.
        """
        return self._read()

    def put_config(self, registry: Registry) -> None:
        """
        Replace the whole document.

        Raises:
            CacheNotInitializedError: There is no document to replace.
        """
        self._require_initialized()
        self._write(registry)

    def get_entry(self, filename: str) -> Optional[FileCache]:
        """The FileCache for `filename`, or None if the file isn't tracked."""
        return self._read().entries.get(filename)

    def put_entry(self, filename: str, file_cache: FileCache) -> None:
        """Insert or overwrite the entry for `filename`."""
        registry = self._read()
        self._write(registry.with_entry(filename, file_cache))
        logger.debug(
            "Cache entry written",
            extra={
                "file": filename,
                "source_hash": file_cache.source_hash,
                "tests": len(file_cache.tests),
            },
        )

    def _require_initialized(self) -> None:
        if not self.is_initialized():
            raise CacheNotInitializedError(
                f"Cache file {self._path} not found. Run `erunner init` in the project directory."
            )

    def _read(self) -> Registry:
        self._require_initialized()

        raw_text = safe_read(self._path)
        try:
            raw = json.loads(raw_text)
        except json.JSONDecodeError as err:
            raise CacheCorruptedError(f"Cache file {self._path} is not valid JSON: {err}") from err

        try:
            return Registry.model_validate(raw)
        except ValidationError as err:
            raise CacheCorruptedError(
                f"Cache file {self._path} failed validation:\n{err}"
            ) from err

    def _write(self, registry: Registry) -> None:
        content = json.dumps(registry.to_document(), indent=2)
        atomic_write(self._path, content + "\n")
