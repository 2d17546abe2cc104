"""
Local staging of uploaded PDFs pending relay.

The staging directory is the only mutable state shared between requests and
the housekeeping sweeper. Concurrent writers never collide because every
staged file gets a unique generated name, and every delete tolerates the
file already being gone, so no locking is needed.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional, Union

from fastapi import UploadFile

from .errors import InternalStagingFailure, PayloadTooLarge, UnsupportedMediaType
from .utils import ensure_directory, generate_staged_name, original_name_from_staged

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"
CHUNK_SIZE = 1024 * 1024


@dataclass
class StagedFile:
    """
    A fully written upload waiting in the staging directory.

    Attributes:
        generated_name: Unique on-disk name (timestamp, token, sanitized name)
        original_name: Filename as sent by the client
        path: Absolute path of the staged file
        size_bytes: Number of bytes written
        created_at: When staging finished (UTC), or the file mtime when listed
    """

    generated_name: str
    original_name: str
    path: Path
    size_bytes: int
    created_at: datetime


def declared_content_type(upload: UploadFile) -> str:
    return (upload.content_type or "").split(";")[0].strip().lower()


class StagingStore:
    """
    Manages the directory of staged uploads.

    Attributes:
        root: Absolute path of the staging directory
        max_size_mb: Per-file upload limit in mebibytes
    """

    def __init__(self, root: Path, max_size_mb: int) -> None:
        self.root = ensure_directory(Path(root)).resolve()
        self.max_size_mb = max_size_mb
        self.max_size_bytes = max_size_mb * 1024 * 1024

    def check(self, upload: UploadFile) -> str:
        """
        Validate an upload before anything is written.

        Returns:
            The client-supplied filename (or a placeholder)

        Raises:
            UnsupportedMediaType: If the declared content type is not PDF
            PayloadTooLarge: If the declared size already exceeds the limit
        """
        filename = upload.filename or "document.pdf"
        content_type = declared_content_type(upload)
        if content_type != PDF_CONTENT_TYPE:
            raise UnsupportedMediaType(filename, upload.content_type)
        if upload.size is not None and upload.size > self.max_size_bytes:
            raise PayloadTooLarge(self.max_size_mb)
        return filename

    async def accept(self, upload: UploadFile) -> StagedFile:
        """
        Validate an upload and stream it into the staging directory.

        The file is only returned once every byte has been written. A file
        that turns out to be too large, or whose write is interrupted (disk
        error, client disconnect), is removed before the error propagates.

        Raises:
            UnsupportedMediaType: If the declared content type is not PDF
            PayloadTooLarge: If the upload exceeds the configured limit
            InternalStagingFailure: If the file cannot be written
        """
        original_name = self.check(upload)
        generated_name = generate_staged_name(original_name)
        destination = self.root / generated_name

        size = 0
        try:
            with destination.open("wb") as buffer:
                while chunk := await upload.read(CHUNK_SIZE):
                    size += len(chunk)
                    if size > self.max_size_bytes:
                        raise PayloadTooLarge(self.max_size_mb)
                    await asyncio.to_thread(buffer.write, chunk)
        except OSError as exc:
            self._discard_partial(destination)
            raise InternalStagingFailure(f"Failed to stage {original_name}: {exc}") from exc
        except BaseException:
            self._discard_partial(destination)
            raise
        finally:
            await upload.close()

        logger.info(f"Staged {original_name} as {generated_name} ({size} bytes)")
        return StagedFile(
            generated_name=generated_name,
            original_name=original_name,
            path=destination,
            size_bytes=size,
            created_at=datetime.now(timezone.utc),
        )

    def _discard_partial(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning(f"Could not remove partial upload {path.name}: {exc}")

    def remove(self, path: Union[Path, str]) -> bool:
        """
        Delete a staged file.

        Deleting a file that is already gone is not an error: handler cleanup
        and the sweeper may race for the same file.

        Returns:
            True if this call removed the file, False if it was already absent

        Raises:
            InternalStagingFailure: If the file exists but cannot be deleted
        """
        try:
            Path(path).unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise InternalStagingFailure(f"Failed to delete {Path(path).name}: {exc}") from exc
        return True

    def discard(self, files: Iterable[StagedFile]) -> None:
        """Best-effort removal of staged files; failures are logged only."""
        for staged in files:
            try:
                if self.remove(staged.path):
                    logger.debug(f"Removed staged file {staged.generated_name}")
            except InternalStagingFailure as exc:
                logger.warning(f"Cleanup failed for {staged.generated_name}: {exc}")

    def list_files(self) -> List[StagedFile]:
        """
        List staged files, oldest first.

        Entries that disappear or cannot be inspected while listing are
        skipped.

        Raises:
            InternalStagingFailure: If the staging directory cannot be read
        """
        try:
            entries = list(self.root.iterdir())
        except OSError as exc:
            raise InternalStagingFailure(f"Cannot read staging directory: {exc}") from exc

        staged: List[StagedFile] = []
        for entry in entries:
            try:
                if not entry.is_file():
                    continue
                stat = entry.stat()
            except OSError as exc:
                logger.debug(f"Skipping {entry.name}: {exc}")
                continue
            staged.append(
                StagedFile(
                    generated_name=entry.name,
                    original_name=original_name_from_staged(entry.name),
                    path=entry,
                    size_bytes=stat.st_size,
                    created_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
                )
            )
        staged.sort(key=lambda item: item.created_at)
        return staged

    def count_files(self) -> int:
        """
        Count entries waiting in the staging directory.

        Uses directory entry types only, so a file whose metadata cannot be
        read is still counted.

        Raises:
            InternalStagingFailure: If the staging directory cannot be read
        """
        try:
            with os.scandir(self.root) as entries:
                return sum(1 for entry in entries if not entry.is_dir(follow_symlinks=False))
        except OSError as exc:
            raise InternalStagingFailure(f"Cannot read staging directory: {exc}") from exc

    def total_size_bytes(self) -> int:
        return sum(item.size_bytes for item in self.list_files())

    def sweep(self, max_age_seconds: float, now: Optional[float] = None) -> List[str]:
        """
        Delete staged files whose modification time is older than max_age.

        A failure on one entry is logged and the sweep moves on to the next.

        Args:
            max_age_seconds: Age beyond which a file is removed
            now: Reference epoch time (default: current time)

        Returns:
            Names of the files removed by this sweep
        """
        now = time.time() if now is None else now
        try:
            entries = list(self.root.iterdir())
        except OSError as exc:
            logger.error(f"Sweep could not read {self.root}: {exc}")
            return []

        removed: List[str] = []
        for entry in entries:
            try:
                if not entry.is_file():
                    continue
                age = now - entry.stat().st_mtime
            except OSError as exc:
                logger.warning(f"Sweep could not stat {entry.name}: {exc}")
                continue
            if age <= max_age_seconds:
                continue
            try:
                if self.remove(entry):
                    removed.append(entry.name)
                    logger.info(f"Swept stale staged file {entry.name} ({age:.0f}s old)")
            except InternalStagingFailure as exc:
                logger.warning(f"Sweep could not delete {entry.name}: {exc}")
        return removed
