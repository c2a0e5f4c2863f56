"""Lazily created zip archives for Lambda layers and function packages."""

import logging
import shutil
import stat
import tarfile
import time
import zipfile
from pathlib import Path
from typing import BinaryIO, Optional

from ..exceptions import ArchiveCloseError, RepackError

logger = logging.getLogger(__name__)

# Earliest timestamp a zip entry can carry (1980-01-01T00:00:00Z)
ZIP_EPOCH = 315532800

COPY_BUFFER_SIZE = 1024 * 1024


def zip_info_for(name: str, member: tarfile.TarInfo) -> zipfile.ZipInfo:
    """Build a zip entry header from a tar entry, keeping mode and file type."""
    info = zipfile.ZipInfo(name, date_time=time.gmtime(max(member.mtime, ZIP_EPOCH))[:6])
    info.compress_type = zipfile.ZIP_DEFLATED
    info.create_system = 3  # unix, so external_attr carries st_mode

    if member.issym():
        file_type = stat.S_IFLNK
    elif member.ischr():
        file_type = stat.S_IFCHR
    elif member.isblk():
        file_type = stat.S_IFBLK
    elif member.isfifo():
        file_type = stat.S_IFIFO
    else:
        file_type = stat.S_IFREG
    info.external_attr = (file_type | (member.mode & 0o7777)) << 16
    return info


class ZipArchiveWriter:
    """Zip archive that is only created on disk when first needed.

    ``ensure_open`` is the single place the backing file and zip stream are
    created. ``close`` closes the zip stream before the file, collects every
    failure and is a no-op when nothing was opened.
    """

    def __init__(self, destination: Path) -> None:
        """Initialize archive writer.

        Args:
            destination: Path of the zip file to create
        """
        self.destination = Path(destination)
        self.entry_count = 0
        self._file: Optional[BinaryIO] = None
        self._zip: Optional[zipfile.ZipFile] = None
        self._opened = False
        self._closed = False

    def __enter__(self) -> "ZipArchiveWriter":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        try:
            self.close()
        except ArchiveCloseError as close_error:
            if exc_val is None:
                raise
            raise ArchiveCloseError(
                str(self.destination), close_error.errors, original=exc_val
            ) from exc_val

    @property
    def created(self) -> bool:
        """True if the archive file was created."""
        return self._opened

    def ensure_open(self) -> zipfile.ZipFile:
        """Create the archive on first call and return its zip handle.

        Raises:
            RepackError: If the file cannot be created
            ValueError: If the writer was already closed
        """
        if self._zip is not None:
            return self._zip
        if self._closed:
            raise ValueError(f"Archive {self.destination} is already closed")

        logger.debug(f"Creating archive {self.destination}")
        try:
            self._file = open(self.destination, "wb")
        except OSError as e:
            raise RepackError(f"creating {self.destination}: {e}") from e
        self._opened = True
        try:
            self._zip = zipfile.ZipFile(self._file, "w", compression=zipfile.ZIP_DEFLATED)
        except BaseException:
            self._file.close()
            self._file = None
            raise
        return self._zip

    def write(self, name: str, member: tarfile.TarInfo, body: Optional[BinaryIO]) -> None:
        """Write one tar entry into the archive under a new name.

        Args:
            name: Path of the entry inside the zip archive
            member: Tar entry supplying mode, timestamp and link target
            body: Readable content for regular files, None otherwise
        """
        archive = self.ensure_open()
        info = zip_info_for(name, member)

        if member.issym():
            archive.writestr(info, member.linkname)
        elif body is None:
            archive.writestr(info, b"")
        else:
            info.file_size = member.size
            with archive.open(info, "w") as target:
                shutil.copyfileobj(body, target, COPY_BUFFER_SIZE)

        self.entry_count += 1
        logger.debug(f"Wrote {name} to {self.destination}")

    def close(self) -> None:
        """Flush and close the zip stream, then the backing file.

        Raises:
            ArchiveCloseError: If closing the zip stream or the file failed
        """
        errors: list[BaseException] = []

        if self._zip is not None:
            try:
                self._zip.close()
            except Exception as e:
                errors.append(e)
            self._zip = None

        if self._file is not None:
            try:
                self._file.close()
            except Exception as e:
                errors.append(e)
            self._file = None

        self._closed = True

        if errors:
            raise ArchiveCloseError(str(self.destination), errors)
