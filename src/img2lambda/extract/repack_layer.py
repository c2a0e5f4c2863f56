"""Repackaging of a single image layer into Lambda zip archives."""

import enum
import gzip
import logging
import shutil
import tarfile
import tempfile
import zlib
from contextlib import ExitStack
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Callable, Optional

from ..exceptions import LayerDecodeError, LayerStreamError, RepackError
from .archive import ZipArchiveWriter
from .classifier import Destination, classify

logger = logging.getLogger(__name__)

# Errors raised by tarfile, gzip and zlib while reading a layer stream
READ_ERRORS = (tarfile.TarError, OSError, EOFError, zlib.error)

SPOOL_MAX_SIZE = 16 * 1024 * 1024


class LayerTarInfo(tarfile.TarInfo):
    """Tar header that reports damage past the first member.

    ``tarfile`` treats a truncated or invalid header after the first
    member as the end of the archive. Raising ``ReadError`` instead makes
    the damage surface while iterating.
    """

    @classmethod
    def fromtarfile(cls, archive):
        try:
            return super().fromtarfile(archive)
        except tarfile.EmptyHeaderError as e:
            # A stream ending on a block boundary has no more members
            raise tarfile.EOFHeaderError(str(e)) from None
        except tarfile.EOFHeaderError:
            trailer = archive.fileobj.read(tarfile.BLOCKSIZE)
            if trailer.strip(tarfile.NUL):
                raise tarfile.ReadError("invalid header after end-of-archive block") from None
            raise
        except (tarfile.TruncatedHeaderError, tarfile.InvalidHeaderError) as e:
            raise tarfile.ReadError(str(e)) from None


class LayerFormat(enum.Enum):
    TAR = "tar"
    TAR_GZIP = "tar.gz"


@dataclass
class LayerRepackResult:
    """Outcome of repacking one image layer."""

    created: bool = False
    function_file_count: int = 0


@dataclass
class RepackAttempt:
    """Outcome of reading a layer in one format.

    ``decode_error`` is set when the stream could not be opened in that
    format, which is the only failure another format may recover from.
    """

    result: Optional[LayerRepackResult] = None
    decode_error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.decode_error is None


def open_layer_archive(
    stream: BinaryIO, layer_format: LayerFormat, stack: ExitStack
) -> tarfile.TarFile | str:
    """Open a layer stream as a streaming tar archive.

    Returns:
        The opened archive, or a message describing why the stream is not in
        the requested format
    """
    contents: BinaryIO = stream

    if layer_format is LayerFormat.TAR_GZIP:
        gzip_reader = stack.enter_context(gzip.GzipFile(fileobj=stream, mode="rb"))
        try:
            # Reading ahead parses the gzip header
            gzip_reader.peek(1)
        except gzip.BadGzipFile as e:
            return f"could not create gzip reader for layer: {e}"
        except READ_ERRORS as e:
            raise LayerStreamError(f"reading gzip layer: {e}") from e
        contents = gzip_reader

    try:
        archive = tarfile.open(fileobj=contents, mode="r|", tarinfo=LayerTarInfo)
    except READ_ERRORS as e:
        return f"opening layer tar: {e}"

    return stack.enter_context(archive)


def open_entry_body(
    archive: tarfile.TarFile, member: tarfile.TarInfo, reusable: bool, stack: ExitStack
) -> Optional[BinaryIO]:
    """Open the content of a regular file entry.

    A streamed member can only be read once, so content needed by more than
    one archive is spooled first.
    """
    if not member.isreg():
        return None

    body = archive.extractfile(member)
    if not reusable:
        return body

    spool = stack.enter_context(tempfile.SpooledTemporaryFile(max_size=SPOOL_MAX_SIZE))
    shutil.copyfileobj(body, spool)
    return spool


def repack_entries(
    archive: tarfile.TarFile,
    layer_writer: ZipArchiveWriter,
    function_writer: ZipArchiveWriter,
) -> int:
    """Copy matching entries of an open layer archive into the zip writers.

    Returns:
        Number of entries written to the function package

    Raises:
        LayerStreamError: If the layer is truncated or corrupt
        RepackError: If an entry cannot be repacked
    """
    function_file_count = 0
    members = iter(archive)

    while True:
        try:
            member = next(members)
        except StopIteration:
            break
        except READ_ERRORS as e:
            raise LayerStreamError(f"opening next file in layer tar: {e}") from e

        classification = classify(member)
        if not classification.is_relevant:
            continue

        reusable = len(classification.targets) > 1
        try:
            with ExitStack() as entry_stack:
                body = open_entry_body(archive, member, reusable, entry_stack)
                for destination, name in classification.targets.items():
                    if reusable and body is not None:
                        body.seek(0)
                    if destination is Destination.LAYER:
                        layer_writer.write(name, member, body)
                    else:
                        function_writer.write(name, member, body)
                        function_file_count += 1
        except RepackError:
            raise
        except READ_ERRORS as e:
            raise LayerStreamError(f"walking {member.name} in layer tar: {e}") from e

    return function_file_count


def attempt_repack(
    stream: BinaryIO,
    layer_format: LayerFormat,
    output_path: Path,
    function_writer: ZipArchiveWriter,
) -> RepackAttempt:
    """Read a layer stream in one format and repack its entries."""
    with ExitStack() as stack:
        archive = open_layer_archive(stream, layer_format, stack)
        if isinstance(archive, str):
            return RepackAttempt(decode_error=archive)

        with ZipArchiveWriter(output_path) as layer_writer:
            function_file_count = repack_entries(archive, layer_writer, function_writer)

        return RepackAttempt(
            result=LayerRepackResult(
                created=layer_writer.created,
                function_file_count=function_file_count,
            )
        )


def repack_layer(
    open_stream: Callable[[], BinaryIO],
    output_path: Path,
    function_writer: ZipArchiveWriter,
) -> LayerRepackResult:
    """Convert an image layer archive (tar or tar.gz) into a Lambda layer zip.

    Only files under opt/ go into the layer archive, which is written only if
    at least one such file exists. Files under var/task/ go into the shared
    function package.

    Args:
        open_stream: Returns a fresh byte stream of the layer on every call
        output_path: Where to create the Lambda layer zip
        function_writer: Shared function package archive

    Returns:
        Whether the layer archive was created and how many function files
        were written

    Raises:
        LayerDecodeError: If the layer is neither a tar nor a gzip-compressed tar
        LayerStreamError: If the layer is truncated or corrupt
        RepackError: If an entry cannot be repacked
    """
    with open_stream() as stream:
        tar_attempt = attempt_repack(stream, LayerFormat.TAR, output_path, function_writer)
    if tar_attempt.succeeded:
        return tar_attempt.result

    logger.debug(f"Layer is not a plain tar ({tar_attempt.decode_error}), retrying as tar.gz")

    with open_stream() as stream:
        gzip_attempt = attempt_repack(stream, LayerFormat.TAR_GZIP, output_path, function_writer)
    if gzip_attempt.succeeded:
        return gzip_attempt.result

    raise LayerDecodeError(
        "could not read layer with tar nor tar.gz: "
        f"{gzip_attempt.decode_error}, {tar_attempt.decode_error}"
    )
