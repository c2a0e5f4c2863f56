"""Test helpers building image layers and docker save tar files in memory."""

import gzip
import hashlib
import io
import json
import tarfile
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from img2lambda.sources.models import SourceLayer


@dataclass
class Entry:
    """A tar entry to put into a test layer."""

    name: str
    content: bytes = b""
    type: bytes = tarfile.REGTYPE
    mode: int = 0o644
    linkname: str = ""


def file_entry(name: str, content: str | bytes, mode: int = 0o644) -> Entry:
    if isinstance(content, str):
        content = content.encode()
    return Entry(name=name, content=content, mode=mode)


def dir_entry(name: str) -> Entry:
    return Entry(name=name, type=tarfile.DIRTYPE, mode=0o755)


def symlink_entry(name: str, target: str) -> Entry:
    return Entry(name=name, type=tarfile.SYMTYPE, mode=0o777, linkname=target)


def make_tar(entries: list[Entry]) -> bytes:
    """Build an uncompressed tar archive."""
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w", format=tarfile.PAX_FORMAT) as tar:
        for entry in entries:
            info = tarfile.TarInfo(entry.name)
            info.type = entry.type
            info.mode = entry.mode
            info.mtime = 1600000000
            info.linkname = entry.linkname
            if entry.type in tarfile.REGULAR_TYPES:
                info.size = len(entry.content)
                tar.addfile(info, io.BytesIO(entry.content))
            else:
                tar.addfile(info)
    return buffer.getvalue()


def make_tar_gz(entries: list[Entry]) -> bytes:
    """Build a gzip-compressed tar archive."""
    return gzip.compress(make_tar(entries))


def source_layer(data: bytes, digest: Optional[str] = None) -> SourceLayer:
    """Wrap layer bytes as a source layer opening a fresh stream per call."""
    digest = digest or f"sha256:{hashlib.sha256(data).hexdigest()}"
    return SourceLayer(digest=digest, open_stream=lambda: io.BytesIO(data), size=len(data))


@dataclass
class FakeImageSource:
    """In-memory image source."""

    name: str = "test-image:latest"
    layers: list[SourceLayer] = field(default_factory=list)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        pass


def read_zip(path: Path) -> dict[str, bytes]:
    """Read every entry of a zip archive."""
    with zipfile.ZipFile(path) as archive:
        return {name: archive.read(name) for name in archive.namelist()}


def make_docker_save_tar(path: Path, layers: list[bytes], with_diff_ids: bool = True) -> list[str]:
    """Write a docker save tar file with the given layer tars.

    Returns:
        Digests of the uncompressed layers, in order
    """
    diff_ids = [f"sha256:{hashlib.sha256(layer).hexdigest()}" for layer in layers]
    layer_paths = [f"{diff_id.split(':', 1)[1]}/layer.tar" for diff_id in diff_ids]

    config = {
        "architecture": "amd64",
        "os": "linux",
        "rootfs": {"type": "layers", "diff_ids": diff_ids if with_diff_ids else []},
    }
    config_bytes = json.dumps(config).encode()
    config_path = f"{hashlib.sha256(config_bytes).hexdigest()}.json"

    manifest = [{"Config": config_path, "RepoTags": ["test/image:latest"], "Layers": layer_paths}]

    with tarfile.open(path, "w") as tar:
        files = [("manifest.json", json.dumps(manifest).encode()), (config_path, config_bytes)]
        files += list(zip(layer_paths, layers))
        for name, content in files:
            info = tarfile.TarInfo(name)
            info.size = len(content)
            tar.addfile(info, io.BytesIO(content))

    return diff_ids


# Layers of an image with opt/ content in three of four layers, the second
# one gzip-compressed
SCENARIO_LAYERS = [
    make_tar([file_entry("opt/file1", "hello world 1")]),
    make_tar_gz([file_entry("opt/hello/file2", "hello world 2")]),
    make_tar([file_entry("local/hello", "irrelevant")]),
    make_tar([file_entry("opt/file1", "hello world 4")]),
]
