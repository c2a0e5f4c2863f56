"""Image source reading a docker save tar file."""

import asyncio
import json
import logging
import tarfile
from pathlib import Path
from typing import Any, BinaryIO, Optional

from ..exceptions import ImageSourceError, ValidationError
from ..utils.digest import calculate_stream_digest
from ..utils.validator import read_docker_tar_manifest
from .models import SourceLayer

logger = logging.getLogger(__name__)


def get_diff_ids(config_data: dict[str, Any]) -> list[str]:
    """Extract rootfs diff_ids from image config."""
    rootfs = config_data.get("rootfs", {}) or {}
    return rootfs.get("diff_ids", []) or []


class DockerArchiveSource:
    """Async image source for docker save tar files.

    Layer digests are the image config's diff IDs, which are the digests of
    the uncompressed layer tars. Layers without a diff ID are hashed.
    """

    def __init__(self, tar_path: str | Path, name: Optional[str] = None) -> None:
        """Initialize archive source.

        Args:
            tar_path: Path to the tar file created by docker save
            name: Image name used in log messages
        """
        self.tar_path = Path(tar_path)
        if not self.tar_path.exists():
            raise ValidationError(f"Tar file not found: {tar_path}")
        self.name = name or str(self.tar_path)
        self._tar_file: Optional[tarfile.TarFile] = None
        self._layers: list[SourceLayer] = []

    async def __aenter__(self) -> "DockerArchiveSource":
        """Enter async context manager."""
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self.open)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context manager."""
        await self.close()

    async def close(self) -> None:
        """Close the tar file."""
        if self._tar_file:
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, self._tar_file.close)
            self._tar_file = None

    @property
    def layers(self) -> list[SourceLayer]:
        return self._layers

    def open(self) -> None:
        """Open the tar file and read its layer list (blocking).

        Raises:
            ValidationError: If the tar file is not a docker save archive
            ImageSourceError: If the tar file cannot be read
        """
        try:
            self._tar_file = tarfile.open(self.tar_path, "r")
        except (tarfile.TarError, OSError) as e:
            raise ValidationError(f"Invalid Docker tar file {self.tar_path}: {e}") from e

        try:
            manifest = read_docker_tar_manifest(self._tar_file)[0]
            config = self._read_config(manifest["Config"])
            self._layers = self._build_layers(manifest["Layers"], get_diff_ids(config))
        except BaseException:
            self._tar_file.close()
            self._tar_file = None
            raise

        logger.debug(f"Read {len(self._layers)} layers from {self.tar_path}")

    def _read_config(self, config_path: str) -> dict[str, Any]:
        try:
            config = json.loads(self._extract_file_content(config_path))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ValidationError(f"Cannot read config file {config_path}: {e}") from e
        if not isinstance(config, dict):
            raise ValidationError(f"Cannot read config file: {config_path}")
        return config

    def _build_layers(self, layer_paths: list[str], diff_ids: list[str]) -> list[SourceLayer]:
        if len(diff_ids) != len(layer_paths):
            logger.debug(f"Image config has {len(diff_ids)} diff IDs for {len(layer_paths)} layers, hashing layers")
            diff_ids = []

        layers = []
        for index, layer_path in enumerate(layer_paths):
            if diff_ids:
                digest = diff_ids[index]
            else:
                with self._open_member(layer_path) as stream:
                    digest = calculate_stream_digest(stream)

            member = self._tar_file.getmember(layer_path)
            layers.append(
                SourceLayer(
                    digest=digest,
                    open_stream=lambda layer_path=layer_path: self._open_member(layer_path),
                    size=member.size,
                )
            )
        return layers

    def _open_member(self, filename: str) -> BinaryIO:
        if not self._tar_file:
            raise ImageSourceError("Tar file not opened")

        try:
            file_obj = self._tar_file.extractfile(filename)
        except (KeyError, tarfile.TarError) as e:
            raise ImageSourceError(f"Failed to extract {filename}: {e}") from e
        if file_obj is None:
            raise ImageSourceError(f"Could not extract {filename}")
        return file_obj

    def _extract_file_content(self, filename: str) -> bytes:
        with self._open_member(filename) as file_obj:
            try:
                return file_obj.read()
            except (tarfile.TarError, OSError) as e:
                raise ImageSourceError(f"Failed to read {filename}: {e}") from e
