"""Image source exporting images from a local Docker Engine."""

import logging
import os
import tempfile
from pathlib import Path
from typing import Optional
from urllib.parse import quote, urlsplit

import aiohttp

from ..exceptions import ImageSourceError, ValidationError
from .archive import DockerArchiveSource
from .models import SourceLayer
from .session import create_session, download_to_file

logger = logging.getLogger(__name__)

DEFAULT_DOCKER_HOST = "unix:///var/run/docker.sock"

# TLS port registered for the Docker Engine API
DOCKER_TLS_PORT = 2376


def resolve_docker_host(docker_host: Optional[str] = None) -> tuple[str, Optional[aiohttp.BaseConnector]]:
    """Map a DOCKER_HOST value to a base URL and connector.

    Args:
        docker_host: DOCKER_HOST value, read from the environment if None

    Returns:
        (base_url, connector) where connector is a unix socket connector for
        unix:// hosts and None for tcp:// hosts

    Raises:
        ValidationError: If the scheme is not supported
    """
    docker_host = docker_host or os.getenv("DOCKER_HOST") or DEFAULT_DOCKER_HOST
    parts = urlsplit(docker_host)

    if parts.scheme == "unix":
        return "http://localhost", aiohttp.UnixConnector(path=parts.path)

    if parts.scheme == "tcp":
        scheme = "https" if parts.port == DOCKER_TLS_PORT else "http"
        return f"{scheme}://{parts.netloc}", None

    if parts.scheme in ("http", "https"):
        return f"{parts.scheme}://{parts.netloc}", None

    raise ValidationError(f"Unsupported DOCKER_HOST: {docker_host}")


class DockerDaemonSource:
    """Async image source for images stored in a local Docker Engine.

    The image is exported with the Engine API into a temporary docker save
    tar file, which is then read like a docker-archive image.
    """

    def __init__(
        self,
        image_name: str,
        docker_host: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        """Initialize daemon source.

        Args:
            image_name: Image name, e.g. "my-image:latest"
            docker_host: Docker Engine endpoint, DOCKER_HOST if None
            timeout: Export timeout in seconds, unlimited if None
        """
        if not image_name:
            raise ValidationError("Image name is required")
        self.name = image_name
        self.docker_host = docker_host
        self.timeout = timeout
        self._tmp_dir: Optional[tempfile.TemporaryDirectory] = None
        self._archive: Optional[DockerArchiveSource] = None

    async def __aenter__(self) -> "DockerDaemonSource":
        """Enter async context manager."""
        self._tmp_dir = tempfile.TemporaryDirectory(prefix="img2lambda-")
        try:
            tar_path = Path(self._tmp_dir.name) / "image.tar"
            await self.export_image(tar_path)
            self._archive = DockerArchiveSource(tar_path, name=self.name)
            await self._archive.__aenter__()
        except BaseException:
            self._tmp_dir.cleanup()
            self._tmp_dir = None
            raise
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context manager."""
        await self.close()

    async def close(self) -> None:
        """Close the exported archive and remove it."""
        if self._archive:
            await self._archive.close()
            self._archive = None
        if self._tmp_dir:
            self._tmp_dir.cleanup()
            self._tmp_dir = None

    @property
    def layers(self) -> list[SourceLayer]:
        if not self._archive:
            raise ImageSourceError("Image source not opened")
        return self._archive.layers

    async def export_image(self, destination: Path) -> int:
        """Export the image from the Docker Engine as a docker save tar file.

        Returns:
            Size of the exported tar file

        Raises:
            ImageSourceError: If the Engine cannot be reached or the image does not exist
        """
        base_url, connector = resolve_docker_host(self.docker_host)
        url = f"{base_url}/images/{quote(self.name, safe='/:@')}/get"
        logger.info(f"Exporting image {self.name} from Docker Engine at {base_url}")

        session = await create_session(connector=connector, timeout=self.timeout)
        try:
            return await download_to_file(session, url, destination)
        except ImageSourceError as e:
            raise ImageSourceError(f"Failed to export image {self.name} from Docker: {e}") from e
        finally:
            await session.close()
