"""Image source pulling layers from a Docker Registry API v2."""

import logging
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import aiohttp

from ..exceptions import ImageSourceError, ValidationError
from ..utils.digest import validate_digest
from .models import SourceLayer
from .session import create_session, download_to_file

logger = logging.getLogger(__name__)

MANIFEST_V2 = "application/vnd.docker.distribution.manifest.v2+json"
MANIFEST_LIST_V2 = "application/vnd.docker.distribution.manifest.list.v2+json"
OCI_MANIFEST = "application/vnd.oci.image.manifest.v1+json"
OCI_INDEX = "application/vnd.oci.image.index.v1+json"

MANIFEST_ACCEPT = ", ".join([MANIFEST_V2, OCI_MANIFEST, MANIFEST_LIST_V2, OCI_INDEX])

LOCAL_REGISTRY_HOSTS = ("localhost", "127.0.0.1")


@dataclass
class RegistryReference:
    """Parsed registry image reference."""

    registry_url: str
    repository: str
    reference: str


def parse_registry_reference(image_ref: str) -> RegistryReference:
    """Parse "host[:port]/repository[:tag|@digest]".

    Local registries (localhost, 127.0.0.1) are reached over http, all others
    over https.

    Raises:
        ValidationError: If the reference has no registry host or repository
    """
    image_ref = image_ref.removeprefix("//")
    if "/" not in image_ref:
        raise ValidationError(f"Registry image reference must include a registry host: {image_ref}")

    host, remainder = image_ref.split("/", 1)
    if not host or not remainder:
        raise ValidationError(f"Invalid registry image reference: {image_ref}")

    if "@" in remainder:
        repository, reference = remainder.split("@", 1)
        if not validate_digest(reference):
            raise ValidationError(f"Invalid digest in image reference: {reference}")
    elif ":" in remainder.rsplit("/", 1)[-1]:
        repository, reference = remainder.rsplit(":", 1)
    else:
        repository, reference = remainder, "latest"

    if not repository or not reference:
        raise ValidationError(f"Invalid registry image reference: {image_ref}")

    scheme = "http" if host.split(":", 1)[0] in LOCAL_REGISTRY_HOSTS else "https"
    return RegistryReference(registry_url=f"{scheme}://{host}", repository=repository, reference=reference)


def select_platform_manifest(index: dict[str, Any], os_name: str = "linux", architecture: str = "amd64") -> str:
    """Pick the manifest digest for a platform from a manifest list."""
    manifests = index.get("manifests", [])
    if not manifests:
        raise ImageSourceError("Manifest list is empty")

    for entry in manifests:
        platform = entry.get("platform", {})
        if platform.get("os") == os_name and platform.get("architecture") == architecture:
            return entry["digest"]
    return manifests[0]["digest"]


class RegistrySource:
    """Async image source for unauthenticated Docker Registry API v2 servers.

    Layer blobs are downloaded into a temporary directory when the source is
    entered, so they can be read more than once.
    """

    def __init__(
        self,
        image_ref: str,
        registry_url: Optional[str] = None,
        timeout: Optional[float] = 300,
        connector: Optional[aiohttp.BaseConnector] = None,
    ) -> None:
        """Initialize registry source.

        Args:
            image_ref: "host[:port]/repository[:tag|@digest]"
            registry_url: Registry URL overriding the one derived from image_ref
            timeout: Request timeout in seconds
            connector: aiohttp connector for connection pooling
        """
        parsed = parse_registry_reference(image_ref)
        self.name = image_ref.removeprefix("//")
        self.registry_url = (registry_url or parsed.registry_url).rstrip("/")
        self.repository = parsed.repository
        self.reference = parsed.reference
        self.timeout = timeout
        self.connector = connector
        self.session: Optional[aiohttp.ClientSession] = None
        self._tmp_dir: Optional[tempfile.TemporaryDirectory] = None
        self._layers: list[SourceLayer] = []

    async def __aenter__(self) -> "RegistrySource":
        """Enter async context manager."""
        self.session = await create_session(connector=self.connector, timeout=self.timeout)
        self._tmp_dir = tempfile.TemporaryDirectory(prefix="img2lambda-")
        try:
            await self.pull_layers()
        except BaseException:
            await self.close()
            raise
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context manager."""
        await self.close()

    async def close(self) -> None:
        """Close the client session and remove downloaded blobs."""
        if self.session and not self.session.closed:
            await self.session.close()
        if self._tmp_dir:
            self._tmp_dir.cleanup()
            self._tmp_dir = None

    @property
    def layers(self) -> list[SourceLayer]:
        return self._layers

    async def get_manifest(self, reference: str) -> dict[str, Any]:
        """Retrieve a manifest from the registry.

        Raises:
            ImageSourceError: If retrieval fails
        """
        url = f"{self.registry_url}/v2/{self.repository}/manifests/{reference}"
        try:
            async with self.session.get(url, headers={"Accept": MANIFEST_ACCEPT}) as resp:
                if resp.status == 404:
                    raise ImageSourceError(f"Manifest not found: {self.repository}:{reference}")
                resp.raise_for_status()
                return await resp.json(content_type=None)
        except aiohttp.ClientError as e:
            raise ImageSourceError(f"Failed to get manifest: {e}") from e

    async def get_image_manifest(self) -> dict[str, Any]:
        """Get the image manifest, resolving manifest lists to linux/amd64."""
        manifest = await self.get_manifest(self.reference)
        if manifest.get("mediaType") in (MANIFEST_LIST_V2, OCI_INDEX) or "manifests" in manifest:
            digest = select_platform_manifest(manifest)
            logger.debug(f"Resolved manifest list {self.reference} to {digest}")
            manifest = await self.get_manifest(digest)
        return manifest

    async def pull_layers(self) -> list[SourceLayer]:
        """Download every layer blob of the image, in manifest order.

        Raises:
            ImageSourceError: If the manifest or a blob cannot be downloaded
        """
        manifest = await self.get_image_manifest()
        layer_descriptors = manifest.get("layers")
        if not isinstance(layer_descriptors, list):
            raise ImageSourceError(f"Manifest of {self.name} has no layers")

        logger.info(f"Pulling {len(layer_descriptors)} layers of {self.name} from {self.registry_url}")

        layers = []
        for descriptor in layer_descriptors:
            digest = descriptor["digest"]
            if not validate_digest(digest):
                raise ImageSourceError(f"Invalid layer digest in manifest: {digest}")

            blob_path = Path(self._tmp_dir.name) / digest.replace(":", "-")
            url = f"{self.registry_url}/v2/{self.repository}/blobs/{digest}"
            await download_to_file(self.session, url, blob_path, expected_digest=digest)

            layers.append(
                SourceLayer(
                    digest=digest,
                    open_stream=lambda blob_path=blob_path: open(blob_path, "rb"),
                    size=descriptor.get("size"),
                    media_type=descriptor.get("mediaType"),
                )
            )

        self._layers = layers
        return layers
