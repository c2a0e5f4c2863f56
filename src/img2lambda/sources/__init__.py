"""Container image sources.

Image references take the form ``transport:reference``:

* ``docker-archive:path/to/image.tar`` for ``docker save`` tar files
* ``docker-daemon:name[:tag]`` for images in the local Docker Engine
* ``docker://host[:port]/repository[:tag|@digest]`` for Registry API v2 servers
"""

from pathlib import Path

from ..exceptions import ValidationError
from ..utils.validator import validate_docker_tar
from .archive import DockerArchiveSource
from .daemon import DockerDaemonSource
from .models import ImageSource, SourceLayer
from .registry import RegistrySource

DOCKER_ARCHIVE = "docker-archive"
DOCKER_DAEMON = "docker-daemon"
DOCKER_REGISTRY = "docker"

TRANSPORTS = (DOCKER_ARCHIVE, DOCKER_DAEMON, DOCKER_REGISTRY)

# CLI image types mapped to transports
IMAGE_TYPE_TRANSPORTS = {
    "docker": DOCKER_DAEMON,
    "docker-archive": DOCKER_ARCHIVE,
    "registry": DOCKER_REGISTRY,
}


def parse_image_name(image_name: str) -> tuple[str, str]:
    """Split an image reference into transport and transport-specific reference.

    Raises:
        ValidationError: If the transport is missing or unknown
    """
    transport, sep, reference = image_name.partition(":")
    if not sep or not reference:
        raise ValidationError(f"Invalid image name {image_name}, expected format transport:reference")
    if transport not in TRANSPORTS:
        raise ValidationError(f"Invalid image name {image_name}, unknown transport {transport}")
    return transport, reference


def image_name_for(image: str, image_type: str) -> str:
    """Build a transport image reference from a CLI image and image type."""
    if image_type not in IMAGE_TYPE_TRANSPORTS:
        raise ValidationError(
            f"Unsupported image type {image_type}, expected one of {', '.join(IMAGE_TYPE_TRANSPORTS)}"
        )
    transport = IMAGE_TYPE_TRANSPORTS[image_type]
    if transport == DOCKER_REGISTRY:
        return f"{transport}://{image}"
    return f"{transport}:{image}"


def open_image_source(image_name: str):
    """Create an image source for a transport image reference.

    The returned source is an async context manager; its layers are available
    once entered.

    Raises:
        ValidationError: If the reference is malformed or the archive is invalid
    """
    transport, reference = parse_image_name(image_name)

    if transport == DOCKER_ARCHIVE:
        tar_path = Path(reference)
        if not validate_docker_tar(tar_path):
            raise ValidationError(f"Invalid Docker tar file format: {tar_path}")
        return DockerArchiveSource(tar_path, name=image_name)

    if transport == DOCKER_DAEMON:
        return DockerDaemonSource(reference)

    return RegistrySource(reference)


__all__ = [
    "DockerArchiveSource",
    "DockerDaemonSource",
    "ImageSource",
    "RegistrySource",
    "SourceLayer",
    "image_name_for",
    "open_image_source",
    "parse_image_name",
]
