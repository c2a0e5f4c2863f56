"""Validation utilities for docker save tar files and CLI inputs."""

import json
import tarfile
from pathlib import Path
from typing import Any, Iterable

from ..core.types import VALID_RUNTIMES
from ..exceptions import ValidationError


def is_valid_tarfile(path: Path) -> bool:
    """Check if file is a valid tar file."""
    return tarfile.is_tarfile(path)


def get_tar_members(tar: tarfile.TarFile) -> set[str]:
    """Extract member names from tar file."""
    return {member.name for member in tar.getmembers()}


def extract_manifest_content(tar: tarfile.TarFile) -> str | None:
    """Extract manifest.json content from tar file."""
    try:
        manifest_member = tar.extractfile("manifest.json")
        if manifest_member is None:
            return None
        return manifest_member.read().decode("utf-8")
    except (UnicodeDecodeError, KeyError):
        return None


def parse_manifest_json(manifest_content: str) -> list[dict[str, Any]] | None:
    """Parse manifest JSON content."""
    try:
        manifest_data = json.loads(manifest_content)
        if not isinstance(manifest_data, list) or len(manifest_data) == 0:
            return None
        return manifest_data
    except json.JSONDecodeError:
        return None


def validate_manifest_entry(manifest_entry: Any, tar_members: set[str]) -> bool:
    """Validate a single manifest entry: config and every layer must be present."""
    if not isinstance(manifest_entry, dict):
        return False

    if not all(field in manifest_entry for field in ("Config", "Layers")):
        return False

    if manifest_entry["Config"] not in tar_members:
        return False

    layers = manifest_entry["Layers"]
    if not isinstance(layers, list):
        return False

    return all(layer in tar_members for layer in layers)


def read_docker_tar_manifest(tar: tarfile.TarFile) -> list[dict[str, Any]]:
    """Read and validate manifest.json of an opened docker save tar file.

    Raises:
        ValidationError: If the manifest is missing or does not match the tar contents
    """
    tar_members = get_tar_members(tar)
    if "manifest.json" not in tar_members:
        raise ValidationError("manifest.json not found in tar file")

    manifest_content = extract_manifest_content(tar)
    if manifest_content is None:
        raise ValidationError("Cannot extract manifest.json")

    manifest_data = parse_manifest_json(manifest_content)
    if manifest_data is None:
        raise ValidationError("manifest.json must be a non-empty array")

    if not all(validate_manifest_entry(entry, tar_members) for entry in manifest_data):
        raise ValidationError("manifest.json references files missing from the tar file")

    return manifest_data


def validate_docker_tar(tar_path: Path) -> bool:
    """Check if a file is a docker save tar file with a consistent manifest.

    Raises:
        ValidationError: If the file does not exist or cannot be read
    """
    tar_path = Path(tar_path)
    if not tar_path.exists():
        raise ValidationError(f"Tar file does not exist: {tar_path}")

    try:
        if not is_valid_tarfile(tar_path):
            return False

        with tarfile.open(tar_path, "r") as tar:
            read_docker_tar_manifest(tar)
            return True
    except ValidationError:
        return False
    except (tarfile.TarError, OSError) as e:
        raise ValidationError(f"Error reading tar file: {e}") from e


def validate_runtimes(runtimes: Iterable[str], valid_runtimes: frozenset[str] = VALID_RUNTIMES) -> list[str]:
    """Check every runtime against the supported Lambda runtimes.

    Raises:
        ValidationError: If a runtime is not supported
    """
    runtimes = list(runtimes)
    invalid = [runtime for runtime in runtimes if runtime not in valid_runtimes]
    if invalid:
        raise ValidationError(
            f"Compatible runtimes must be one of the supported runtimes {sorted(valid_runtimes)}, "
            f"got: {', '.join(invalid)}"
        )
    return runtimes
