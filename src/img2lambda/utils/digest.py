"""Digest calculation and validation utilities."""

import base64
import hashlib
import re
from typing import BinaryIO, Union

# Regex pattern for valid digest format (algorithm:hex)
DIGEST_PATTERN = re.compile(r"^[a-z0-9]+:[a-f0-9]+$")

CHUNK_SIZE = 1024 * 1024


def calculate_stream_digest(stream: BinaryIO, algorithm: str = "sha256") -> str:
    """Calculate digest of a readable stream without loading it into memory."""
    if algorithm not in hashlib.algorithms_available:
        raise ValueError(f"Unsupported algorithm: {algorithm}")

    hasher = hashlib.new(algorithm)
    for chunk in iter(lambda: stream.read(CHUNK_SIZE), b""):
        hasher.update(chunk)
    return f"{algorithm}:{hasher.hexdigest()}"


def calculate_code_sha256(data: Union[bytes, bytearray]) -> str:
    """Calculate the base64-encoded SHA-256 that Lambda reports as CodeSha256.

    Args:
        data: Archive content

    Returns:
        Base64 string of the raw SHA-256 digest
    """
    if not isinstance(data, (bytes, bytearray)):
        raise ValueError("Data must be bytes or bytearray")

    return base64.b64encode(hashlib.sha256(data).digest()).decode("ascii")


def validate_digest(digest: str) -> bool:
    """Validate digest format.

    Args:
        digest: Digest string to validate

    Returns:
        True if valid digest format
    """
    if not isinstance(digest, str):
        return False

    if not DIGEST_PATTERN.match(digest):
        return False

    # Check if algorithm is valid
    algorithm, _ = digest.split(":", 1)
    return algorithm in ["sha256", "sha512", "sha1", "md5"]


def digest_to_name(digest: str) -> str:
    """Turn a digest into a string usable in a Lambda layer name.

    Colons are not allowed in layer names, so "sha256:abc" becomes "sha256-abc".
    """
    return digest.replace(":", "-")
