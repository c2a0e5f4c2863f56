"""Utility functions for img2lambda."""

from .digest import calculate_code_sha256, calculate_stream_digest, digest_to_name, validate_digest

__all__ = ["calculate_code_sha256", "calculate_stream_digest", "digest_to_name", "validate_digest"]
