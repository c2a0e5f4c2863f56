"""aiohttp session helpers shared by network image sources."""

import asyncio
import hashlib
import logging
from pathlib import Path
from typing import Optional

import aiofiles
import aiohttp

from ..exceptions import ImageSourceError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


async def create_session(
    connector: Optional[aiohttp.BaseConnector] = None, timeout: Optional[float] = None
) -> aiohttp.ClientSession:
    """Create a client session, without a total timeout unless one is given."""
    return aiohttp.ClientSession(
        connector=connector,
        timeout=aiohttp.ClientTimeout(total=timeout),
    )


async def download_to_file(
    session: aiohttp.ClientSession,
    url: str,
    destination: Path,
    headers: Optional[dict[str, str]] = None,
    expected_digest: Optional[str] = None,
) -> int:
    """Stream a response body into a file.

    Args:
        session: Client session
        url: URL to GET
        destination: File to write
        headers: Extra request headers
        expected_digest: "algorithm:hex" digest the body must match

    Returns:
        Number of bytes written

    Raises:
        ImageSourceError: If the request fails or the digest does not match
    """
    hasher = None
    if expected_digest:
        algorithm, _ = expected_digest.split(":", 1)
        hasher = hashlib.new(algorithm)

    written = 0
    try:
        async with session.get(url, headers=headers) as resp:
            if resp.status == 404:
                raise ImageSourceError(f"Not found: {url}")
            resp.raise_for_status()

            async with aiofiles.open(destination, "wb") as out:
                async for chunk in resp.content.iter_chunked(CHUNK_SIZE):
                    await out.write(chunk)
                    written += len(chunk)
                    if hasher:
                        hasher.update(chunk)
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        raise ImageSourceError(f"Failed to download {url}: {e}") from e
    except OSError as e:
        raise ImageSourceError(f"Failed to write {destination}: {e}") from e

    if hasher and f"{hasher.name}:{hasher.hexdigest()}" != expected_digest:
        raise ImageSourceError(
            f"Digest mismatch for {url}: expected {expected_digest}, got {hasher.name}:{hasher.hexdigest()}"
        )

    logger.debug(f"Downloaded {written} bytes from {url} to {destination}")
    return written
