"""Example usage of the async img2lambda converter."""

import asyncio
import logging
import sys
from pathlib import Path

from img2lambda import ConvertOptions, Img2LambdaError, convert_image

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def main(image_tar: str):
    """Repackage a docker save tar file without publishing."""
    options = ConvertOptions(
        image=image_tar,
        image_type="docker-archive",
        output_dir=Path("./output"),
        dry_run=True,
    )

    try:
        result = await convert_image(options)
    except Img2LambdaError as e:
        logger.error(f"Conversion failed: {e}")
        return

    for layer in result.layers:
        logger.info(f"{layer.file} <- {layer.digest}")
    if result.function:
        logger.info(f"Function package {result.function.file} ({result.function.file_count} files)")


if __name__ == "__main__":
    asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else "image.tar"))
