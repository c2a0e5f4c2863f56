"""Functional API converting a container image into Lambda layers."""

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .core.types import ConvertOptions, FunctionPackage, LambdaLayer
from .exceptions import NothingExtractedError
from .extract import repack_image
from .publish import build_publish_options, publish_lambda_layers
from .sources import image_name_for, open_image_source

logger = logging.getLogger(__name__)


@dataclass
class ConvertResult:
    """Result of converting one image.

    ``arns`` is empty for dry runs.
    """

    layers: list[LambdaLayer] = field(default_factory=list)
    function: Optional[FunctionPackage] = None
    arns: list[str] = field(default_factory=list)


async def convert_image(options: ConvertOptions) -> ConvertResult:
    """Convert an image into Lambda layers and publish them.

    Args:
        options: Conversion options; ``image`` is combined with ``image_type``
            into a transport image reference

    Returns:
        ConvertResult with the layer archives, function package and ARNs

    Raises:
        ValidationError: If the image reference is invalid
        ImageSourceError: If the image cannot be read
        RepackError: If a layer cannot be repackaged
        NothingExtractedError: If the image has nothing to extract
        PublishError: If publishing fails
        ResultsWriteError: If the results files cannot be written

    Example:
        >>> options = ConvertOptions(image="my-image:latest", dry_run=True)
        >>> result = await convert_image(options)
    """
    image_name = image_name_for(options.image, options.image_type)
    output_dir = Path(options.output_dir)
    loop = asyncio.get_running_loop()

    logger.info(f"Parsing the image {image_name}")
    async with open_image_source(image_name) as source:
        repacked = await loop.run_in_executor(None, repack_image, source, output_dir)

    if repacked.is_empty:
        raise NothingExtractedError(
            f"No compatible layers or function files found in the image {image_name} "
            "(likely nothing found in /opt or /var/task)"
        )

    result = ConvertResult(layers=repacked.layers, function=repacked.function)
    if repacked.function is not None and repacked.function.file_count == 0:
        result.function = None

    if options.dry_run:
        logger.info(f"Dry run: not publishing {len(repacked.layers)} Lambda layers from {output_dir}")
        return result

    def publish():
        publish_options = build_publish_options(options, image_name=image_name)
        return publish_lambda_layers(publish_options, repacked.layers)

    published = await loop.run_in_executor(None, publish)
    result.arns = published.arns
    return result
