"""Repackaging of a whole container image into Lambda layers and a function package."""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from ..core.types import FunctionPackage, LambdaLayer
from ..exceptions import ImageSourceError, RepackError
from ..sources.models import ImageSource
from .archive import ZipArchiveWriter
from .repack_layer import repack_layer

logger = logging.getLogger(__name__)

FUNCTION_PACKAGE_NAME = "function.zip"


def layer_archive_name(number: int) -> str:
    return f"layer-{number}.zip"


@dataclass
class RepackResult:
    """Lambda archives produced from one image."""

    layers: list[LambdaLayer] = field(default_factory=list)
    function: FunctionPackage | None = None

    @property
    def is_empty(self) -> bool:
        """True if neither a layer archive nor a function file was extracted."""
        return not self.layers and (self.function is None or self.function.file_count == 0)


def repack_image(source: ImageSource, output_dir: Path) -> RepackResult:
    """Convert every layer of an image into Lambda layer archives.

    Layers are processed in order. Files under opt/ become one Lambda layer
    archive per image layer, numbered only over layers that produced one.
    Files under var/task/ from all layers go into a single function.zip,
    which is removed again if it stayed empty.

    Args:
        source: Opened image source
        output_dir: Directory for the layer-N.zip and function.zip files

    Returns:
        RepackResult with the created layers and the function package

    Raises:
        ImageSourceError: If a layer blob cannot be read
        RepackError: If a layer cannot be repackaged
    """
    output_dir = Path(output_dir)
    layer_infos = source.layers
    logger.info(f"Image {source.name} has {len(layer_infos)} layers")

    try:
        output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise RepackError(f"creating output directory {output_dir}: {e}") from e

    function = FunctionPackage(file=output_dir / FUNCTION_PACKAGE_NAME)
    result = RepackResult(function=function)
    lambda_layer_num = 1

    with ZipArchiveWriter(function.file) as function_writer:
        function_writer.ensure_open()

        for layer_info in layer_infos:
            layer_file = output_dir / layer_archive_name(lambda_layer_num)

            try:
                layer_result = repack_layer(layer_info.open_stream, layer_file, function_writer)
            except OSError as e:
                raise ImageSourceError(f"Failed to read layer {layer_info.digest}: {e}") from e

            function.file_count += layer_result.function_file_count
            if layer_result.function_file_count == 0:
                logger.info(
                    f"Did not extract any Lambda function files from image layer "
                    f"{layer_info.digest} (no relevant files found)"
                )

            if layer_result.created:
                logger.info(f"Created Lambda layer file {layer_file} from image layer {layer_info.digest}")
                result.layers.append(LambdaLayer(digest=layer_info.digest, file=layer_file))
                lambda_layer_num += 1
            else:
                logger.info(
                    f"Did not create a Lambda layer file from image layer "
                    f"{layer_info.digest} (no relevant files found)"
                )

    logger.info(f"Extracted {function.file_count} Lambda function files for image {source.name}")
    if function.file_count > 0:
        logger.info(f"Created Lambda function deployment package {function.file}")
    else:
        function.file.unlink(missing_ok=True)

    logger.info(f"Created {len(result.layers)} Lambda layer files for image {source.name}")
    return result
