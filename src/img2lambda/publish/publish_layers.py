"""Deduplicated publishing of Lambda layer archives."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from ..core.types import ConvertOptions, LambdaLayer, PublishOptions
from ..exceptions import PublishError
from ..utils.digest import calculate_code_sha256, digest_to_name
from .lambda_client import LambdaLayerRegistry, new_lambda_client
from .results import write_results

logger = logging.getLogger(__name__)


@dataclass
class PublishResult:
    """ARNs of the published or reused layers, in image layer order."""

    arns: list[str] = field(default_factory=list)
    results_paths: list[Path] = field(default_factory=list)


def build_publish_options(opts: ConvertOptions, image_name: Optional[str] = None) -> PublishOptions:
    """Build publish options and a Lambda client from convert options."""
    return PublishOptions(
        lambda_client=new_lambda_client(opts.region, opts.profile),
        layer_prefix=opts.layer_namespace,
        results_dir=Path(opts.output_dir),
        source_image_name=image_name or opts.image,
        description=opts.description,
        license_info=opts.license_info,
        compatible_runtimes=list(opts.compatible_runtimes),
    )


def layer_name_for(prefix: str, digest: str) -> str:
    """Deterministic Lambda layer name for an image layer digest."""
    return f"{prefix}-{digest_to_name(digest)}"


def match_existing_layer(
    registry: LambdaLayerRegistry, layer_name: str, layer_contents: bytes
) -> Optional[str]:
    """Find an existing layer version with exactly the same content.

    Every page of versions is checked; a version matches when both its
    stored size and SHA-256 equal those of the content.

    Args:
        registry: Lambda layer registry
        layer_name: Layer name to search under
        layer_contents: Zip archive content

    Returns:
        ARN of the matching version, or None

    Raises:
        PublishError: If listing or fetching versions fails
    """
    code_sha256 = calculate_code_sha256(layer_contents)
    code_size = len(layer_contents)
    marker = None

    while True:
        versions, marker = registry.list_versions(layer_name, marker)

        for version in versions:
            existing = registry.get_version_content_meta(layer_name, version)
            if existing.code_size == code_size and existing.code_sha256 == code_sha256:
                return existing.arn

        if not marker:
            return None


def publish_layer(options: PublishOptions, registry: LambdaLayerRegistry, layer: LambdaLayer) -> str:
    """Publish one layer archive unless identical content already exists.

    The local archive is removed once the ARN is known.
    """
    layer_name = layer_name_for(options.layer_prefix, layer.digest)

    try:
        layer_contents = Path(layer.file).read_bytes()
    except OSError as e:
        raise PublishError(f"Failed to read layer file {layer.file}: {e}") from e

    existing_arn = match_existing_layer(registry, layer_name, layer_contents)

    if existing_arn:
        arn = existing_arn
        logger.info(
            f"Matched Lambda layer file {layer.file} (image layer {layer.digest}) "
            f"to existing Lambda layer: {arn}"
        )
    else:
        arn = registry.publish_version(
            layer_name,
            layer_contents,
            description=options.layer_description,
            compatible_runtimes=options.compatible_runtimes,
            license_info=options.license_info,
        )
        logger.info(f"Published Lambda layer file {layer.file} (image layer {layer.digest}) to Lambda: {arn}")

    try:
        Path(layer.file).unlink()
    except OSError as e:
        raise PublishError(f"Failed to remove layer file {layer.file}: {e}") from e

    return arn


def publish_lambda_layers(options: PublishOptions, layers: list[LambdaLayer]) -> PublishResult:
    """Publish layer archives to Lambda and write the resulting ARNs.

    Layers are handled in order. Layers already published before a failure
    stay published; re-running is safe because identical content is reused.

    Args:
        options: Publish options
        layers: Layer archives from repack_image

    Returns:
        PublishResult with ARNs and the written results files

    Raises:
        PublishError: If a layer cannot be read, matched or published
        ResultsWriteError: If the results files cannot be written
    """
    registry = LambdaLayerRegistry(options.lambda_client)
    result = PublishResult()

    for layer in layers:
        result.arns.append(publish_layer(options, registry, layer))

    result.results_paths = write_results(result.arns, options.results_dir)
    logger.info(f"Lambda layer ARNs ({len(result.arns)} total) are written to {options.results_dir}")
    return result
