"""img2lambda command line interface."""

import asyncio
import logging
import os
import sys
from pathlib import Path

import click

from .converter import convert_image
from .core.types import ConvertOptions
from .exceptions import Img2LambdaError, ValidationError
from .sources import IMAGE_TYPE_TRANSPORTS
from .utils.validator import validate_runtimes
from .version import __version__

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(verbose: bool) -> None:
    """Log to stderr, at DEBUG when verbose, otherwise at LOG_LEVEL or INFO."""
    level = logging.DEBUG if verbose else os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr)


def check_runtimes(ctx, param, value):
    try:
        return validate_runtimes(value)
    except ValidationError as e:
        raise click.BadParameter(str(e)) from e


@click.command(context_settings={"auto_envvar_prefix": "IMG2LAMBDA", "help_option_names": ["-h", "--help"]})
@click.option(
    "--image",
    "-i",
    required=True,
    help="Name or path of the source container image. For example, 'my-docker-image:latest' or './my-oci-image-archive'.",
)
@click.option(
    "--image-type",
    "-t",
    type=click.Choice(list(IMAGE_TYPE_TRANSPORTS)),
    default="docker",
    show_default=True,
    help="Type of the source container image: 'docker' for the local Docker daemon, "
    "'docker-archive' for a docker save tar file, 'registry' for a Registry API v2 server.",
)
@click.option("--region", "-r", default="us-east-1", show_default=True, help="AWS region")
@click.option("--profile", "-p", default=None, help="AWS credentials profile. Credentials will default to the following order: environment variables, shared credentials file (~/.aws/credentials), IAM role.")
@click.option(
    "--output-directory",
    "-o",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("./output"),
    show_default=True,
    help="Destination directory for output: function deployment package (function.zip) and list of published layers (layers.json, layers.yaml)",
)
@click.option(
    "--layer-namespace",
    "-n",
    default="img2lambda",
    show_default=True,
    help="Prefix for the layers published to Lambda",
)
@click.option(
    "--dry-run",
    "-d",
    is_flag=True,
    default=False,
    help="Conduct a dry-run: Repackage the image, but only write the Lambda layers to local disk (do not publish to Lambda)",
)
@click.option("--description", "--desc", default="", help="The description of this layer version")
@click.option(
    "--license-info",
    "-l",
    default="",
    help="The layer's software license. It can be an SPDX license identifier, the URL of the license hosted on the internet, or the full text of the license",
)
@click.option(
    "--compatible-runtimes",
    "--cr",
    multiple=True,
    default=("provided",),
    show_default=True,
    callback=check_runtimes,
    help="An AWS Lambda function runtime compatible with the image layers. Repeat for multiple runtimes.",
)
@click.option("--verbose", "-v", is_flag=True, default=False, help="Log debug output")
@click.version_option(__version__, "--version", prog_name="img2lambda")
def main(
    image,
    image_type,
    region,
    profile,
    output_directory,
    layer_namespace,
    dry_run,
    description,
    license_info,
    compatible_runtimes,
    verbose,
):
    """Repackage a container image into AWS Lambda layers and publish them to Lambda."""
    configure_logging(verbose)

    options = ConvertOptions(
        image=image,
        image_type=image_type,
        region=region,
        profile=profile,
        output_dir=output_directory,
        dry_run=dry_run,
        layer_namespace=layer_namespace,
        description=description,
        license_info=license_info,
        compatible_runtimes=compatible_runtimes,
    )

    try:
        result = asyncio.run(convert_image(options))
    except Img2LambdaError as e:
        logger.error(f"Conversion of {image} failed")
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if dry_run:
        click.echo(f"Created {len(result.layers)} Lambda layer files in {output_directory}")
    else:
        for arn in result.arns:
            click.echo(arn)


if __name__ == "__main__":
    main()
