"""AWS Lambda layer API access."""

import logging
from dataclasses import dataclass
from typing import Any, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from ..exceptions import PublishError
from ..version import __version__

logger = logging.getLogger(__name__)

USER_AGENT_EXTRA = f"aws-lambda-container-image-converter/{__version__}"


def new_lambda_client(region: str, profile: Optional[str] = None) -> Any:
    """Create a boto3 Lambda client.

    Args:
        region: AWS region
        profile: Shared credentials profile, default chain if None

    Returns:
        boto3 Lambda client tagged with the img2lambda user agent
    """
    session = boto3.Session(profile_name=profile, region_name=region)
    return session.client("lambda", config=Config(user_agent_extra=USER_AGENT_EXTRA))


@dataclass
class LayerVersionContent:
    """Stored content metadata of one layer version."""

    arn: str
    code_sha256: str
    code_size: int


class LambdaLayerRegistry:
    """Lambda layer versions seen as a registry of named, versioned blobs."""

    def __init__(self, client: Any) -> None:
        """Initialize registry.

        Args:
            client: boto3 Lambda client
        """
        self.client = client

    def list_versions(self, layer_name: str, marker: Optional[str] = None) -> tuple[list[int], Optional[str]]:
        """List one page of version numbers of a layer.

        Returns:
            Version numbers on this page and the marker of the next page,
            None on the last page

        Raises:
            PublishError: If the request fails
        """
        kwargs = {"LayerName": layer_name}
        if marker:
            kwargs["Marker"] = marker

        try:
            resp = self.client.list_layer_versions(**kwargs)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == "ResourceNotFoundException":
                return [], None
            raise PublishError(f"Failed to list versions of layer {layer_name}: {e}") from e
        except BotoCoreError as e:
            raise PublishError(f"Failed to list versions of layer {layer_name}: {e}") from e

        versions = [version["Version"] for version in resp.get("LayerVersions", [])]
        logger.debug(f"Listed {len(versions)} versions of layer {layer_name}")
        return versions, resp.get("NextMarker")

    def get_version_content_meta(self, layer_name: str, version: int) -> LayerVersionContent:
        """Get the stored content hash and size of a layer version.

        Raises:
            PublishError: If the request fails
        """
        try:
            resp = self.client.get_layer_version(LayerName=layer_name, VersionNumber=version)
        except (ClientError, BotoCoreError) as e:
            raise PublishError(f"Failed to get layer {layer_name} version {version}: {e}") from e

        content = resp.get("Content", {})
        return LayerVersionContent(
            arn=resp["LayerVersionArn"],
            code_sha256=content.get("CodeSha256", ""),
            code_size=content.get("CodeSize", -1),
        )

    def publish_version(
        self,
        layer_name: str,
        content: bytes,
        description: str,
        compatible_runtimes: list[str],
        license_info: str = "",
    ) -> str:
        """Publish a new layer version from zip content.

        Returns:
            ARN of the new layer version

        Raises:
            PublishError: If the request fails
        """
        kwargs = {
            "LayerName": layer_name,
            "Description": description,
            "Content": {"ZipFile": content},
            "CompatibleRuntimes": compatible_runtimes,
        }
        if license_info:
            kwargs["LicenseInfo"] = license_info

        try:
            resp = self.client.publish_layer_version(**kwargs)
        except (ClientError, BotoCoreError) as e:
            raise PublishError(f"Failed to publish layer {layer_name}: {e}") from e

        return resp["LayerVersionArn"]
