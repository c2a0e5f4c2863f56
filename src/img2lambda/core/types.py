"""Core data types for img2lambda."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


@dataclass
class LambdaLayer:
    """A Lambda layer archive built from one image layer."""

    digest: str
    file: Path


@dataclass
class FunctionPackage:
    """The Lambda function deployment package shared by all image layers."""

    file: Path
    file_count: int = 0


@dataclass
class ConvertOptions:
    """Options for converting an image into Lambda layers."""

    image: str
    image_type: str = "docker"
    region: str = "us-east-1"
    profile: str | None = None
    output_dir: Path = Path("./output")
    dry_run: bool = False
    layer_namespace: str = "img2lambda"
    description: str = ""
    license_info: str = ""
    compatible_runtimes: list[str] = field(default_factory=lambda: ["provided"])


@dataclass
class PublishOptions:
    """Options for publishing layer archives to Lambda."""

    lambda_client: Any
    layer_prefix: str
    results_dir: Path
    source_image_name: str
    description: str = ""
    license_info: str = ""
    compatible_runtimes: list[str] = field(default_factory=lambda: ["provided"])

    @property
    def layer_description(self) -> str:
        """Description attached to published layer versions."""
        if self.description:
            return self.description
        return f"created by img2lambda from image {self.source_image_name}"


# Deprecated runtimes stay in the set so layers for existing functions can
# still be tagged with them.
VALID_RUNTIMES = frozenset(
    {
        "nodejs",  # deprecated
        "nodejs4.3",  # deprecated
        "nodejs4.3-edge",  # deprecated
        "nodejs6.10",  # deprecated
        "nodejs8.10",  # deprecated
        "nodejs10.x",  # deprecated
        "nodejs12.x",  # deprecated
        "nodejs14.x",  # deprecated
        "nodejs16.x",  # deprecated
        "nodejs18.x",
        "nodejs20.x",
        "nodejs22.x",
        "java8",  # deprecated
        "java8.al2",
        "java11",
        "java17",
        "java21",
        "python2.7",  # deprecated
        "python3.6",  # deprecated
        "python3.7",  # deprecated
        "python3.8",  # deprecated
        "python3.9",
        "python3.10",
        "python3.11",
        "python3.12",
        "python3.13",
        "dotnetcore1.0",  # deprecated
        "dotnetcore2.0",  # deprecated
        "dotnetcore2.1",  # deprecated
        "dotnetcore3.1",  # deprecated
        "dotnet6",  # deprecated
        "dotnet8",
        "go1.x",  # deprecated
        "ruby2.5",  # deprecated
        "ruby2.7",  # deprecated
        "ruby3.2",
        "ruby3.3",
        "provided",
        "provided.al2",
        "provided.al2023",
    }
)
