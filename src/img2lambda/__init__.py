"""img2lambda - Repackage container images into AWS Lambda layers."""

from .version import __version__
from .converter import ConvertResult, convert_image
from .core.types import ConvertOptions, FunctionPackage, LambdaLayer, PublishOptions
from .exceptions import (
    ArchiveCloseError,
    ImageSourceError,
    Img2LambdaError,
    LayerDecodeError,
    LayerStreamError,
    NothingExtractedError,
    PublishError,
    RepackError,
    ResultsWriteError,
    UnsupportedEntryTypeError,
    ValidationError,
)

__all__ = [
    "__version__",
    "ConvertOptions",
    "ConvertResult",
    "FunctionPackage",
    "LambdaLayer",
    "PublishOptions",
    "convert_image",
    "Img2LambdaError",
    "ValidationError",
    "ImageSourceError",
    "RepackError",
    "LayerDecodeError",
    "LayerStreamError",
    "UnsupportedEntryTypeError",
    "ArchiveCloseError",
    "NothingExtractedError",
    "PublishError",
    "ResultsWriteError",
]
