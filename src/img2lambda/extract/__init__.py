"""Extraction of Lambda layers and function packages from image layers."""

from .archive import ZipArchiveWriter
from .classifier import Classification, Destination, Kind, classify
from .repack_image import RepackResult, repack_image
from .repack_layer import LayerRepackResult, repack_layer

__all__ = [
    "Classification",
    "Destination",
    "Kind",
    "LayerRepackResult",
    "RepackResult",
    "ZipArchiveWriter",
    "classify",
    "repack_image",
    "repack_layer",
]
