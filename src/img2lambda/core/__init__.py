"""Core types shared across img2lambda."""

from .types import (
    VALID_RUNTIMES,
    ConvertOptions,
    FunctionPackage,
    LambdaLayer,
    PublishOptions,
)

__all__ = [
    "VALID_RUNTIMES",
    "ConvertOptions",
    "FunctionPackage",
    "LambdaLayer",
    "PublishOptions",
]
