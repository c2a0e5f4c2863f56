"""Publishing of Lambda layer archives."""

from .lambda_client import LambdaLayerRegistry, new_lambda_client
from .publish_layers import (
    PublishResult,
    build_publish_options,
    match_existing_layer,
    publish_lambda_layers,
)
from .results import write_results

__all__ = [
    "LambdaLayerRegistry",
    "PublishResult",
    "build_publish_options",
    "match_existing_layer",
    "new_lambda_client",
    "publish_lambda_layers",
    "write_results",
]
