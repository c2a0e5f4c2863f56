"""Tests for deduplicated layer publishing."""

from pathlib import Path

import pytest

from img2lambda.core.types import ConvertOptions, LambdaLayer, PublishOptions
from img2lambda.exceptions import PublishError
from img2lambda.publish.lambda_client import LambdaLayerRegistry
from img2lambda.publish.publish_layers import (
    build_publish_options,
    layer_name_for,
    match_existing_layer,
    publish_lambda_layers,
)
from img2lambda.utils.digest import calculate_code_sha256

DIGEST = "sha256:0123456789abcdef"
LAYER_NAME = "img2lambda-sha256-0123456789abcdef"
CONTENT = b"PK fake zip content"
ARN_PREFIX = f"arn:aws:lambda:us-east-1:123456789012:layer:{LAYER_NAME}"


def version_response(version, content=CONTENT, sha256=None):
    return {
        "LayerVersionArn": f"{ARN_PREFIX}:{version}",
        "Version": version,
        "Content": {
            "CodeSha256": sha256 or calculate_code_sha256(content),
            "CodeSize": len(content),
        },
    }


def list_response(versions, next_marker=None):
    response = {
        "LayerVersions": [{"LayerVersionArn": f"{ARN_PREFIX}:{v}", "Version": v} for v in versions]
    }
    if next_marker:
        response["NextMarker"] = next_marker
    return response


def make_options(lambda_client, tmp_path, **kwargs) -> PublishOptions:
    return PublishOptions(
        lambda_client=lambda_client,
        layer_prefix="img2lambda",
        results_dir=tmp_path,
        source_image_name="docker-daemon:test-image:latest",
        **kwargs,
    )


def make_layer(tmp_path, name="layer-1.zip", content=CONTENT, digest=DIGEST) -> LambdaLayer:
    path = tmp_path / name
    path.write_bytes(content)
    return LambdaLayer(digest=digest, file=path)


def test_layer_name_for():
    assert layer_name_for("img2lambda", DIGEST) == LAYER_NAME


def test_layer_description_default(lambda_client, tmp_path):
    options = make_options(lambda_client, tmp_path)

    assert options.layer_description == "created by img2lambda from image docker-daemon:test-image:latest"


def test_layer_description_override(lambda_client, tmp_path):
    options = make_options(lambda_client, tmp_path, description="my layer")

    assert options.layer_description == "my layer"


def test_publish_new_layer(lambda_client, lambda_stubber, tmp_path):
    layer = make_layer(tmp_path)
    lambda_stubber.add_response("list_layer_versions", list_response([]), {"LayerName": LAYER_NAME})
    lambda_stubber.add_response(
        "publish_layer_version",
        {"LayerVersionArn": f"{ARN_PREFIX}:1", "Version": 1},
        {
            "LayerName": LAYER_NAME,
            "Description": "created by img2lambda from image docker-daemon:test-image:latest",
            "Content": {"ZipFile": CONTENT},
            "CompatibleRuntimes": ["provided"],
        },
    )

    result = publish_lambda_layers(make_options(lambda_client, tmp_path), [layer])

    assert result.arns == [f"{ARN_PREFIX}:1"]
    assert not layer.file.exists()
    lambda_stubber.assert_no_pending_responses()


def test_publish_with_license_and_runtimes(lambda_client, lambda_stubber, tmp_path):
    layer = make_layer(tmp_path)
    lambda_stubber.add_response("list_layer_versions", list_response([]), {"LayerName": LAYER_NAME})
    lambda_stubber.add_response(
        "publish_layer_version",
        {"LayerVersionArn": f"{ARN_PREFIX}:1", "Version": 1},
        {
            "LayerName": LAYER_NAME,
            "Description": "desc",
            "Content": {"ZipFile": CONTENT},
            "CompatibleRuntimes": ["python3.12", "provided.al2023"],
            "LicenseInfo": "MIT",
        },
    )
    options = make_options(
        lambda_client,
        tmp_path,
        description="desc",
        license_info="MIT",
        compatible_runtimes=["python3.12", "provided.al2023"],
    )

    assert publish_lambda_layers(options, [layer]).arns == [f"{ARN_PREFIX}:1"]
    lambda_stubber.assert_no_pending_responses()


def test_existing_layer_is_reused(lambda_client, lambda_stubber, tmp_path):
    layer = make_layer(tmp_path)
    lambda_stubber.add_response("list_layer_versions", list_response([3]), {"LayerName": LAYER_NAME})
    lambda_stubber.add_response(
        "get_layer_version", version_response(3), {"LayerName": LAYER_NAME, "VersionNumber": 3}
    )

    result = publish_lambda_layers(make_options(lambda_client, tmp_path), [layer])

    assert result.arns == [f"{ARN_PREFIX}:3"]
    assert not layer.file.exists()
    lambda_stubber.assert_no_pending_responses()


def test_publishing_twice_reuses_first_version(lambda_client, lambda_stubber, tmp_path):
    lambda_stubber.add_response("list_layer_versions", list_response([]), {"LayerName": LAYER_NAME})
    lambda_stubber.add_response(
        "publish_layer_version",
        {"LayerVersionArn": f"{ARN_PREFIX}:1", "Version": 1},
        {
            "LayerName": LAYER_NAME,
            "Description": "created by img2lambda from image docker-daemon:test-image:latest",
            "Content": {"ZipFile": CONTENT},
            "CompatibleRuntimes": ["provided"],
        },
    )
    lambda_stubber.add_response("list_layer_versions", list_response([1]), {"LayerName": LAYER_NAME})
    lambda_stubber.add_response(
        "get_layer_version", version_response(1), {"LayerName": LAYER_NAME, "VersionNumber": 1}
    )
    options = make_options(lambda_client, tmp_path)

    first = publish_lambda_layers(options, [make_layer(tmp_path)])
    second = publish_lambda_layers(options, [make_layer(tmp_path)])

    assert first.arns == second.arns == [f"{ARN_PREFIX}:1"]
    lambda_stubber.assert_no_pending_responses()


def test_match_on_last_page(lambda_client, lambda_stubber):
    other = b"other content!!!!!!"
    lambda_stubber.add_response(
        "list_layer_versions", list_response([5, 4], next_marker="page2"), {"LayerName": LAYER_NAME}
    )
    lambda_stubber.add_response(
        "get_layer_version", version_response(5, content=other), {"LayerName": LAYER_NAME, "VersionNumber": 5}
    )
    lambda_stubber.add_response(
        "get_layer_version", version_response(4, content=other), {"LayerName": LAYER_NAME, "VersionNumber": 4}
    )
    lambda_stubber.add_response(
        "list_layer_versions", list_response([3], next_marker="page3"), {"LayerName": LAYER_NAME, "Marker": "page2"}
    )
    lambda_stubber.add_response(
        "get_layer_version", version_response(3, content=other), {"LayerName": LAYER_NAME, "VersionNumber": 3}
    )
    lambda_stubber.add_response(
        "list_layer_versions", list_response([2]), {"LayerName": LAYER_NAME, "Marker": "page3"}
    )
    lambda_stubber.add_response(
        "get_layer_version", version_response(2), {"LayerName": LAYER_NAME, "VersionNumber": 2}
    )

    arn = match_existing_layer(LambdaLayerRegistry(lambda_client), LAYER_NAME, CONTENT)

    assert arn == f"{ARN_PREFIX}:2"
    lambda_stubber.assert_no_pending_responses()


def test_no_match_after_all_pages(lambda_client, lambda_stubber):
    lambda_stubber.add_response(
        "list_layer_versions", list_response([2], next_marker="page2"), {"LayerName": LAYER_NAME}
    )
    lambda_stubber.add_response(
        "get_layer_version",
        version_response(2, sha256="c29tZXRoaW5nIGVsc2U="),
        {"LayerName": LAYER_NAME, "VersionNumber": 2},
    )
    lambda_stubber.add_response("list_layer_versions", list_response([]), {"LayerName": LAYER_NAME, "Marker": "page2"})

    assert match_existing_layer(LambdaLayerRegistry(lambda_client), LAYER_NAME, CONTENT) is None
    lambda_stubber.assert_no_pending_responses()


def test_same_hash_different_size_does_not_match(lambda_client, lambda_stubber):
    response = version_response(1)
    response["Content"]["CodeSize"] = len(CONTENT) + 1
    lambda_stubber.add_response("list_layer_versions", list_response([1]), {"LayerName": LAYER_NAME})
    lambda_stubber.add_response("get_layer_version", response, {"LayerName": LAYER_NAME, "VersionNumber": 1})

    assert match_existing_layer(LambdaLayerRegistry(lambda_client), LAYER_NAME, CONTENT) is None


def test_missing_layer_has_no_versions(lambda_client, lambda_stubber):
    lambda_stubber.add_client_error(
        "list_layer_versions",
        service_error_code="ResourceNotFoundException",
        http_status_code=404,
        expected_params={"LayerName": LAYER_NAME},
    )

    assert LambdaLayerRegistry(lambda_client).list_versions(LAYER_NAME) == ([], None)


def test_list_failure_raises_publish_error(lambda_client, lambda_stubber, tmp_path):
    layer = make_layer(tmp_path)
    lambda_stubber.add_client_error(
        "list_layer_versions", service_error_code="AccessDeniedException", http_status_code=403
    )

    with pytest.raises(PublishError, match=LAYER_NAME):
        publish_lambda_layers(make_options(lambda_client, tmp_path), [layer])

    assert layer.file.exists()
    assert not (tmp_path / "layers.json").exists()


def test_publish_failure_stops_later_layers(lambda_client, lambda_stubber, tmp_path):
    first = make_layer(tmp_path, "layer-1.zip")
    second = make_layer(tmp_path, "layer-2.zip", digest="sha256:fedcba9876543210")
    lambda_stubber.add_response("list_layer_versions", list_response([]), {"LayerName": LAYER_NAME})
    lambda_stubber.add_client_error(
        "publish_layer_version", service_error_code="ServiceException", http_status_code=500
    )

    with pytest.raises(PublishError):
        publish_lambda_layers(make_options(lambda_client, tmp_path), [first, second])

    assert first.file.exists()
    assert second.file.exists()


def test_results_files_are_written(lambda_client, lambda_stubber, tmp_path):
    layer = make_layer(tmp_path)
    lambda_stubber.add_response("list_layer_versions", list_response([1]), {"LayerName": LAYER_NAME})
    lambda_stubber.add_response(
        "get_layer_version", version_response(1), {"LayerName": LAYER_NAME, "VersionNumber": 1}
    )

    result = publish_lambda_layers(make_options(lambda_client, tmp_path), [layer])

    assert result.results_paths == [tmp_path / "layers.json", tmp_path / "layers.yaml"]
    assert (tmp_path / "layers.json").read_text().strip().startswith("[")


def test_build_publish_options(tmp_path):
    options = ConvertOptions(
        image="test-image:latest",
        region="eu-west-1",
        output_dir=tmp_path,
        layer_namespace="ns",
        description="d",
        license_info="MIT",
        compatible_runtimes=["python3.12"],
    )

    publish_options = build_publish_options(options, image_name="docker-daemon:test-image:latest")

    assert publish_options.layer_prefix == "ns"
    assert publish_options.results_dir == Path(tmp_path)
    assert publish_options.source_image_name == "docker-daemon:test-image:latest"
    assert publish_options.compatible_runtimes == ["python3.12"]
    assert publish_options.lambda_client.meta.region_name == "eu-west-1"
