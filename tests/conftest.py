"""Test configuration and fixtures."""

import os

import boto3
import pytest
from botocore.stub import Stubber

from img2lambda.extract.archive import ZipArchiveWriter


@pytest.fixture(autouse=True)
def aws_credentials(monkeypatch):
    """Keep boto3 away from real AWS credentials."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
    monkeypatch.delenv("AWS_PROFILE", raising=False)


@pytest.fixture
def lambda_client():
    """Lambda client that never reaches AWS."""
    return boto3.client("lambda", region_name="us-east-1")


@pytest.fixture
def lambda_stubber(lambda_client):
    """Stubber activated on the Lambda client."""
    with Stubber(lambda_client) as stubber:
        yield stubber


@pytest.fixture
def function_writer(tmp_path):
    """Function package writer closed after the test."""
    writer = ZipArchiveWriter(tmp_path / "function.zip")
    yield writer
    writer.close()


# Pytest configuration
def pytest_configure(config):
    """Configure pytest markers and settings."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test requiring a Docker Engine"
    )
    config.addinivalue_line("markers", "unit: mark test as unit test (default)")


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless a Docker Engine is available."""
    skip_integration = pytest.mark.skip(reason="Docker Engine not available")

    for item in items:
        if (
            "integration" in item.keywords
            and os.getenv("DOCKER_AVAILABLE", "false").lower() != "true"
        ):
            item.add_marker(skip_integration)
