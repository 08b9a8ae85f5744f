"""Test configuration and fixtures."""

import os

import pytest

from tests.helpers import ARTIFACT_FILES, FakeTransport, write_tree


@pytest.fixture(scope="session")
def registry_port():
    """Get registry port for testing."""
    return int(os.getenv("REGISTRY_PORT", "15000"))


@pytest.fixture
def artifact_dir(tmp_path):
    """Sample artifact tree with files to keep and files to ignore."""
    return write_tree(tmp_path / "artifact", ARTIFACT_FILES)


@pytest.fixture
def project_dir(tmp_path):
    """Tree resembling a source checkout with an internal/ package."""
    files = {
        "build.go": "package client\n",
        "meta.go": "package client\n",
        "internal/tar/tar.go": "package tar\n",
        "internal/README.md": "internal\n",
        "testdata/artifact/deployment.yaml": "kind: Deployment\n",
    }
    return write_tree(tmp_path / "project", files)


@pytest.fixture
def transport():
    """In-memory registry transport."""
    return FakeTransport()


# Pytest configuration
def pytest_configure(config):
    """Configure pytest markers and settings."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test requiring registry"
    )
    config.addinivalue_line("markers", "unit: mark test as unit test (default)")


def pytest_collection_modifyitems(config, items):
    """Modify test collection."""
    # Skip integration tests if no registry
    skip_integration = pytest.mark.skip(reason="Registry not available")

    for item in items:
        if (
            "integration" in item.keywords
            and os.getenv("REGISTRY_AVAILABLE", "false").lower() != "true"
        ):
            item.add_marker(skip_integration)
