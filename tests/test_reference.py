"""Tests for artifact reference parsing."""

import pytest

from oci_artifact_client.core.reference import Reference, parse_reference
from oci_artifact_client.exceptions import InvalidReferenceError

DIGEST = "sha256:" + "a" * 64


@pytest.mark.parametrize(
    "value,expected",
    [
        (
            "localhost:5000/app/manifests:v1",
            Reference("localhost:5000", "app/manifests", tag="v1"),
        ),
        (
            "oci://ghcr.io/org/app:1.0.0",
            Reference("ghcr.io", "org/app", tag="1.0.0"),
        ),
        (
            "ghcr.io/org/app",
            Reference("ghcr.io", "org/app", tag="latest"),
        ),
        (
            f"ghcr.io/org/app@{DIGEST}",
            Reference("ghcr.io", "org/app", digest=DIGEST),
        ),
        (
            f"ghcr.io/org/app:v2@{DIGEST}",
            Reference("ghcr.io", "org/app", tag="v2", digest=DIGEST),
        ),
        (
            "nginx",
            Reference("index.docker.io", "library/nginx", tag="latest"),
        ),
        (
            "stefanprodan/podinfo:6.5.0",
            Reference("index.docker.io", "stefanprodan/podinfo", tag="6.5.0"),
        ),
        (
            "[::1]:5000/app:dev",
            Reference("[::1]:5000", "app", tag="dev"),
        ),
    ],
)
def test_parse_reference(value, expected):
    """Test parsing of valid references."""
    assert parse_reference(value) == expected


@pytest.mark.parametrize(
    "value",
    [
        "",
        "   ",
        "https://ghcr.io/org/app:v1",
        "ghcr.io/Org/App:v1",
        "ghcr.io/org/app:",
        "ghcr.io/org/app:-bad",
        "ghcr.io/org/app@sha256:short",
        "ghcr.io//app",
        "bad_host:5000/app:v1",
    ],
)
def test_parse_invalid_reference(value):
    """Test rejection of malformed references."""
    with pytest.raises(InvalidReferenceError, match="invalid URL"):
        parse_reference(value)


def test_reference_properties():
    """Test derived names."""
    ref = parse_reference("localhost:5000/app/manifests:v1")

    assert ref.identifier == "v1"
    assert ref.context == "localhost:5000/app/manifests"
    assert ref.context_digest(DIGEST) == f"localhost:5000/app/manifests@{DIGEST}"
    assert str(ref) == "localhost:5000/app/manifests:v1"

    pinned = parse_reference(f"localhost:5000/app:v1@{DIGEST}")
    assert pinned.identifier == DIGEST
    assert str(pinned) == f"localhost:5000/app:v1@{DIGEST}"
