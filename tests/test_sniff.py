"""Tests for gzip payload detection."""

import gzip
import io

import pytest

from oci_artifact_client.tar.sniff import GZIP_MAGIC_HEADER, looks_like_gzip


def _reader(data: bytes) -> io.BufferedReader:
    return io.BufferedReader(io.BytesIO(data))


def test_gzip_stream_detected():
    """Test detection of compressed content."""
    assert looks_like_gzip(_reader(gzip.compress(b"hello")))
    assert looks_like_gzip(_reader(GZIP_MAGIC_HEADER))


def test_plain_stream_not_detected():
    """Test that other content is not gzip."""
    assert not looks_like_gzip(_reader(b"apiVersion: v1\n"))
    assert not looks_like_gzip(_reader(b"\x1f"))
    assert not looks_like_gzip(_reader(b""))


def test_peek_does_not_consume():
    """Test that the stream can still be read from the start."""
    data = gzip.compress(b"payload")
    reader = _reader(data)

    assert looks_like_gzip(reader)
    assert reader.read() == data


class _FailingPeeker:
    def peek(self, size: int) -> bytes:
        raise OSError("device not ready")


def test_read_errors_propagate():
    """Test that failures other than a short stream are raised."""
    with pytest.raises(OSError, match="device not ready"):
        looks_like_gzip(_FailingPeeker())


def test_file_reader(tmp_path):
    """Test detection on a reader opened from a regular file."""
    path = tmp_path / "layer"
    path.write_bytes(gzip.compress(b"payload"))

    with open(path, "rb") as f:
        assert looks_like_gzip(f)
        assert f.read(2) == GZIP_MAGIC_HEADER
