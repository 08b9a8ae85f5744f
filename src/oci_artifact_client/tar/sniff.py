"""Layer payload detection from leading bytes."""

from typing import Protocol

# https://www.rfc-editor.org/rfc/rfc1952#page-6
GZIP_MAGIC_HEADER = b"\x1f\x8b"


class Peeker(Protocol):
    """Look-ahead without advancing the stream (e.g. io.BufferedReader).

    ``peek`` must return at least ``size`` bytes unless the stream ends first.
    An ``io.BufferedReader`` only does so when its buffer is empty and one raw
    read yields enough data, which holds for regular files but not for pipes
    or sockets; wrap those in a reader that buffers the head first.
    """

    def peek(self, size: int) -> bytes: ...


def looks_like_gzip(peeker: Peeker) -> bool:
    """Check whether a stream starts with the gzip magic header.

    The stream position is left untouched. A stream shorter than the header
    is not gzip; read errors propagate to the caller.
    """
    head = peeker.peek(len(GZIP_MAGIC_HEADER))[: len(GZIP_MAGIC_HEADER)]
    return head == GZIP_MAGIC_HEADER
