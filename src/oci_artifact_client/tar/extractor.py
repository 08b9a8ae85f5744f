"""Safe extraction of artifact layers."""

import logging
import os
import shutil
import tarfile
import tempfile
import threading
from pathlib import Path
from typing import BinaryIO, Optional

from ..exceptions import (
    ArtifactIOError,
    OperationCancelledError,
    SizeLimitExceededError,
    UnsafePathError,
)
from .models import CHUNK_SIZE, UNBOUNDED, ExtractOptions, LayerType

logger = logging.getLogger(__name__)


def _is_within(root: str, target: str) -> bool:
    return target == root or target.startswith(root + os.sep)


class TarballExtractor:
    """Streams a gzip-compressed tarball into a directory.

    Entries are never written outside the extraction root, the cumulative
    size of file contents is bounded by ``max_size`` unless it is UNBOUNDED,
    and symlinks are dropped when ``skip_symlinks`` is set.
    """

    def __init__(
        self,
        root: Path,
        options: ExtractOptions,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        self.root = os.path.realpath(root)
        self.options = options
        self.cancel = cancel
        self.written = 0

    def extract(self, blob: BinaryIO) -> None:
        try:
            with tarfile.open(fileobj=blob, mode="r|gz") as tar:
                for member in tar:
                    if self.cancel is not None and self.cancel.is_set():
                        raise OperationCancelledError("extraction cancelled")
                    self._extract_member(tar, member)
        except (tarfile.TarError, EOFError) as e:
            raise ArtifactIOError("untar", self.root, e) from e

    def _resolve(self, name: str) -> str:
        """Map an entry name to an absolute path inside the root.

        Raises:
            UnsafePathError: If the entry would land outside the root
        """
        if os.path.isabs(name) or name.startswith(("/", "\\")):
            raise UnsafePathError(f"absolute path in archive: {name!r}")
        target = os.path.realpath(os.path.join(self.root, name))
        if not _is_within(self.root, target):
            raise UnsafePathError(f"illegal file path in archive: {name!r}")
        return target

    def _charge(self, size: int, name: str) -> None:
        self.written += size
        limit = self.options.max_size
        if limit != UNBOUNDED and self.written > limit:
            raise SizeLimitExceededError(
                f"tar {name!r} is bigger than max archive size of {limit} bytes",
                limit=limit,
            )

    def _extract_member(self, tar: tarfile.TarFile, member: tarfile.TarInfo) -> None:
        name = member.name
        if member.issym() and self.options.skip_symlinks:
            logger.debug("skipping symlink %s", name)
            return

        target = self._resolve(name)
        if target == self.root:
            return

        try:
            if member.isdir():
                os.makedirs(target, exist_ok=True)
            elif member.isreg():
                self._write_file(tar, member, target)
            elif member.issym():
                self._write_symlink(member, target)
            elif member.islnk():
                self._write_hardlink(member, target)
            else:
                logger.debug("skipping unsupported entry %s (type %r)", name, member.type)
                return
        except OSError as e:
            raise ArtifactIOError("extract", target, e) from e
        logger.debug("extracted %s", name)

    def _write_file(self, tar: tarfile.TarFile, member: tarfile.TarInfo, target: str) -> None:
        os.makedirs(os.path.dirname(target), exist_ok=True)
        source = tar.extractfile(member)
        if source is None:
            return
        if os.path.lexists(target) and not os.path.isdir(target):
            os.unlink(target)
        with source, open(target, "wb") as f:
            while True:
                chunk = source.read(CHUNK_SIZE)
                if not chunk:
                    break
                self._charge(len(chunk), member.name)
                f.write(chunk)
        os.chmod(target, (member.mode & 0o777) | 0o600)

    def _write_symlink(self, member: tarfile.TarInfo, target: str) -> None:
        link_target = os.path.join(os.path.dirname(target), member.linkname)
        if not _is_within(self.root, os.path.realpath(link_target)):
            raise UnsafePathError(
                f"symlink {member.name!r} points outside the target: {member.linkname!r}"
            )
        os.makedirs(os.path.dirname(target), exist_ok=True)
        if os.path.lexists(target):
            os.unlink(target)
        os.symlink(member.linkname, target)

    def _write_hardlink(self, member: tarfile.TarInfo, target: str) -> None:
        source = self._resolve(member.linkname)
        os.makedirs(os.path.dirname(target), exist_ok=True)
        if os.path.lexists(target):
            os.unlink(target)
        os.link(source, target)


def _merge_into(staging: Path, dest: Path) -> None:
    """Move staged entries into an existing directory, replacing clashes."""
    for child in staging.iterdir():
        target = dest / child.name
        if target.is_dir() and not target.is_symlink():
            if child.is_dir() and not child.is_symlink():
                _merge_into(child, target)
                continue
            shutil.rmtree(target)
        elif target.is_symlink() or target.exists():
            target.unlink()
        os.replace(child, target)


def untar(
    dest: Path | str,
    blob: BinaryIO,
    options: Optional[ExtractOptions] = None,
    cancel: Optional[threading.Event] = None,
) -> None:
    """Extract a gzip-compressed tarball into dest.

    Entries are staged in a temporary directory beside dest and only moved
    into place once the whole stream has been read. On failure nothing is
    left at dest that was not there before.

    Raises:
        UnsafePathError: If an entry would escape dest
        SizeLimitExceededError: If the size budget is exceeded
        ArtifactIOError: If the archive is corrupt or a write fails
        OperationCancelledError: If cancel is set during extraction
    """
    dest = Path(dest)
    options = options or ExtractOptions()
    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
        staging = Path(tempfile.mkdtemp(prefix=f".{dest.name}.", dir=dest.parent))
    except OSError as e:
        raise ArtifactIOError("create", str(dest), e) from e

    try:
        TarballExtractor(staging, options, cancel).extract(blob)
        if dest.is_dir():
            _merge_into(staging, dest)
        else:
            os.chmod(staging, 0o755)
            os.replace(staging, dest)
    except OSError as e:
        raise ArtifactIOError("commit", str(dest), e) from e
    finally:
        shutil.rmtree(staging, ignore_errors=True)


def copy_static(
    dest: Path | str,
    blob: BinaryIO,
    cancel: Optional[threading.Event] = None,
) -> None:
    """Copy a blob verbatim to a single file at dest."""
    dest = Path(dest)
    tmp_path = None
    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=f".{dest.name}.", dir=dest.parent)
        with os.fdopen(fd, "wb") as f:
            while True:
                if cancel is not None and cancel.is_set():
                    raise OperationCancelledError("copy cancelled")
                chunk = blob.read(CHUNK_SIZE)
                if not chunk:
                    break
                f.write(chunk)
        os.chmod(tmp_path, 0o644)
        os.replace(tmp_path, dest)
        tmp_path = None
    except OSError as e:
        raise ArtifactIOError("copy", str(dest), e) from e
    finally:
        if tmp_path is not None and os.path.exists(tmp_path):
            os.unlink(tmp_path)


def extract(
    dest: Path | str,
    blob: BinaryIO,
    layer_type: LayerType | str,
    options: Optional[ExtractOptions] = None,
    cancel: Optional[threading.Event] = None,
) -> None:
    """Materialize a layer blob at dest according to its layer type.

    Args:
        dest: Target directory (tarball) or file (static)
        blob: Readable binary stream of the layer content
        layer_type: TARBALL expands the archive, STATIC copies the bytes
        options: Size budget and symlink handling for tarballs
        cancel: Optional event checked before each entry or chunk

    Raises:
        UnsupportedLayerTypeError: If layer_type is unknown
    """
    layer_type = LayerType.parse(layer_type)
    if layer_type is LayerType.TARBALL:
        untar(dest, blob, options, cancel)
    else:
        copy_static(dest, blob, cancel)
