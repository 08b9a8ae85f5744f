"""Gzip-compressed tar archive builder."""

import gzip
import logging
import os
import tarfile
import tempfile
import threading
from pathlib import Path
from typing import Collection, Iterable, Iterator, Optional

from ..exceptions import ArtifactIOError, OperationCancelledError, SourceNotFoundError
from .ignore import IgnoreRule, MatchResult, PatternMatcher
from .models import CHUNK_SIZE, ArchiveEntry, EntryKind

logger = logging.getLogger(__name__)


def iter_entries(
    source_dir: Path,
    matcher: PatternMatcher,
    skip: Collection[str] = (),
) -> Iterator[ArchiveEntry]:
    """Walk a directory and yield the entries that survive the ignore rules.

    Directories are yielded before their contents, in sorted order. Excluded
    directories are pruned and never descended into. Symlinks, including
    links to directories, are yielded as links and not followed.

    Args:
        source_dir: Root of the walk
        matcher: Ignore rule matcher
        skip: Real paths of files to leave out, such as the archive being written

    Yields:
        ArchiveEntry values with paths relative to source_dir
    """

    def raise_walk_error(error: OSError) -> None:
        raise ArtifactIOError("walk", str(error.filename or source_dir), error) from error

    for root, dirnames, filenames in os.walk(source_dir, onerror=raise_walk_error):
        rel_root = Path(root).relative_to(source_dir).as_posix()
        prefix = "" if rel_root == "." else f"{rel_root}/"

        links = []
        kept = []
        for name in sorted(dirnames):
            if os.path.islink(os.path.join(root, name)):
                links.append(name)
                continue
            result = matcher.evaluate(prefix + name, is_dir=True)
            if result is MatchResult.INCLUDED:
                kept.append(name)
            else:
                logger.debug("pruning %s%s/", prefix, name)
        # os.walk only descends into what is left in dirnames
        dirnames[:] = kept

        real_root = os.path.realpath(root) if skip else root
        for name in sorted(filenames + links):
            rel_path = prefix + name
            if skip and os.path.join(real_root, name) in skip:
                logger.debug("skipping output file %s", rel_path)
                continue
            if not matcher.matches(rel_path, is_dir=False):
                logger.debug("ignoring %s", rel_path)
                continue
            if os.path.islink(os.path.join(root, name)):
                yield ArchiveEntry(rel_path, EntryKind.SYMLINK)
            else:
                yield ArchiveEntry(rel_path, EntryKind.FILE)

        for name in kept:
            yield ArchiveEntry(prefix + name, EntryKind.DIRECTORY)


def _normalize(info: tarfile.TarInfo) -> tarfile.TarInfo:
    """Strip host-specific header fields so builds are reproducible."""
    info.uid = info.gid = 0
    info.uname = info.gname = ""
    info.mtime = 0
    return info


def _add_entry(tar: tarfile.TarFile, path: Path, arcname: str) -> None:
    info = _normalize(tar.gettarinfo(str(path), arcname=arcname))
    if info.isreg():
        with open(path, "rb") as f:
            tar.addfile(info, f)
    elif info.isdir() or info.issym() or info.islnk():
        tar.addfile(info)
    else:
        logger.debug("skipping unsupported file type %s", path)


class ArchiveBuilder:
    """Builds artifact archives from a file or a directory tree.

    Output is written to a temporary file next to the destination and moved
    into place only when the whole archive has been written.
    """

    def __init__(
        self,
        ignore_rules: Iterable[IgnoreRule | str] = (),
        cancel: Optional[threading.Event] = None,
    ) -> None:
        self.matcher = PatternMatcher(ignore_rules)
        self.cancel = cancel

    def build(self, dest: Path | str, source: Path | str) -> None:
        """Package a file or directory into dest.

        Raises:
            SourceNotFoundError: If source does not exist
            ArtifactIOError: If reading the source or writing dest fails
            OperationCancelledError: If the cancel event is set
        """
        source = Path(source)
        if not source.exists():
            raise SourceNotFoundError(f"invalid source path: {source}")

        if source.is_dir():
            self.build_directory(dest, source)
        else:
            self.build_file(dest, source)

    def build_file(self, dest: Path | str, source: Path | str) -> None:
        """Archive a single file under its basename. Ignore rules do not apply."""
        source = Path(source)
        with self._open_archive(dest) as tar:
            self._check_cancelled()
            self._add(tar, source.resolve(), source.name)

    def build_directory(self, dest: Path | str, source: Path | str) -> None:
        """Archive a directory tree filtered by the ignore rules."""
        source = Path(source)
        archive = self._open_archive(dest)
        with archive as tar:
            for entry in iter_entries(source, self.matcher, skip=archive.own_paths()):
                self._check_cancelled()
                self._add(tar, source / entry.path, entry.arcname)

    def _add(self, tar: tarfile.TarFile, path: Path, arcname: str) -> None:
        try:
            _add_entry(tar, path, arcname)
        except OSError as e:
            raise ArtifactIOError("archive", str(path), e) from e

    def _check_cancelled(self) -> None:
        if self.cancel is not None and self.cancel.is_set():
            raise OperationCancelledError("archive build cancelled")

    def _open_archive(self, dest: Path | str) -> "_AtomicArchive":
        return _AtomicArchive(Path(dest))


class _AtomicArchive:
    """Context manager yielding a tar stream that commits on clean exit."""

    def __init__(self, dest: Path) -> None:
        self.dest = dest
        self._tmp_path: Optional[str] = None
        self._raw = None
        self._gzip: Optional[gzip.GzipFile] = None
        self._tar: Optional[tarfile.TarFile] = None

    def __enter__(self) -> tarfile.TarFile:
        try:
            self.dest.parent.mkdir(parents=True, exist_ok=True)
            fd, self._tmp_path = tempfile.mkstemp(
                prefix=f".{self.dest.name}.", suffix=".tmp", dir=self.dest.parent
            )
            self._raw = os.fdopen(fd, "wb")
        except OSError as e:
            raise ArtifactIOError("create", str(self.dest), e) from e

        self._gzip = gzip.GzipFile(filename="", mode="wb", fileobj=self._raw, mtime=0)
        self._tar = tarfile.open(
            fileobj=self._gzip,
            mode="w",
            format=tarfile.PAX_FORMAT,
            bufsize=CHUNK_SIZE,
        )
        return self._tar

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        try:
            self._close()
        except OSError as e:
            self._discard()
            if exc_type is None:
                raise ArtifactIOError("write", str(self.dest), e) from e
            return
        if exc_type is not None:
            self._discard()
            return

        try:
            os.chmod(self._tmp_path, 0o644)
            os.replace(self._tmp_path, self.dest)
        except OSError as e:
            self._discard()
            raise ArtifactIOError("rename", str(self.dest), e) from e
        logger.debug("wrote archive %s", self.dest)

    def own_paths(self) -> set[str]:
        """Real paths of the destination and its temporary file."""
        paths = {os.path.realpath(self.dest)}
        if self._tmp_path:
            paths.add(os.path.realpath(self._tmp_path))
        return paths

    def _close(self) -> None:
        error: Optional[OSError] = None
        for stream in (self._tar, self._gzip, self._raw):
            if stream is None:
                continue
            try:
                stream.close()
            except OSError as e:
                error = error or e
        if error is not None:
            raise error

    def _discard(self) -> None:
        if self._tmp_path and os.path.exists(self._tmp_path):
            os.unlink(self._tmp_path)


def build(
    dest: Path | str,
    source: Path | str,
    ignore_rules: Iterable[IgnoreRule | str] | None = None,
    cancel: Optional[threading.Event] = None,
) -> None:
    """Build a gzip-compressed tarball from a file or directory.

    Args:
        dest: Path of the archive to create
        source: File or directory to package
        ignore_rules: Gitignore-style patterns, applied only to directories
        cancel: Optional event checked before each entry is written

    Raises:
        SourceNotFoundError: If source does not exist
        ArtifactIOError: If the archive cannot be written
        OperationCancelledError: If cancel is set during the build
    """
    ArchiveBuilder(ignore_rules or (), cancel=cancel).build(dest, source)
