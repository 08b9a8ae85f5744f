"""Archive building, extraction and payload detection."""

from .builder import ArchiveBuilder, build, iter_entries
from .extractor import copy_static, extract, untar
from .ignore import IgnoreRule, MatchResult, PatternMatcher, parse_ignore_rules
from .models import (
    DEFAULT_MAX_UNTAR_SIZE,
    UNBOUNDED,
    ArchiveEntry,
    EntryKind,
    ExtractOptions,
    LayerType,
)
from .sniff import looks_like_gzip

__all__ = [
    "ArchiveBuilder",
    "build",
    "iter_entries",
    "extract",
    "untar",
    "copy_static",
    "IgnoreRule",
    "MatchResult",
    "PatternMatcher",
    "parse_ignore_rules",
    "ArchiveEntry",
    "EntryKind",
    "ExtractOptions",
    "LayerType",
    "UNBOUNDED",
    "DEFAULT_MAX_UNTAR_SIZE",
    "looks_like_gzip",
]
