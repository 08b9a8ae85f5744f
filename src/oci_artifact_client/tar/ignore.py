"""Gitignore-style rules for filtering archive contents."""

import logging
from dataclasses import dataclass
from enum import Enum
from fnmatch import fnmatchcase
from typing import Iterable, Iterator, Sequence

from ..exceptions import InvalidIgnorePatternError

logger = logging.getLogger(__name__)

ANY_DEPTH = "**"


class MatchResult(Enum):
    """Verdict for a single path."""

    INCLUDED = "included"
    EXCLUDED = "excluded"
    PRUNED = "pruned"  # Excluded directory, do not descend


@dataclass(frozen=True)
class IgnoreRule:
    """A parsed ignore pattern."""

    pattern: str
    negate: bool = False
    anchored: bool = False
    dir_only: bool = False

    @property
    def segments(self) -> tuple[str, ...]:
        parts = tuple(self.pattern.split("/"))
        if self.anchored or parts[0] == ANY_DEPTH:
            return parts
        return (ANY_DEPTH,) + parts

    def matches(self, parts: Sequence[str], is_dir: bool) -> bool:
        """Check whether the rule applies to a split relative path.

        A rule that matches a leading directory of the path applies to the
        whole path beneath it.
        """
        for length in _prefix_lengths(self.segments, parts):
            if length < len(parts) or is_dir or not self.dir_only:
                return True
        return False


def _prefix_lengths(segments: Sequence[str], parts: Sequence[str]) -> Iterator[int]:
    """Yield every n such that segments match parts[:n] exactly (n >= 1)."""
    if not segments:
        yield 0
        return

    head, rest = segments[0], segments[1:]
    if head == ANY_DEPTH:
        # A trailing ** matches contents only, never the directory itself
        start = 1 if not rest else 0
        for skip in range(start, len(parts) + 1):
            for length in _prefix_lengths(rest, parts[skip:]):
                if skip + length:
                    yield skip + length
        return

    if parts and fnmatchcase(parts[0], head):
        for length in _prefix_lengths(rest, parts[1:]):
            yield length + 1


def _trim_trailing_spaces(text: str) -> str:
    """Drop trailing spaces unless the last one is escaped with a backslash."""
    stripped = text.rstrip(" ")
    if len(stripped) < len(text):
        backslashes = len(stripped) - len(stripped.rstrip("\\"))
        if backslashes % 2:
            return stripped + " "
    return stripped


def _unescape(text: str) -> str:
    """Turn backslash escapes into literals fnmatch understands."""
    out = []
    chars = iter(text)
    for char in chars:
        if char == "\\":
            char = next(chars, "\\")
            out.append(f"[{char}]" if char in "*?[" else char)
        else:
            out.append(char)
    return "".join(out)


def parse_ignore_rule(line: str, strict: bool = False) -> IgnoreRule | None:
    """Parse one pattern line.

    Args:
        line: Pattern text in gitignore syntax
        strict: Raise instead of dropping patterns that match nothing

    Returns:
        The parsed rule, or None for blank lines and comments

    Raises:
        InvalidIgnorePatternError: In strict mode, for empty patterns
    """
    text = _trim_trailing_spaces(line.rstrip("\n"))
    if not text or text.startswith("#"):
        return None

    negate = False
    if text.startswith("!"):
        negate = True
        text = text[1:]

    dir_only = text.endswith("/")
    text = text.rstrip("/")

    anchored = text.startswith("/")
    text = text.lstrip("/")
    if "/" in text:
        # git anchors any pattern with an interior separator
        anchored = True
    text = _unescape(text)

    if not text:
        if strict:
            raise InvalidIgnorePatternError(f"Pattern matches nothing: {line!r}")
        logger.debug("dropping empty ignore pattern %r", line)
        return None

    return IgnoreRule(
        pattern=text, negate=negate, anchored=anchored, dir_only=dir_only
    )


def parse_ignore_rules(patterns: Iterable[str], strict: bool = False) -> list[IgnoreRule]:
    """Parse ordered ignore patterns, skipping blanks and comments."""
    rules = []
    for line in patterns:
        rule = parse_ignore_rule(line, strict=strict)
        if rule is not None:
            rules.append(rule)
    return rules


class PatternMatcher:
    """Evaluates ordered ignore rules against relative paths.

    Rules are tried in declaration order and the last matching rule wins.
    A path that matches no rule is included.
    """

    def __init__(self, rules: Iterable[IgnoreRule | str] = ()) -> None:
        self.rules: list[IgnoreRule] = []
        for rule in rules:
            if isinstance(rule, str):
                parsed = parse_ignore_rule(rule)
                if parsed is not None:
                    self.rules.append(parsed)
            else:
                self.rules.append(rule)

    @classmethod
    def from_patterns(cls, patterns: Iterable[str], strict: bool = False) -> "PatternMatcher":
        return cls(parse_ignore_rules(patterns, strict=strict))

    def evaluate(self, relative_path: str, is_dir: bool) -> MatchResult:
        """Evaluate a forward-slash path relative to the walked root.

        Args:
            relative_path: Path such as "deploy/repo.yaml"
            is_dir: Whether the path is a directory

        Returns:
            INCLUDED, EXCLUDED, or PRUNED for excluded directories
        """
        parts = [part for part in relative_path.split("/") if part not in ("", ".")]
        if not parts:
            return MatchResult.INCLUDED

        included = True
        for rule in self.rules:
            if rule.matches(parts, is_dir):
                included = rule.negate

        if included:
            return MatchResult.INCLUDED
        return MatchResult.PRUNED if is_dir else MatchResult.EXCLUDED

    def matches(self, relative_path: str, is_dir: bool) -> bool:
        """Return True if the path is included in the archive."""
        return self.evaluate(relative_path, is_dir) is MatchResult.INCLUDED
