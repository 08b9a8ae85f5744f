"""Tests for gitignore-style pattern matching."""

import pytest

from oci_artifact_client.exceptions import InvalidIgnorePatternError
from oci_artifact_client.tar.ignore import (
    IgnoreRule,
    MatchResult,
    PatternMatcher,
    parse_ignore_rule,
    parse_ignore_rules,
)


def test_parse_flags():
    """Test that markers are stripped into flags."""
    assert parse_ignore_rule("ignore.txt") == IgnoreRule("ignore.txt")
    assert parse_ignore_rule("ignore-dir/") == IgnoreRule("ignore-dir", dir_only=True)
    assert parse_ignore_rule("/deploy") == IgnoreRule("deploy", anchored=True)
    assert parse_ignore_rule("!/internal") == IgnoreRule(
        "internal", negate=True, anchored=True
    )
    # An interior separator anchors the pattern, as in git
    assert parse_ignore_rule("somedir/git") == IgnoreRule("somedir/git", anchored=True)


def test_parse_skips_blanks_and_comments():
    """Test that blank lines and comments produce no rules."""
    rules = parse_ignore_rules(["", "   ", "# comment", "*.md"])
    assert rules == [IgnoreRule("*.md")]


def test_parse_escapes():
    """Test backslash escapes."""
    assert parse_ignore_rule("\\!important") == IgnoreRule("!important")
    assert parse_ignore_rule("\\#hash") == IgnoreRule("#hash")
    assert parse_ignore_rule("foo\\ ") == IgnoreRule("foo ")
    assert parse_ignore_rule("foo\\   ") == IgnoreRule("foo ")
    assert parse_ignore_rule("\\*.txt") == IgnoreRule("[*].txt")


def test_escaped_patterns_match_literally():
    """Test that escaped characters match themselves."""
    matcher = PatternMatcher(["foo\\ ", "\\*.txt", "\\!important", "what\\?"])
    assert not matcher.matches("foo ", is_dir=False)
    assert matcher.matches("foo", is_dir=False)
    assert not matcher.matches("*.txt", is_dir=False)
    assert matcher.matches("a.txt", is_dir=False)
    assert not matcher.matches("!important", is_dir=False)
    assert not matcher.matches("what?", is_dir=False)
    assert matcher.matches("whats", is_dir=False)


def test_parse_empty_pattern_strict():
    """Test strict validation of patterns that match nothing."""
    assert parse_ignore_rule("!") is None
    assert parse_ignore_rule("/") is None

    with pytest.raises(InvalidIgnorePatternError):
        parse_ignore_rule("!", strict=True)
    with pytest.raises(InvalidIgnorePatternError):
        PatternMatcher.from_patterns(["ok", "/"], strict=True)


def test_no_rules_includes_everything():
    """Test default verdict."""
    matcher = PatternMatcher()
    assert matcher.matches("anything/at/all.txt", is_dir=False)
    assert matcher.evaluate("dir", is_dir=True) is MatchResult.INCLUDED


def test_unanchored_matches_any_depth():
    """Test that a bare name matches at every level."""
    matcher = PatternMatcher(["ignore.txt"])
    assert not matcher.matches("ignore.txt", is_dir=False)
    assert not matcher.matches("a/b/ignore.txt", is_dir=False)
    assert matcher.matches("ignore.txt.bak", is_dir=False)


def test_anchored_matches_root_only():
    """Test that a leading slash anchors to the walked root."""
    matcher = PatternMatcher(["/deploy"])
    assert matcher.evaluate("deploy", is_dir=True) is MatchResult.PRUNED
    assert matcher.matches("somedir/deploy", is_dir=True)


def test_dir_only_pattern():
    """Test that a trailing slash only matches directories."""
    matcher = PatternMatcher(["ignore-dir/"])
    assert matcher.evaluate("ignore-dir", is_dir=True) is MatchResult.PRUNED
    assert matcher.evaluate("ignore-dir", is_dir=False) is MatchResult.INCLUDED
    assert matcher.evaluate("nested/ignore-dir", is_dir=True) is MatchResult.PRUNED
    # Contents of a matched directory are matched too
    assert not matcher.matches("ignore-dir/deployment.yaml", is_dir=False)


def test_last_match_wins():
    """Test ordered evaluation with negation."""
    matcher = PatternMatcher(["*.yaml", "!keep.yaml"])
    assert not matcher.matches("drop.yaml", is_dir=False)
    assert matcher.matches("keep.yaml", is_dir=False)

    reversed_matcher = PatternMatcher(["!keep.yaml", "*.yaml"])
    assert not reversed_matcher.matches("keep.yaml", is_dir=False)


def test_root_wildcard_with_negation():
    """Test keeping a single top-level directory."""
    matcher = PatternMatcher(["/*", "!/internal"])
    assert matcher.evaluate("build.go", is_dir=False) is MatchResult.EXCLUDED
    assert matcher.evaluate("testdata", is_dir=True) is MatchResult.PRUNED
    assert matcher.evaluate("internal", is_dir=True) is MatchResult.INCLUDED
    assert matcher.matches("internal/tar/tar.go", is_dir=False)


def test_anchored_nested_path():
    """Test a multi-segment pattern."""
    matcher = PatternMatcher(["somedir/git"])
    assert matcher.evaluate("somedir/git", is_dir=True) is MatchResult.PRUNED
    assert matcher.matches("somedir/repo.yaml", is_dir=False)
    assert matcher.matches("other/somedir/git", is_dir=True)


def test_double_star():
    """Test ** in leading, middle and trailing position."""
    leading = PatternMatcher(["**/cache"])
    assert not leading.matches("cache", is_dir=True)
    assert not leading.matches("a/b/cache", is_dir=True)

    middle = PatternMatcher(["a/**/z.txt"])
    assert not middle.matches("a/z.txt", is_dir=False)
    assert not middle.matches("a/b/c/z.txt", is_dir=False)
    assert middle.matches("b/z.txt", is_dir=False)

    trailing = PatternMatcher(["logs/**"])
    assert trailing.matches("logs", is_dir=True)
    assert not trailing.matches("logs/today.log", is_dir=False)


def test_glob_characters():
    """Test per-segment glob syntax."""
    matcher = PatternMatcher(["*.tmp", "file?.log", "[ab].txt"])
    assert not matcher.matches("x/y.tmp", is_dir=False)
    assert not matcher.matches("file1.log", is_dir=False)
    assert matcher.matches("file10.log", is_dir=False)
    assert not matcher.matches("a.txt", is_dir=False)
    assert matcher.matches("c.txt", is_dir=False)
    # Wildcards never cross a separator
    assert PatternMatcher(["/a*c"]).matches("ab/c", is_dir=False)


def test_leading_dot_segments_are_ignored():
    """Test that './' prefixes do not affect anchoring."""
    matcher = PatternMatcher(["/deploy"])
    assert not matcher.matches("./deploy", is_dir=True)
