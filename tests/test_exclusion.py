"""Tests for exclusion pattern compilation and matching."""

import pytest

from vault_backup.sync.exclusion import (
    DEFAULT_EXCLUDES,
    GlobPattern,
    LiteralPattern,
    build_exclude_set,
    compile_pattern,
    compile_patterns,
    rsync_exclude_args,
    should_exclude,
)


class TestCompilePattern:
    """Test how raw strings become literal or glob patterns."""

    def test_plain_name_is_literal(self):
        assert compile_pattern("node_modules") == LiteralPattern("node_modules")

    def test_wildcards_make_a_glob(self):
        assert isinstance(compile_pattern("*.log"), GlobPattern)
        assert isinstance(compile_pattern("te?t"), GlobPattern)

    def test_brackets_alone_stay_literal(self):
        pattern = compile_pattern("weird[1]")
        assert isinstance(pattern, LiteralPattern)
        assert pattern.matches("weird[1].txt")
        assert not pattern.matches("weird1")

    def test_whitespace_and_leading_separator_are_stripped(self):
        assert compile_pattern(" /.git ") == LiteralPattern(".git")

    @pytest.mark.parametrize("raw", ["logs/", "**/logs/**", "/logs/", "**/logs/"])
    def test_trailing_separator_means_exact_name(self, raw):
        pattern = compile_pattern(raw)
        assert isinstance(pattern, GlobPattern)
        assert pattern.text == "logs"
        assert pattern.matches("logs")
        assert not pattern.matches("blogs")
        assert not pattern.matches("logs.old")
        assert pattern.to_rsync() == "logs"

    def test_rsync_style_any_depth_prefix(self):
        assert compile_pattern("**/*.sock") == compile_pattern("*.sock")

    @pytest.mark.parametrize("raw", ["", "   ", "/", "//", "**/", "/**"])
    def test_empty_pattern_rejected(self, raw):
        with pytest.raises(ValueError):
            compile_pattern(raw)

    @pytest.mark.parametrize("raw", ["sub/deep", "/sub/deep/", "a/*.log", "**/x/y/**"])
    def test_multi_segment_pattern_rejected(self, raw):
        with pytest.raises(ValueError, match="single path segment"):
            compile_pattern(raw)

    def test_globs_with_same_text_are_equal(self):
        assert GlobPattern.compile("*.log") == GlobPattern.compile("*.log")
        assert len({GlobPattern.compile("*.log"), GlobPattern.compile("*.log")}) == 1


class TestMatching:
    """Test matching semantics of both pattern kinds."""

    def test_literal_matches_exact_and_substring(self):
        pattern = LiteralPattern("cache")
        assert pattern.matches("cache")
        assert pattern.matches("pip-cache-dir")
        assert not pattern.matches("Cache")

    def test_glob_is_anchored(self):
        pattern = compile_pattern("*.log")
        assert pattern.matches("b.log")
        assert pattern.matches(".log")
        assert not pattern.matches("b.log.gz")

    def test_question_mark_matches_one_character(self):
        pattern = compile_pattern("te?t.md")
        assert pattern.matches("test.md")
        assert pattern.matches("text.md")
        assert not pattern.matches("tet.md")
        assert not pattern.matches("teest.md")

    def test_regex_metacharacters_are_literal_in_globs(self):
        pattern = compile_pattern("a+b(*).txt")
        assert pattern.matches("a+b(1).txt")
        assert not pattern.matches("aab1.txt")

    def test_should_exclude_accepts_strings_and_patterns(self):
        assert should_exclude("b.log", ["*.log"])
        assert should_exclude("b.log", [compile_pattern("*.log")])
        assert not should_exclude("a.txt", ["*.log", ".git"])

    def test_should_exclude_with_no_patterns(self):
        assert not should_exclude("anything", [])


class TestExcludeSet:
    """Test the union with the baseline defaults."""

    def test_defaults_are_always_present(self):
        patterns = build_exclude_set(["node_modules"])
        assert LiteralPattern("node_modules") in patterns
        for default in DEFAULT_EXCLUDES:
            assert compile_pattern(default) in patterns

    def test_default_directories_match_whole_names(self):
        patterns = build_exclude_set()
        for name in ("Cache", "cache", "tmp", "Temp", "log", "logs", "Logs", "app.log", "x.sock"):
            assert should_exclude(name, patterns), name
        for name in ("blogs", "catalogs.pdf", "cache.db", "tmpfiles", "Temperature.csv"):
            assert not should_exclude(name, patterns), name

    def test_custom_defaults(self):
        patterns = build_exclude_set(["*.bak"], defaults=[])
        assert patterns == frozenset({compile_pattern("*.bak")})

    def test_duplicates_collapse(self):
        patterns = compile_patterns(["*.log", "*.log", compile_pattern("*.log")])
        assert len(patterns) == 1


class TestRsyncRendering:
    """Test rendering of patterns as rsync exclude rules."""

    def test_literal_becomes_substring_rule(self):
        assert LiteralPattern("node_modules").to_rsync() == "*node_modules*"

    def test_literal_escapes_wildcard_characters(self):
        assert LiteralPattern("weird[1]").to_rsync() == "*weird\\[1\\]*"

    def test_glob_keeps_wildcards(self):
        assert compile_pattern("*.log").to_rsync() == "*.log"
        assert compile_pattern("te?t.md").to_rsync() == "te?t.md"

    def test_double_star_collapses(self):
        assert compile_pattern("**.bak").to_rsync() == "*.bak"

    def test_args_are_sorted_pairs(self):
        args = rsync_exclude_args(compile_patterns(["b*", "a"]))
        assert args == ["--exclude", "*a*", "--exclude", "b*"]
