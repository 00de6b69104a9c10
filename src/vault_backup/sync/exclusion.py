"""Exclusion patterns matched against path segments.

A pattern is either a literal name or a glob. Literals match a segment when
they equal it or appear anywhere inside it, so ``node_modules`` also skips
``node_modules.old``. Globs use ``*`` (any run of characters) and ``?`` (one
character) and must match the whole segment. A trailing ``/`` (or the rsync
style ``**/name/**``) turns a plain name into a glob, so ``logs/`` skips
directories called ``logs`` but keeps ``blogs``.

Both kinds know how to render themselves as an rsync ``--exclude`` rule that
selects the same segments, so the manual copy and rsync skip the same files.
"""

import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import FrozenSet, Iterable, List, Union

WILDCARDS = frozenset("*?")

# Skipped by every tree transfer on top of caller patterns.
DEFAULT_EXCLUDES = (
    "*.sock",
    "*.lock",
    "*.tmp",
    "*.log",
    "Cache/",
    "cache/",
    "Temp/",
    "tmp/",
    "log/",
    "logs/",
    "Logs/",
)

# Characters that need a backslash inside an rsync wildcard rule.
_RSYNC_SPECIAL = re.compile(r"([\\\[\]*?])")


def _rsync_escape(text: str) -> str:
    return _RSYNC_SPECIAL.sub(r"\\\1", text)


@dataclass(frozen=True)
class LiteralPattern:
    """Exact name or substring of a name."""
    text: str

    def matches(self, name: str) -> bool:
        return name == self.text or self.text in name

    def to_rsync(self) -> str:
        return f"*{_rsync_escape(self.text)}*"

    def __str__(self):
        return self.text


@dataclass(frozen=True)
class GlobPattern:
    """Wildcard pattern anchored to the whole name."""
    text: str
    regex: "re.Pattern[str]" = field(compare=False, hash=False, repr=False)

    @classmethod
    def compile(cls, text: str) -> "GlobPattern":
        parts = []
        for char in text:
            if char == "*":
                parts.append(".*")
            elif char == "?":
                parts.append(".")
            else:
                parts.append(re.escape(char))
        return cls(text, re.compile("^" + "".join(parts) + "$", re.DOTALL))

    def matches(self, name: str) -> bool:
        return self.regex.match(name) is not None

    def to_rsync(self) -> str:
        rule = []
        for char in self.text:
            if char in WILDCARDS:
                # "**" would make rsync match against the full path
                if char == "*" and rule and rule[-1] == "*":
                    continue
                rule.append(char)
            else:
                rule.append(_rsync_escape(char))
        return "".join(rule)

    def __str__(self):
        return self.text


ExclusionPattern = Union[LiteralPattern, GlobPattern]


@lru_cache(maxsize=512)
def compile_pattern(text: str) -> ExclusionPattern:
    """Turn a raw pattern string into a literal or glob pattern.

    Patterns only ever see a single segment, so a separator inside one is
    rejected. A trailing separator asks for the exact name.

    >>> compile_pattern("node_modules")
    LiteralPattern(text='node_modules')
    >>> compile_pattern("*.log").matches("b.log")
    True
    >>> compile_pattern("**/logs/**").matches("blogs")
    False
    """
    cleaned = text.strip()
    if cleaned.startswith("**/"):
        cleaned = cleaned[3:]
    exact = cleaned.endswith(("/", "/**"))
    if cleaned.endswith("/**"):
        cleaned = cleaned[:-3]
    cleaned = cleaned.strip("/")
    if not cleaned:
        raise ValueError(f"Empty exclusion pattern: {text!r}")
    if "/" in cleaned:
        raise ValueError(f"Exclusion pattern must name a single path segment: {text!r}")
    if exact or WILDCARDS.intersection(cleaned):
        return GlobPattern.compile(cleaned)
    return LiteralPattern(cleaned)


def compile_patterns(patterns: Iterable[Union[str, ExclusionPattern]]) -> FrozenSet[ExclusionPattern]:
    """Compile a mix of strings and already compiled patterns."""
    compiled = set()
    for pattern in patterns:
        if isinstance(pattern, (LiteralPattern, GlobPattern)):
            compiled.add(pattern)
        else:
            compiled.add(compile_pattern(pattern))
    return frozenset(compiled)


def build_exclude_set(patterns: Iterable[Union[str, ExclusionPattern]] = (),
                      defaults: Iterable[str] = DEFAULT_EXCLUDES) -> FrozenSet[ExclusionPattern]:
    """Union caller patterns with the baseline exclusions."""
    return compile_patterns(patterns) | compile_patterns(defaults)


def should_exclude(name: str, patterns: Iterable[Union[str, ExclusionPattern]]) -> bool:
    """Return True if the path segment ``name`` matches any pattern.

    >>> should_exclude("b.log", ["*.log"])
    True
    >>> should_exclude("my_node_modules", ["node_modules"])
    True
    >>> should_exclude("a.txt", ["*.log", ".git"])
    False
    """
    for pattern in patterns:
        if not isinstance(pattern, (LiteralPattern, GlobPattern)):
            pattern = compile_pattern(pattern)
        if pattern.matches(name):
            return True
    return False


def rsync_exclude_args(patterns: Iterable[ExclusionPattern]) -> List[str]:
    """Render patterns as ``--exclude`` flags in a stable order."""
    args = []
    for pattern in sorted(patterns, key=str):
        args.extend(["--exclude", pattern.to_rsync()])
    return args
