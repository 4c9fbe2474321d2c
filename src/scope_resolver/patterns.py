"""Wildcard patterns over Maven coordinates and the scope sets built from them.

A wildcard pattern is a literal string in which `*` matches zero or more
arbitrary characters. Nothing else is escaped before the pattern reaches the
regular expression engine, so `.` in `org.acme` matches any character. Real
group and artifact ids are dotted lowercase names where this never matters,
but ids containing `+`, `(` or `[` match loosely or fail to compile.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

from scope_resolver.exceptions import PatternSyntaxError, ScopeResolverError


MULTI_WILDCARD = "*"
MATCH_ALL_REGEX = ".*"
DELIMITER = ":"
SNAPSHOT_SUFFIX = "-SNAPSHOT"


class Pattern:
    """A compiled wildcard matcher for one of groupId, artifactId or version."""

    __slots__ = ("_source", "_regex")

    def __init__(self, source: str, regex: re.Pattern[str]) -> None:
        self._source = source
        self._regex = regex

    @classmethod
    def compile(cls, wildcard: str) -> "Pattern":
        """Compile a wildcard string.

        Raises:
            PatternSyntaxError: If the resulting regular expression is invalid.
        """
        try:
            regex = re.compile(wildcard.replace(MULTI_WILDCARD, MATCH_ALL_REGEX))
        except re.error as exc:
            raise PatternSyntaxError(wildcard, str(exc)) from exc
        return cls(wildcard, regex)

    @staticmethod
    def match_all() -> "Pattern":
        return _MATCH_ALL

    @staticmethod
    def match_snapshot_versions() -> "Pattern":
        return _MATCH_SNAPSHOT_VERSIONS

    @property
    def source(self) -> str:
        """The canonical wildcard string."""
        return self._source

    @property
    def is_match_all(self) -> bool:
        return self._source == MULTI_WILDCARD

    @property
    def wildcard_position(self) -> int:
        return self._source.find(MULTI_WILDCARD)

    def matches(self, value: str) -> bool:
        return self._regex.fullmatch(value) is not None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Pattern):
            return NotImplemented
        return self._source == other._source

    def __hash__(self) -> int:
        return hash(self._source)

    def __repr__(self) -> str:
        return f"Pattern({self._source!r})"

    def __str__(self) -> str:
        return self._source


_MATCH_ALL = Pattern.compile(MULTI_WILDCARD)
_MATCH_SNAPSHOT_VERSIONS = Pattern.compile(MULTI_WILDCARD + SNAPSHOT_SUFFIX)


class TriplePattern:
    """A filter over `groupId:artifactId:version` triples.

    Examples:
        - `org.my-group` is `org.my-group:*:*`: any artifact and version in that group.
        - `org.my-group*` also covers `org.my-group.api`, `org.my-group.impl`, etc.
        - `org.my-group:my-artifact` is any version of one artifact.
        - `org.my-group:my-artifact:1.2.3` is just that version.
    """

    __slots__ = ("group_pattern", "artifact_pattern", "version_pattern", "_source")

    def __init__(self, group_pattern: Pattern, artifact_pattern: Pattern, version_pattern: Pattern) -> None:
        self.group_pattern = group_pattern
        self.artifact_pattern = artifact_pattern
        self.version_pattern = version_pattern
        self._source = _canonical(group_pattern, artifact_pattern, version_pattern)

    @classmethod
    def parse(cls, wildcard: str) -> "TriplePattern":
        """Parse up to three colon-delimited wildcard patterns.

        Empty tokens are skipped and missing trailing tokens match anything.
        """
        tokens = [t for t in wildcard.split(DELIMITER) if t]
        if len(tokens) > 3:
            raise PatternSyntaxError(wildcard, "expected at most groupId:artifactId:version")
        patterns = [Pattern.compile(t) for t in tokens]
        patterns += [Pattern.match_all()] * (3 - len(patterns))
        return cls(*patterns)

    @staticmethod
    def builder() -> "TriplePatternBuilder":
        return TriplePatternBuilder()

    @staticmethod
    def match_all() -> "TriplePattern":
        return _MATCH_ALL_TRIPLE

    @staticmethod
    def match_snapshots() -> "TriplePattern":
        return _MATCH_SNAPSHOTS_TRIPLE

    def matches(self, group_id: str, artifact_id: str, version: str) -> bool:
        return (
            self.group_pattern.matches(group_id)
            and self.artifact_pattern.matches(artifact_id)
            and self.version_pattern.matches(version)
        )

    def matches_ga(self, group_id: str, artifact_id: str) -> bool:
        return self.group_pattern.matches(group_id) and self.artifact_pattern.matches(artifact_id)

    def canonical_string(self) -> str:
        return self._source

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TriplePattern):
            return NotImplemented
        return self._source == other._source

    def __hash__(self) -> int:
        return hash(self._source)

    def __repr__(self) -> str:
        return f"TriplePattern({self._source!r})"

    def __str__(self) -> str:
        return self._source


def _canonical(group: Pattern, artifact: Pattern, version: Pattern) -> str:
    # group is never omitted; artifact only together with version
    if not version.is_match_all:
        return DELIMITER.join((group.source, artifact.source, version.source))
    if not artifact.is_match_all:
        return DELIMITER.join((group.source, artifact.source))
    return group.source


class TriplePatternBuilder:
    """Sets the three parts of a TriplePattern independently."""

    def __init__(self) -> None:
        self._group = Pattern.match_all()
        self._artifact = Pattern.match_all()
        self._version = Pattern.match_all()

    def group(self, wildcard: str) -> "TriplePatternBuilder":
        self._group = Pattern.compile(wildcard)
        return self

    def artifact(self, wildcard: str) -> "TriplePatternBuilder":
        self._artifact = Pattern.compile(wildcard)
        return self

    def version(self, wildcard: str) -> "TriplePatternBuilder":
        self._version = Pattern.compile(wildcard)
        return self

    def build(self) -> TriplePattern:
        return TriplePattern(self._group, self._artifact, self._version)


_MATCH_ALL_TRIPLE = TriplePattern(_MATCH_ALL, _MATCH_ALL, _MATCH_ALL)
_MATCH_SNAPSHOTS_TRIPLE = TriplePattern(_MATCH_ALL, _MATCH_ALL, _MATCH_SNAPSHOT_VERSIONS)


@dataclass(frozen=True)
class ScopeSet:
    """An ordered list of includes and an ordered list of excludes.

    A triple is a member when at least one include and no exclude matches it.
    Use `ScopeSet.builder()` to create instances; an empty include list is
    replaced by a single match-all include.
    """

    includes: tuple[TriplePattern, ...]
    excludes: tuple[TriplePattern, ...] = ()

    @staticmethod
    def builder() -> "ScopeSetBuilder":
        return ScopeSetBuilder()

    @classmethod
    def from_strings(
        cls,
        includes: Iterable[str] | None,
        excludes: Iterable[str] | None = None,
        *,
        exclude_snapshots: bool = False,
    ) -> "ScopeSet":
        b = cls.builder().includes(includes).excludes(excludes)
        if exclude_snapshots:
            b.exclude_snapshots()
        return b.build()

    def contains(self, group_id: str, artifact_id: str, version: str) -> bool:
        """Return True if the given triple is a member of this scope set."""
        return any(p.matches(group_id, artifact_id, version) for p in self.includes) and not any(
            p.matches(group_id, artifact_id, version) for p in self.excludes
        )

    def contains_ga(self, group_id: str, artifact_id: str) -> bool:
        """Like `contains` but for a version-less `groupId:artifactId`.

        Includes match on their group and artifact parts. Excludes restricted
        to some versions (e.g. `*:*:*-SNAPSHOT`) cannot exclude a whole
        artifact, so only the excludes matching every version apply.
        """
        return any(p.matches_ga(group_id, artifact_id) for p in self.includes) and not any(
            p.matches_ga(group_id, artifact_id) for p in self.excludes if p.version_pattern.is_match_all
        )

    def __str__(self) -> str:
        inc = ", ".join(str(p) for p in self.includes)
        exc = ", ".join(str(p) for p in self.excludes)
        return f"ScopeSet [excludes=[{exc}], includes=[{inc}]]"


class ScopeSetBuilder:
    """Accumulates include and exclude patterns; consumed by `build()`."""

    def __init__(self) -> None:
        self._includes: list[TriplePattern] | None = []
        self._excludes: list[TriplePattern] | None = []

    def _lists(self) -> tuple[list[TriplePattern], list[TriplePattern]]:
        if self._includes is None or self._excludes is None:
            raise ScopeResolverError("ScopeSetBuilder cannot be used after build()")
        return self._includes, self._excludes

    def include(self, wildcard: str) -> "ScopeSetBuilder":
        self._lists()[0].append(TriplePattern.parse(wildcard))
        return self

    def includes(self, *wildcards: str | Iterable[str] | None) -> "ScopeSetBuilder":
        for w in _flatten(wildcards):
            self.include(w)
        return self

    def exclude(self, wildcard: str) -> "ScopeSetBuilder":
        self._lists()[1].append(TriplePattern.parse(wildcard))
        return self

    def excludes(self, *wildcards: str | Iterable[str] | None) -> "ScopeSetBuilder":
        for w in _flatten(wildcards):
            self.exclude(w)
        return self

    def exclude_snapshots(self) -> "ScopeSetBuilder":
        self._lists()[1].append(TriplePattern.match_snapshots())
        return self

    def build(self) -> ScopeSet:
        includes, excludes = self._lists()
        if not includes:
            includes.append(TriplePattern.match_all())
        self._includes = None
        self._excludes = None
        return ScopeSet(includes=tuple(includes), excludes=tuple(excludes))


def _flatten(items: tuple[str | Iterable[str] | None, ...]) -> list[str]:
    out: list[str] = []
    for item in items:
        if item is None:
            continue
        if isinstance(item, str):
            out.append(item)
        else:
            out.extend(item)
    return out
