"""Walk the local Maven repository for artifacts belonging to a ScopeSet.

The repository layout is `<group as dirs>/<artifactId>/<version>/<file>`.
Instead of scanning the whole repository, the include patterns of the scope
set are reduced to the smallest list of subtrees that can contain a match.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path, PurePosixPath

from scope_resolver.exceptions import RepositoryScanError
from scope_resolver.models import ArtifactLocator, Gav
from scope_resolver.patterns import ScopeSet, TriplePattern


logger = logging.getLogger(__name__)

IGNORABLE_EXTENSIONS: tuple[str, ...] = (".sha1", ".md5", ".asc")

ROOT = PurePosixPath()

Visitor = Callable[[ArtifactLocator], None]


def has_ignorable_extension(name: str) -> bool:
    return name.endswith(IGNORABLE_EXTENSIONS)


def pattern_to_subtree(pattern: TriplePattern, version: str) -> PurePosixPath:
    """Return the deepest wildcard-free directory that can hold matches of `pattern`.

    The returned path is relative to the repository root; `ROOT` means the
    whole repository has to be scanned. The version pattern is not used: the
    caller always looks for one concrete `version`.
    """
    group = pattern.group_pattern
    pos = group.wildcard_position
    if pos == 0:
        return ROOT
    if pos > 0:
        period = group.source.rfind(".", 0, pos)
        if period <= 0:
            return ROOT
        return PurePosixPath(*group.source[:period].split("."))

    path = PurePosixPath(*group.source.split("."))
    artifact = pattern.artifact_pattern
    if artifact.wildcard_position >= 0:
        return path
    return path / artifact.source / version


def compute_subtrees(scope_set: ScopeSet, version: str) -> list[PurePosixPath]:
    """Merge the subtrees of all includes into a minimal covering list.

    No path in the result is an ancestor of another one; the order follows
    the order of the includes.
    """
    subtrees: list[PurePosixPath] = []
    for include in scope_set.includes:
        new = pattern_to_subtree(include, version)
        if new == ROOT:
            return [ROOT]
        if any(new.is_relative_to(p) for p in subtrees):
            continue
        narrower = [i for i, p in enumerate(subtrees) if p.is_relative_to(new)]
        if narrower:
            first = narrower[0]
            subtrees = [new if i == first else p for i, p in enumerate(subtrees) if i not in narrower[1:]]
        else:
            subtrees.append(new)
    return subtrees


class ScopeSetWalker:
    """Find the artifact files of one version that belong to a ScopeSet."""

    def __init__(self, repo_root: Path, scope_set: ScopeSet, version: str) -> None:
        self.repo_root = Path(repo_root)
        self.scope_set = scope_set
        self.version = version
        self.subtrees = compute_subtrees(scope_set, version)

    def walk(self, visitor: Visitor) -> None:
        """Call `visitor` for every matching artifact file.

        Raises:
            RepositoryScanError: If a directory cannot be listed. The walk stops
                at the first failure.
        """
        for subtree in self.subtrees:
            start = self.repo_root / subtree
            if not start.is_dir():
                logger.debug("Skipping missing subtree %s", start)
                continue
            logger.debug("Walking %s for version %s", start, self.version)
            self._walk_dir(start, [], visitor)

    def _walk_dir(self, directory: Path, can_hold_artifacts: list[bool], visitor: Visitor) -> None:
        can_hold_artifacts.append(directory.name == self.version)
        try:
            try:
                entries = sorted(directory.iterdir())
            except OSError as exc:
                raise RepositoryScanError("Could not list directory", directory) from exc
            for entry in entries:
                if entry.is_dir() and not entry.is_symlink():
                    self._walk_dir(entry, can_hold_artifacts, visitor)
                elif can_hold_artifacts[-1]:
                    self._visit_file(entry, visitor)
        finally:
            can_hold_artifacts.pop()

    def _visit_file(self, file: Path, visitor: Visitor) -> None:
        ga_dir = file.parent.parent
        artifact_id = ga_dir.name
        name = file.name
        prefix = f"{artifact_id}-{self.version}"
        if not name.startswith(prefix) or has_ignorable_extension(name):
            return

        try:
            group_path = ga_dir.parent.relative_to(self.repo_root)
        except ValueError:
            return
        group_id = ".".join(group_path.parts)
        if not group_id or not self.scope_set.contains(group_id, artifact_id, self.version):
            return

        parsed = _parse_suffix(name[len(prefix):])
        if parsed is None:
            return
        artifact_type, classifier = parsed
        visitor(
            ArtifactLocator(
                group_id=group_id,
                artifact_id=artifact_id,
                version=self.version,
                type=artifact_type,
                classifier=classifier,
                path=file,
            )
        )


def _parse_suffix(rest: str) -> tuple[str, str | None] | None:
    """Split `.type` or `-classifier.type` into (type, classifier).

    The classifier may be empty, as in `a-1.0-.jar`.
    """
    if len(rest) < 2:
        return None
    if rest[0] == ".":
        return rest[1:], None
    if rest[0] == "-":
        dot = rest.find(".", 1)
        if dot < 0 or dot == len(rest) - 1:
            return None
        return rest[dot + 1:], rest[1:dot]
    return None


def walk(repo_root: Path, scope_set: ScopeSet, version: str, visitor: Visitor) -> None:
    """Convenience wrapper around `ScopeSetWalker.walk`."""
    ScopeSetWalker(repo_root, scope_set, version).walk(visitor)


class ArtifactCollector:
    """A visitor that keeps every located artifact.

    `gav_paths` maps each version directory to the Gav stored in it.
    """

    def __init__(self) -> None:
        self.locators: list[ArtifactLocator] = []
        self.gav_paths: dict[Path, Gav] = {}

    def __call__(self, locator: ArtifactLocator) -> None:
        self.locators.append(locator)
        self.gav_paths[locator.path.parent] = Gav(
            group_id=locator.group_id,
            artifact_id=locator.artifact_id,
            version=locator.version,
        )

    def sorted(self) -> list[ArtifactLocator]:
        return sorted(self.locators)
