"""Custom exceptions for scope-resolver."""

from __future__ import annotations

from pathlib import Path


class ScopeResolverError(Exception):
    """Base exception for scope-resolver."""


class PatternSyntaxError(ScopeResolverError):
    """Raised when a wildcard pattern cannot be compiled."""

    def __init__(self, wildcard: str, reason: str) -> None:
        super().__init__(f"Invalid wildcard pattern [{wildcard}]: {reason}")
        self.wildcard = wildcard


class _PathError(ScopeResolverError):
    def __init__(self, message: str, path: str | Path) -> None:
        super().__init__(f"{message}: {path}")
        self.path = Path(path)


class DescriptorError(_PathError):
    """Raised when a pom.xml cannot be read, understood or rewritten."""


class MalformedDescriptorError(DescriptorError):
    """Raised when a pom.xml is not well-formed or declares an inconsistent model."""


class DescriptorIOError(DescriptorError):
    """Raised when a pom.xml cannot be read from or written to disk."""


class RepositoryScanError(_PathError):
    """Raised when a directory of the local repository cannot be traversed."""


class ModuleLookupError(ScopeResolverError):
    """Raised when a module is not part of the source tree."""

    def __init__(self, ga: object, root_directory: str | Path) -> None:
        super().__init__(f"No module [{ga}] found in the source tree rooted at [{root_directory}]")
        self.ga = ga
        self.root_directory = Path(root_directory)
