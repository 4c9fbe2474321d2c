"""Scope configuration module.

Configuration is read from environment variables so that the same settings
can be shared between an outer build and the command line.
"""
from __future__ import annotations

import codecs
import os
from dataclasses import dataclass, field
from pathlib import Path

from scope_resolver.patterns import ScopeSet
from scope_resolver.source_tree import ALL_PROFILES, ActiveProfiles


DEFAULT_LOCAL_REPOSITORY = Path("~/.m2/repository")


def _split_list(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _optional_list(value: str | None) -> list[str] | None:
    if value is None:
        return None
    return _split_list(value)


def _bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    v = value.strip().lower()
    if v in ("true", "1", "yes"):
        return True
    if v in ("false", "0", "no"):
        return False
    return default


@dataclass
class ScopeConfig:
    """Scope configuration container.

    Attributes:
        includes: Include patterns, `groupId[:artifactId[:version]]` wildcards
        excludes: Exclude patterns in the same syntax
        exclude_snapshots: Whether to exclude every `*-SNAPSHOT` version
        local_repository: Root of the local Maven repository
        encoding: Encoding of the pom.xml files
        profiles: Active profile ids; None activates every profile
    """

    includes: list[str] = field(default_factory=list)
    excludes: list[str] = field(default_factory=list)
    exclude_snapshots: bool = False
    local_repository: Path = DEFAULT_LOCAL_REPOSITORY
    encoding: str = "utf-8"
    profiles: list[str] | None = None

    @classmethod
    def from_env(cls) -> "ScopeConfig":
        """Create configuration from environment variables.

        Environment variables:
            SCOPE_INCLUDES: comma-separated include patterns (default: match all)
            SCOPE_EXCLUDES: comma-separated exclude patterns
            SCOPE_EXCLUDE_SNAPSHOTS: "true" or "false" (default: "false")
            SCOPE_LOCAL_REPOSITORY: local Maven repository (default: "~/.m2/repository")
            SCOPE_ENCODING: pom.xml encoding (default: "utf-8")
            SCOPE_PROFILES: comma-separated active profile ids (default: all profiles)
        """
        return cls(
            includes=_split_list(os.getenv("SCOPE_INCLUDES")),
            excludes=_split_list(os.getenv("SCOPE_EXCLUDES")),
            exclude_snapshots=_bool(os.getenv("SCOPE_EXCLUDE_SNAPSHOTS"), False),
            local_repository=Path(
                os.getenv("SCOPE_LOCAL_REPOSITORY", str(DEFAULT_LOCAL_REPOSITORY))
            ).expanduser(),
            encoding=os.getenv("SCOPE_ENCODING", "utf-8"),
            profiles=_optional_list(os.getenv("SCOPE_PROFILES")),
        )

    def validate(self) -> None:
        """Validate the configuration.

        Raises:
            ValueError: If the configuration is unusable.
        """
        try:
            codecs.lookup(self.encoding)
        except LookupError:
            raise ValueError(f"Unsupported encoding: {self.encoding}") from None
        if self.local_repository.exists() and not self.local_repository.is_dir():
            raise ValueError(f"Local repository is not a directory: {self.local_repository}")

    def scope_set(self) -> ScopeSet:
        """Build the ScopeSet described by this configuration."""
        return ScopeSet.from_strings(
            self.includes,
            self.excludes,
            exclude_snapshots=self.exclude_snapshots,
        )

    def active_profiles(self) -> ActiveProfiles:
        """Build the profile selector described by this configuration."""
        if self.profiles is None:
            return ALL_PROFILES
        return ActiveProfiles.of(*self.profiles)
