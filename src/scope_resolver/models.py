"""Pydantic models for Maven coordinates and located artifacts."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from scope_resolver.exceptions import ScopeResolverError


def _split(coordinates: str, min_parts: int, max_parts: int, kind: str) -> list[str]:
    parts = [p for p in coordinates.split(":") if p]
    if not min_parts <= len(parts) <= max_parts:
        raise ScopeResolverError(f"Cannot parse [{coordinates}] to a {kind}")
    return parts


class Ga(BaseModel):
    """Maven module identity (GroupId, ArtifactId)."""

    model_config = ConfigDict(frozen=True)

    group_id: str = Field(..., min_length=1)
    artifact_id: str = Field(..., min_length=1)

    @classmethod
    def parse(cls, coordinates: str) -> "Ga":
        """Parse a `groupId:artifactId` string."""
        g, a = _split(coordinates, 2, 2, cls.__name__)
        return cls(group_id=g, artifact_id=a)

    def compact(self) -> str:
        return f"{self.group_id}:{self.artifact_id}"

    def __str__(self) -> str:
        return self.compact()

    def __lt__(self, other: "Ga") -> bool:
        return (self.group_id, self.artifact_id) < (other.group_id, other.artifact_id)


class Gav(BaseModel):
    """Maven coordinates (GroupId, ArtifactId, Version)."""

    model_config = ConfigDict(frozen=True)

    group_id: str = Field(..., min_length=1)
    artifact_id: str = Field(..., min_length=1)
    version: str = Field(..., min_length=1)

    @classmethod
    def parse(cls, coordinates: str) -> "Gav":
        """Parse a `groupId:artifactId:version` string."""
        g, a, v = _split(coordinates, 3, 3, cls.__name__)
        return cls(group_id=g, artifact_id=a, version=v)

    @property
    def ga(self) -> Ga:
        return Ga(group_id=self.group_id, artifact_id=self.artifact_id)

    def compact(self) -> str:
        """Return a compact string representation.

        Returns:
            A string like `groupId:artifactId:version`.
        """
        return f"{self.group_id}:{self.artifact_id}:{self.version}"

    def __str__(self) -> str:
        return self.compact()


class Gavtc(Gav):
    """A Gav extended with the artifact type and an optional classifier."""

    type: str = Field(..., min_length=1)
    classifier: str | None = None

    @classmethod
    def parse(cls, coordinates: str) -> "Gavtc":
        """Parse a `groupId:artifactId:version:type[:classifier]` string."""
        parts = _split(coordinates, 4, 5, cls.__name__)
        classifier = parts[4] if len(parts) == 5 else None
        return cls(
            group_id=parts[0],
            artifact_id=parts[1],
            version=parts[2],
            type=parts[3],
            classifier=classifier,
        )

    def coordinates(self) -> tuple[str, str, str, str, str | None]:
        return (self.group_id, self.artifact_id, self.version, self.type, self.classifier)

    def compact(self) -> str:
        base = f"{super().compact()}:{self.type}"
        return base if self.classifier is None else f"{base}:{self.classifier}"


class ArtifactLocator(Gavtc):
    """A Gavtc together with the path of the artifact file in the local repository.

    Two locators are equal when their coordinates are equal; the path only
    drives ordering, so that sorted iteration follows the file system.
    """

    path: Path

    @classmethod
    def parse(cls, coordinates: str, path: str | Path) -> "ArtifactLocator":
        gavtc = Gavtc.parse(coordinates)
        return cls(**gavtc.model_dump(), path=Path(path))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ArtifactLocator):
            return NotImplemented
        return self.coordinates() == other.coordinates()

    def __hash__(self) -> int:
        return hash(self.coordinates())

    def __lt__(self, other: "ArtifactLocator") -> bool:
        return self.path < other.path

    def __str__(self) -> str:
        return f"{self.compact()} [{self.path}]"
