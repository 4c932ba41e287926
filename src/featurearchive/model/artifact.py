"""Artifact coordinates and references."""

from __future__ import annotations

from dataclasses import dataclass, field

DEFAULT_TYPE = "jar"

_FORBIDDEN_CHARS = ("/", ":", "\\")


@dataclass(frozen=True)
class ArtifactId:
    """Maven style coordinates identifying an artifact.

    Two ids are the same artifact iff all five coordinates are equal, so an
    ArtifactId can be used directly as a set member or dict key.
    """

    group_id: str
    artifact_id: str
    version: str
    classifier: str | None = None
    type: str = DEFAULT_TYPE

    def __post_init__(self) -> None:
        for name in ("group_id", "artifact_id", "version", "type"):
            value = getattr(self, name)
            if not isinstance(value, str) or not value.strip():
                raise ValueError(f"Artifact {name} must be a non-empty string, got {value!r}")
        if self.classifier == "":
            object.__setattr__(self, "classifier", None)
        for name in ("group_id", "artifact_id", "version", "classifier", "type"):
            value = getattr(self, name)
            if value is not None and any(c in value for c in _FORBIDDEN_CHARS):
                raise ValueError(f"Artifact {name} must not contain '/', ':' or '\\', got {value!r}")
        if self.classifier is not None and "." in self.classifier:
            raise ValueError(f"Artifact classifier must not contain '.', got {self.classifier!r}")
        # each group segment becomes one path directory
        if any(not segment for segment in self.group_id.split(".")):
            raise ValueError(f"Artifact group_id has an empty segment: {self.group_id!r}")

    @classmethod
    def from_mvn_id(cls, mvn_id: str) -> ArtifactId:
        """Parse ``group:artifact[:type[:classifier]]:version``."""
        parts = mvn_id.strip().split(":")
        if len(parts) == 3:
            group_id, artifact_id, version = parts
            return cls(group_id, artifact_id, version)
        if len(parts) == 4:
            group_id, artifact_id, type_, version = parts
            return cls(group_id, artifact_id, version, type=type_)
        if len(parts) == 5:
            group_id, artifact_id, type_, classifier, version = parts
            return cls(group_id, artifact_id, version, classifier=classifier or None, type=type_)
        raise ValueError(f"Invalid artifact id '{mvn_id}': expected group:artifact[:type[:classifier]]:version")

    @classmethod
    def from_mvn_path(cls, path: str) -> ArtifactId:
        """Parse a repository path as produced by :meth:`to_mvn_path`."""
        parts = path.strip("/").split("/")
        if len(parts) < 4:
            raise ValueError(f"Invalid artifact path '{path}'")
        filename = parts[-1]
        version = parts[-2]
        artifact_id = parts[-3]
        group_id = ".".join(parts[:-3])

        prefix = f"{artifact_id}-{version}"
        if not filename.startswith(prefix) or "." not in filename[len(prefix):]:
            raise ValueError(f"Invalid artifact path '{path}': file name does not match coordinates")
        # classifiers carry no dots, so the first dot starts the type
        rest, type_ = filename[len(prefix):].split(".", 1)
        classifier = None
        if rest:
            if not rest.startswith("-"):
                raise ValueError(f"Invalid artifact path '{path}': unexpected file name suffix")
            classifier = rest[1:]
        return cls(group_id, artifact_id, version, classifier=classifier, type=type_)

    def to_mvn_id(self) -> str:
        """Human readable id used in messages and in feature JSON."""
        parts = [self.group_id, self.artifact_id]
        if self.classifier or self.type != DEFAULT_TYPE:
            parts.append(self.type)
            if self.classifier:
                parts.append(self.classifier)
        parts.append(self.version)
        return ":".join(parts)

    def to_mvn_path(self) -> str:
        """Relative repository path, unique per coordinate tuple."""
        name = f"{self.artifact_id}-{self.version}"
        if self.classifier:
            name += f"-{self.classifier}"
        return "/".join(
            [
                self.group_id.replace(".", "/"),
                self.artifact_id,
                self.version,
                f"{name}.{self.type}",
            ]
        )

    def __str__(self) -> str:
        return self.to_mvn_id()


@dataclass
class Artifact:
    """A reference to an artifact from a feature, with optional metadata.

    Attributes:
        id: Coordinates of the referenced artifact
        metadata: String key/value pairs (e.g. ``start-order``)
    """

    id: ArtifactId
    metadata: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if "id" in self.metadata:
            raise ValueError(f"Metadata of artifact {self.id} must not use the reserved key 'id'")

    @classmethod
    def parse(cls, mvn_id: str, **metadata: str) -> Artifact:
        return cls(ArtifactId.from_mvn_id(mvn_id), dict(metadata))
