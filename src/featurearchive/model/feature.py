"""Feature and extension types."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from featurearchive.model.artifact import Artifact, ArtifactId


class ExtensionType(Enum):
    """Payload kind of a feature extension."""

    ARTIFACTS = "artifacts-collection"
    TEXT = "text"
    JSON = "json"


@dataclass
class Extension:
    """A named feature extension.

    Only ``ARTIFACTS`` extensions contribute entries to an archive; the
    ``text`` and ``json`` payloads travel inside the serialized model.
    """

    name: str
    type: ExtensionType
    required: bool = True
    artifacts: list[Artifact] = field(default_factory=list)
    text: str | None = None
    json: Any = None


@dataclass
class Feature:
    """A feature model: id, descriptive fields, bundles and extensions."""

    id: ArtifactId
    title: str | None = None
    description: str | None = None
    framework_properties: dict[str, str] = field(default_factory=dict)
    bundles: list[Artifact] = field(default_factory=list)
    extensions: list[Extension] = field(default_factory=list)

    def get_extension(self, name: str) -> Extension | None:
        for extension in self.extensions:
            if extension.name == name:
                return extension
        return None
