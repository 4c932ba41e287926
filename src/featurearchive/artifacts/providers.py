"""
Artifact providers.

The registry is a small YAML file that maps artifact ids to local files, so
features can be archived from a build output directory without a full
repository layout.

Example (configs/artifact_registry.yaml):

artifacts:
  org.example:api:1.0:
    path: "build/libs/api-1.0.jar"
  org.example:impl:1.0: "build/libs/impl-1.0.jar"
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any, Optional

import yaml

from featurearchive.artifacts.handler import ArtifactHandler, ArtifactHandlerDecorator, Location
from featurearchive.model.artifact import ArtifactId

logger = logging.getLogger(__name__)

Provider = Callable[[ArtifactId], Optional[Location]]


def _resolve_path(path: str | Path, project_root: Path | None = None) -> Path:
    p = Path(path)
    if p.is_absolute():
        return p
    root = project_root or Path.cwd()
    return (root / p).resolve()


class RepositoryProvider:
    """Look artifacts up in one or more local repositories (Maven layout)."""

    def __init__(self, *roots: str | Path) -> None:
        self.roots = [Path(r) for r in roots]

    def __call__(self, artifact_id: ArtifactId) -> ArtifactHandler | None:
        relative = artifact_id.to_mvn_path()
        for root in self.roots:
            candidate = root / relative
            if candidate.is_file():
                logger.debug(f"Found {artifact_id} in repository {root}")
                return ArtifactHandler(url=candidate.resolve().as_uri(), file=candidate)
        return None


def load_artifact_registry(path: str | Path, project_root: Path | None = None) -> dict[str, Any]:
    """Load artifact registry YAML and perform basic validation."""
    registry_path = _resolve_path(path, project_root)
    if not registry_path.exists():
        raise FileNotFoundError(f"Artifact registry not found: {registry_path}")

    with registry_path.open(encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Artifact registry must be a mapping, got {type(data).__name__}")

    artifacts = data.get("artifacts")
    if not isinstance(artifacts, dict):
        raise ValueError("Artifact registry must have an 'artifacts' mapping")

    for mvn_id, entry in artifacts.items():
        ArtifactId.from_mvn_id(str(mvn_id))
        file_path = entry.get("path") if isinstance(entry, dict) else entry
        if not file_path or not str(file_path).strip():
            raise ValueError(f"Artifact '{mvn_id}' in registry is missing 'path'")

    return data


class RegistryProvider:
    """Resolve artifacts through a YAML artifact registry.

    Results are decorated with the artifact's mvn id as identifying url, so
    consumers see which registry key produced the file.
    """

    def __init__(self, registry_path: str | Path, project_root: Path | None = None) -> None:
        data = load_artifact_registry(registry_path, project_root=project_root)
        self.files: dict[ArtifactId, Path] = {}
        for mvn_id, entry in data["artifacts"].items():
            file_path = entry.get("path") if isinstance(entry, dict) else entry
            self.files[ArtifactId.from_mvn_id(str(mvn_id))] = _resolve_path(str(file_path), project_root)

    def __call__(self, artifact_id: ArtifactId) -> ArtifactHandlerDecorator | None:
        path = self.files.get(artifact_id)
        if path is None:
            return None
        handler = ArtifactHandler(url=path.as_uri(), file=path)
        return ArtifactHandlerDecorator(url=artifact_id.to_mvn_id(), handler=handler)


def chain_providers(*providers: Provider) -> Provider:
    """Combine providers; the first one returning a location wins."""

    def provide(artifact_id: ArtifactId) -> Location | None:
        for provider in providers:
            location = provider(artifact_id)
            if location is not None:
                return location
        return None

    return provide
