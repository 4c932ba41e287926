"""
JSON serialization of feature models.

Layout written by :func:`write_feature` (keys in this order, absent fields
omitted)::

    {
      "id": "g:a:v",
      "title": "...",
      "description": "...",
      "framework-properties": {"k": "v"},
      "bundles": ["g:a:v", {"id": "g:b:v", "start-order": "5"}],
      "<name>:ARTIFACTS|true": ["g:c:v"],
      "<name>:TEXT|false": "text",
      "<name>:JSON|true": {...}
    }

Output is deterministic for a given feature, which makes archives built from
the same feature byte-identical.
"""

from __future__ import annotations

import json
from importlib import resources
from typing import IO, Any

import jsonschema

from featurearchive.model.artifact import Artifact, ArtifactId
from featurearchive.model.feature import Extension, ExtensionType, Feature

SCHEMA_RESOURCE = "feature.schema.json"

_SCHEMA_CACHE: dict[str, dict[str, Any]] = {}

_TYPE_NAMES = {
    ExtensionType.ARTIFACTS: "ARTIFACTS",
    ExtensionType.TEXT: "TEXT",
    ExtensionType.JSON: "JSON",
}


class FeatureFormatError(ValueError):
    """Feature JSON could not be parsed or failed schema validation."""

    def __init__(self, message: str, failed_at: str | None = None) -> None:
        self.failed_at = failed_at
        if failed_at:
            message = f"{message} (at {failed_at})"
        super().__init__(message)


def _load_schema() -> dict[str, Any]:
    if SCHEMA_RESOURCE not in _SCHEMA_CACHE:
        schema_text = resources.files("featurearchive.model").joinpath(SCHEMA_RESOURCE).read_text(encoding="utf-8")
        _SCHEMA_CACHE[SCHEMA_RESOURCE] = json.loads(schema_text)
    return _SCHEMA_CACHE[SCHEMA_RESOURCE]


def _artifact_to_json(artifact: Artifact) -> Any:
    if not artifact.metadata:
        return artifact.id.to_mvn_id()
    if "id" in artifact.metadata:
        raise FeatureFormatError(f"Metadata of artifact {artifact.id} must not use the reserved key 'id'")
    return {"id": artifact.id.to_mvn_id(), **artifact.metadata}


def _extension_key(extension: Extension) -> str:
    required = "true" if extension.required else "false"
    return f"{extension.name}:{_TYPE_NAMES[extension.type]}|{required}"


def feature_to_dict(feature: Feature) -> dict[str, Any]:
    """Build the JSON-ready mapping for a feature."""
    data: dict[str, Any] = {"id": feature.id.to_mvn_id()}
    if feature.title is not None:
        data["title"] = feature.title
    if feature.description is not None:
        data["description"] = feature.description
    if feature.framework_properties:
        data["framework-properties"] = dict(feature.framework_properties)
    if feature.bundles:
        data["bundles"] = [_artifact_to_json(a) for a in feature.bundles]
    for extension in feature.extensions:
        if extension.type is ExtensionType.ARTIFACTS:
            value: Any = [_artifact_to_json(a) for a in extension.artifacts]
        elif extension.type is ExtensionType.TEXT:
            value = extension.text
        else:
            value = extension.json
        data[_extension_key(extension)] = value
    return data


def feature_to_json(feature: Feature) -> str:
    return json.dumps(feature_to_dict(feature), indent=2, ensure_ascii=False)


def write_feature(writer: IO[str], feature: Feature) -> None:
    """Serialize ``feature`` as JSON into a text stream. The stream is not closed."""
    writer.write(feature_to_json(feature))


def _metadata_value(value: Any) -> str:
    # numbers and booleans keep their JSON spelling
    return value if isinstance(value, str) else json.dumps(value)


def _artifact_from_json(value: Any) -> Artifact:
    if isinstance(value, str):
        return Artifact(ArtifactId.from_mvn_id(value))
    metadata = {k: _metadata_value(v) for k, v in value.items() if k != "id"}
    return Artifact(ArtifactId.from_mvn_id(value["id"]), metadata)


def _extension_from_json(key: str, value: Any) -> Extension:
    name, rest = key.split(":", 1)
    type_name, _, required = rest.partition("|")
    ext_type = {v: k for k, v in _TYPE_NAMES.items()}[type_name]
    extension = Extension(name=name, type=ext_type, required=required != "false")
    if ext_type is ExtensionType.ARTIFACTS:
        if not isinstance(value, list):
            raise FeatureFormatError("Artifacts extension must be a list", failed_at=f"$['{key}']")
        extension.artifacts = [_artifact_from_json(v) for v in value]
    elif ext_type is ExtensionType.TEXT:
        if isinstance(value, list):
            value = "\n".join(str(line) for line in value)
        extension.text = None if value is None else str(value)
    else:
        extension.json = value
    return extension


def feature_from_dict(data: dict[str, Any]) -> Feature:
    """Validate a decoded JSON document and build a :class:`Feature`."""
    try:
        jsonschema.validate(data, _load_schema())
    except jsonschema.ValidationError as e:
        raise FeatureFormatError(f"Invalid feature: {e.message}", failed_at=e.json_path) from e

    try:
        feature = Feature(
            id=ArtifactId.from_mvn_id(data["id"]),
            title=data.get("title"),
            description=data.get("description"),
            framework_properties=dict(data.get("framework-properties", {})),
            bundles=[_artifact_from_json(v) for v in data.get("bundles", [])],
        )
        for key, value in data.items():
            if ":" in key:
                feature.extensions.append(_extension_from_json(key, value))
    except FeatureFormatError:
        raise
    except ValueError as e:
        raise FeatureFormatError(str(e)) from e
    return feature


def read_feature(source: IO[str] | str) -> Feature:
    """Parse a feature from JSON text or a text stream."""
    text = source if isinstance(source, str) else source.read()
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise FeatureFormatError(f"Feature is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise FeatureFormatError(f"Feature must be a JSON object, got {type(data).__name__}")
    return feature_from_dict(data)
