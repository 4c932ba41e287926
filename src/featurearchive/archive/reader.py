"""Feature archive reader."""

from __future__ import annotations

import io
import logging
import zipfile
from collections.abc import Callable
from typing import IO

from featurearchive.archive.errors import ArchiveFormatError
from featurearchive.archive.manifest import Manifest
from featurearchive.archive.writer import (
    ARCHIVE_VERSION,
    ARTIFACTS_PREFIX,
    MANIFEST_HEADER,
    MANIFEST_NAME,
    MODELS_PREFIX,
)
from featurearchive.model.artifact import ArtifactId
from featurearchive.model.feature import Feature
from featurearchive.model.json_io import read_feature

logger = logging.getLogger(__name__)

ArtifactConsumer = Callable[[ArtifactId, IO[bytes]], None]


def _check_manifest(zf: zipfile.ZipFile) -> Manifest:
    try:
        data = zf.read(MANIFEST_NAME)
    except KeyError:
        raise ArchiveFormatError(f"Not a feature archive: {MANIFEST_NAME} is missing") from None

    manifest = Manifest.from_bytes(data)
    value = manifest.get_value(MANIFEST_HEADER)
    if value is None:
        raise ArchiveFormatError(f"Not a feature archive: manifest header {MANIFEST_HEADER} is missing")
    try:
        version = int(value.strip())
    except ValueError:
        raise ArchiveFormatError(f"Invalid {MANIFEST_HEADER} value: {value!r}") from None
    if version < 1 or version > ARCHIVE_VERSION:
        raise ArchiveFormatError(f"Unsupported feature archive version {version}")
    return manifest


def read_manifest(stream: IO[bytes]) -> Manifest:
    """Read and check the manifest of a feature archive."""
    with zipfile.ZipFile(stream) as zf:
        return _check_manifest(zf)


def read_archive(stream: IO[bytes], consumer: ArtifactConsumer | None = None) -> list[Feature]:
    """Read a feature archive.

    Returns the features found under ``models/`` in entry order. When a
    consumer is given it is called with the id and content stream of every
    artifact entry; the stream is only valid during the call.

    Raises:
        ArchiveFormatError: The input is not a supported feature archive
    """
    features: list[Feature] = []
    with zipfile.ZipFile(stream) as zf:
        _check_manifest(zf)
        for info in zf.infolist():
            if info.is_dir():
                continue
            name = info.filename
            if name.startswith(MODELS_PREFIX) and name.endswith(".json"):
                with zf.open(info) as entry:
                    features.append(read_feature(io.TextIOWrapper(entry, encoding="utf-8")))
            elif name.startswith(ARTIFACTS_PREFIX) and consumer is not None:
                artifact_id = ArtifactId.from_mvn_path(name[len(ARTIFACTS_PREFIX):])
                with zf.open(info) as entry:
                    consumer(artifact_id, entry)
    logger.debug(f"Read {len(features)} features from archive")
    return features
