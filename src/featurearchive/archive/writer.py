"""
Feature archive writer.

Creates a feature archive from a feature model: a JAR container holding the
manifest (with the ``Feature-Archive-Version`` header), the serialized model
under ``models/feature.json`` and each artifact referenced by the feature's
bundles or artifacts extensions under ``artifacts/<mvn path>``.

The container is returned open. The caller may add further entries and must
close it; closing finishes the archive but never closes the underlying
output stream.

Usage::

    with open("my-feature.far", "wb") as out:
        with write_archive(out, feature, None, RepositoryProvider("~/.m2/repository")) as archive:
            archive.write_entry("README.txt", "extra content")
"""

from __future__ import annotations

import dataclasses
import io
import logging
import zipfile
from dataclasses import dataclass
from typing import IO, Mapping

from featurearchive.archive.errors import ConfigurationError, ResolutionError
from featurearchive.archive.manifest import MANIFEST_VERSION, Manifest
from featurearchive.artifacts.handler import open_location
from featurearchive.artifacts.providers import Provider
from featurearchive.model.artifact import Artifact, ArtifactId
from featurearchive.model.feature import ExtensionType, Feature
from featurearchive.model.json_io import write_feature

logger = logging.getLogger(__name__)

# The manifest header marking an archive as a feature archive.
MANIFEST_HEADER = "Feature-Archive-Version"

# Current supported version of the feature archive format.
ARCHIVE_VERSION = 1

DEFAULT_EXTENSION = "far"

MANIFEST_NAME = "META-INF/MANIFEST.MF"
MODELS_PREFIX = "models/"
MODEL_NAME = "models/feature.json"
ARTIFACTS_PREFIX = "artifacts/"

# zlib's "use the library default" level
DEFAULT_COMPRESSION = -1

DEFAULT_BUFFER_SIZE = 1024 * 1024


@dataclass(frozen=True)
class ArchiveOptions:
    """Options controlling the creation of an archive.

    Attributes:
        level: Deflate compression level, ``0``-``9`` or ``-1`` for the default
        buffer_size: Size in bytes of the buffer used to copy artifact content

    Raises:
        ConfigurationError: On construction, if a value is out of range
    """

    level: int = DEFAULT_COMPRESSION
    buffer_size: int = DEFAULT_BUFFER_SIZE

    def __post_init__(self) -> None:
        if isinstance(self.level, bool) or not isinstance(self.level, int):
            raise ConfigurationError(f"invalid compression level: {self.level!r}")
        if (self.level < 0 or self.level > 9) and self.level != DEFAULT_COMPRESSION:
            raise ConfigurationError(
                f"invalid compression level: {self.level} (expected 0-9 or {DEFAULT_COMPRESSION})"
            )
        if isinstance(self.buffer_size, bool) or not isinstance(self.buffer_size, int) or self.buffer_size <= 0:
            raise ConfigurationError(f"invalid buffer size: {self.buffer_size!r}")

    def with_level(self, level: int) -> ArchiveOptions:
        return dataclasses.replace(self, level=level)

    @property
    def compresslevel(self) -> int | None:
        """Level in the form zipfile expects (None selects the zlib default)."""
        return None if self.level == DEFAULT_COMPRESSION else self.level


class FeatureArchive:
    """An open feature archive being written.

    Wraps the ZIP container written to a caller-owned output stream. Entries
    are stored in insertion order, starting with the manifest. ``close()``
    writes the central directory and leaves the output stream open.
    """

    def __init__(self, out: IO[bytes], manifest: Manifest, options: ArchiveOptions) -> None:
        self.manifest = manifest
        self.options = options
        self._zip = zipfile.ZipFile(
            out,
            mode="w",
            compression=zipfile.ZIP_DEFLATED,
            compresslevel=options.compresslevel,
        )
        try:
            self.write_entry(MANIFEST_NAME, manifest.to_bytes())
        except BaseException:
            self.abort()
            raise

    def open_entry(self, name: str, *, force_zip64: bool = False) -> IO[bytes]:
        """Start a new entry and return a writable stream for its content.

        Only one entry can be open at a time; close it before starting the next.
        """
        if name in self._zip.NameToInfo:
            raise ValueError(f"Duplicate archive entry: {name}")
        return self._zip.open(name, mode="w", force_zip64=force_zip64)

    def write_entry(self, name: str, data: bytes | str) -> None:
        if isinstance(data, str):
            data = data.encode("utf-8")
        with self.open_entry(name) as entry:
            entry.write(data)

    def names(self) -> list[str]:
        return self._zip.namelist()

    @property
    def closed(self) -> bool:
        return self._zip.fp is None

    def close(self) -> None:
        self._zip.close()

    def abort(self) -> None:
        """Stop writing without finishing the archive.

        No central directory is written, so the output is not a readable
        archive. The output stream stays open; discarding its partial
        content is up to the caller.
        """
        # a ZipFile without fp skips the end record on close() and __del__
        self._zip.fp = None

    def __enter__(self) -> FeatureArchive:
        return self

    def __exit__(self, exc_type: object, *exc_info: object) -> None:
        if exc_type is not None:
            self.abort()
        else:
            self.close()


def _build_manifest(base_manifest: Manifest | Mapping[str, str] | None) -> Manifest:
    manifest = Manifest(base_manifest)
    manifest.main_attributes[MANIFEST_VERSION] = "1.0"
    manifest.main_attributes[MANIFEST_HEADER] = str(ARCHIVE_VERSION)
    return manifest


def _copy(source: IO[bytes], target: IO[bytes], buffer: bytearray) -> int:
    view = memoryview(buffer)
    total = 0
    while True:
        n = source.readinto(view)
        if not n:
            break
        target.write(view[:n])
        total += n
    return total


def _write_artifact(
    archive: FeatureArchive,
    written: set[ArtifactId],
    provider: Provider,
    artifact: Artifact,
    buffer: bytearray,
) -> None:
    artifact_id = artifact.id
    if artifact_id in written:
        logger.debug(f"Skipping {artifact_id}: already archived")
        return
    written.add(artifact_id)

    location = provider(artifact_id)
    if location is None:
        raise ResolutionError(artifact_id)

    source, size = open_location(location)
    with source:
        force_zip64 = size is None or size * 1.05 > zipfile.ZIP64_LIMIT
        with archive.open_entry(ARTIFACTS_PREFIX + artifact_id.to_mvn_path(), force_zip64=force_zip64) as entry:
            copied = _copy(source, entry, buffer)
    logger.debug(f"Archived {artifact_id} ({copied} bytes)")


def write_archive(
    out: IO[bytes],
    feature: Feature,
    base_manifest: Manifest | Mapping[str, str] | None,
    provider: Provider,
    options: ArchiveOptions | None = None,
) -> FeatureArchive:
    """Create a feature archive for ``feature`` on ``out``.

    The feature is archived as provided, whatever state it is in; only its
    bundles and the artifacts of its artifacts extensions are added. Each
    distinct artifact is written once, the first reference wins.

    Args:
        out: Binary output stream; it is never closed here
        feature: The feature model to archive
        base_manifest: Optional manifest (or mapping of main attributes) to
            start from; it is copied, not modified
        provider: Callable resolving an ArtifactId to a location or None
        options: Optional compression and buffering options

    Returns:
        The open archive. Call ``close()`` on it (or use it as a context
        manager) to finish the archive; more entries can be added first.

    Raises:
        ResolutionError: The provider could not locate an artifact
        OSError: Reading an artifact or writing the output failed

    On any error the archive is aborted: ``out`` keeps the bytes written so
    far but never receives a central directory.
    """
    if options is None:
        options = ArchiveOptions()

    archive = FeatureArchive(out, _build_manifest(base_manifest), options)
    try:
        # model first
        with archive.open_entry(MODEL_NAME) as entry:
            writer = io.TextIOWrapper(entry, encoding="utf-8", newline="")
            try:
                write_feature(writer, feature)
                writer.flush()
            finally:
                writer.detach()

        buffer = bytearray(options.buffer_size)
        written: set[ArtifactId] = set()

        for artifact in feature.bundles:
            _write_artifact(archive, written, provider, artifact, buffer)

        for extension in feature.extensions:
            if extension.type is ExtensionType.ARTIFACTS:
                for artifact in extension.artifacts:
                    _write_artifact(archive, written, provider, artifact, buffer)
    except BaseException:
        archive.abort()
        raise

    logger.info(f"Archived feature {feature.id} with {len(written)} artifacts")
    return archive
