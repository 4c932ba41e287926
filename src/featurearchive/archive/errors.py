"""Exception types for feature archive handling."""

from __future__ import annotations

from featurearchive.model.artifact import ArtifactId


class ArchiveError(Exception):
    """Base exception for feature archive errors."""

    pass


class ConfigurationError(ArchiveError, ValueError):
    """Invalid archive options (e.g. compression level out of range)."""

    pass


class ResolutionError(ArchiveError, OSError):
    """An artifact referenced by the feature could not be located."""

    def __init__(self, artifact_id: ArtifactId) -> None:
        self.artifact_id = artifact_id
        super().__init__(f"Unable to find artifact {artifact_id.to_mvn_id()}")


class ArchiveFormatError(ArchiveError, OSError):
    """Input is not a feature archive or uses an unsupported archive version."""

    pass
