"""Resolved artifact handles and opening of artifact locations."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Any, Union
from urllib.parse import urlparse
from urllib.request import url2pathname


@dataclass(frozen=True)
class ArtifactHandler:
    """A resolved artifact: the identifying url plus the local file, if any."""

    url: str
    file: Path | None = None

    def get_file(self) -> Path | None:
        return self.file

    def get_local_url(self) -> str:
        if self.file is not None:
            return Path(self.file).resolve().as_uri()
        return self.url


@dataclass(frozen=True)
class ArtifactHandlerDecorator:
    """Expose an already resolved handler under a different identifying url.

    The url is carried as-is and never parsed; file and local url are taken
    from the wrapped handler.
    """

    url: str
    handler: ArtifactHandler | ArtifactHandlerDecorator

    def get_file(self) -> Path | None:
        return self.handler.get_file()

    def get_local_url(self) -> str:
        return self.handler.get_local_url()


Location = Union[str, os.PathLike, ArtifactHandler, ArtifactHandlerDecorator, IO[bytes]]


def _path_from_string(location: str) -> Path:
    parsed = urlparse(location)
    if parsed.scheme == "file":
        return Path(url2pathname(parsed.path))
    # single letter schemes are Windows drive letters
    if len(parsed.scheme) > 1:
        raise ValueError(f"Unsupported artifact location '{location}': only local files can be opened")
    return Path(location)


def _local_path(location: Any) -> Path | None:
    if hasattr(location, "get_file"):
        file = location.get_file()
        if file is not None:
            return Path(file)
        return _path_from_string(location.get_local_url())
    if isinstance(location, str):
        return _path_from_string(location)
    if isinstance(location, os.PathLike):
        return Path(location)
    return None


def open_location(location: Location) -> tuple[IO[bytes], int | None]:
    """Open a resolved artifact location for binary reading.

    Returns the stream and its size in bytes when known (local files).
    Streams passed in are returned as-is; the caller closes the result.
    """
    if hasattr(location, "readinto"):
        return location, None  # type: ignore[return-value]
    path = _local_path(location)
    if path is None:
        raise TypeError(f"Cannot open artifact location of type {type(location).__name__}")
    stream = path.open("rb")
    return stream, os.fstat(stream.fileno()).st_size
