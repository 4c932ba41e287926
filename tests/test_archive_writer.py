"""Tests for the feature archive writer."""

import gc
import io
import zipfile

import pytest

from featurearchive.archive.errors import ResolutionError
from featurearchive.archive.manifest import Manifest
from featurearchive.archive.writer import (
    ARTIFACTS_PREFIX,
    MANIFEST_HEADER,
    MANIFEST_NAME,
    MODEL_NAME,
    ArchiveOptions,
    write_archive,
)
from featurearchive.artifacts.handler import ArtifactHandler
from featurearchive.model.artifact import Artifact, ArtifactId
from featurearchive.model.feature import Extension, ExtensionType, Feature
from featurearchive.model.json_io import feature_to_json

X = "org.example:X:1.0"
Y = "org.example:Y:2.0"
X_ENTRY = ARTIFACTS_PREFIX + "org/example/X/1.0/X-1.0.jar"
Y_ENTRY = ARTIFACTS_PREFIX + "org/example/Y/2.0/Y-2.0.jar"


def _feature(bundles=(X, Y), collection=(X,)) -> Feature:
    return Feature(
        id=ArtifactId.from_mvn_id("org.example:feature:slingosgifeature:1.0"),
        description="Fonctionnalité de démonstration",
        bundles=[Artifact.parse(b) for b in bundles],
        extensions=[
            Extension(name="notes", type=ExtensionType.TEXT, text="not an artifact"),
            Extension(
                name="content-packages",
                type=ExtensionType.ARTIFACTS,
                artifacts=[Artifact.parse(a) for a in collection],
            ),
        ],
    )


class CountingResolver:
    """Resolver over in-memory payloads that records every lookup."""

    def __init__(self, payloads):
        self.payloads = {ArtifactId.from_mvn_id(k): v for k, v in payloads.items()}
        self.calls = []

    def __call__(self, artifact_id):
        self.calls.append(artifact_id)
        data = self.payloads.get(artifact_id)
        return io.BytesIO(data) if data is not None else None


class InstrumentedSource(io.RawIOBase):
    """Generates ``size`` bytes and records the largest read it was asked for."""

    def __init__(self, size, fail_after=None):
        self.size = size
        self.position = 0
        self.max_request = 0
        self.fail_after = fail_after

    def readable(self):
        return True

    def readinto(self, b):
        if self.fail_after is not None and self.position >= self.fail_after:
            raise OSError("disk read failed")
        self.max_request = max(self.max_request, len(b))
        n = min(len(b), self.size - self.position)
        b[:n] = b"z" * n
        self.position += n
        return n


class UnseekableSink(io.RawIOBase):
    def __init__(self):
        self.data = bytearray()

    def writable(self):
        return True

    def write(self, b):
        self.data += bytes(b)
        return len(b)


def _assemble(feature=None, resolver=None, base=None, options=None) -> bytes:
    out = io.BytesIO()
    resolver = resolver or CountingResolver({X: b"AA", Y: b"BB"})
    archive = write_archive(out, feature or _feature(), base, resolver, options)
    archive.close()
    return out.getvalue()


def test_end_to_end_layout():
    data = _assemble()
    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        assert zf.namelist() == [MANIFEST_NAME, MODEL_NAME, X_ENTRY, Y_ENTRY]
        assert zf.read(X_ENTRY) == b"AA"
        assert zf.read(Y_ENTRY) == b"BB"
        assert zf.read(MODEL_NAME).decode("utf-8") == feature_to_json(_feature())
        manifest = Manifest.from_bytes(zf.read(MANIFEST_NAME))
    assert manifest.get_value(MANIFEST_HEADER) == "1"
    assert manifest.get_value("Manifest-Version") == "1.0"


def test_artifact_referenced_twice_written_once():
    resolver = CountingResolver({X: b"AA", Y: b"BB"})
    data = _assemble(feature=_feature(bundles=(X, Y, X), collection=(X, Y)), resolver=resolver)
    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        names = zf.namelist()
    assert names.count(X_ENTRY) == 1
    assert names.count(Y_ENTRY) == 1
    assert resolver.calls == [ArtifactId.from_mvn_id(X), ArtifactId.from_mvn_id(Y)]


def test_collection_only_artifacts_are_written_after_bundles():
    z = "org.example:Z:zip:3.0"
    resolver = CountingResolver({X: b"AA", Y: b"BB", z: b"ZZ"})
    data = _assemble(feature=_feature(bundles=(Y,), collection=(z, X)), resolver=resolver)
    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        assert zf.namelist()[2:] == [Y_ENTRY, ARTIFACTS_PREFIX + "org/example/Z/3.0/Z-3.0.zip", X_ENTRY]


def test_version_header_overrides_base_manifest():
    base = {MANIFEST_HEADER: "99", "Manifest-Version": "2.0", "Created-By": "release"}
    data = _assemble(base=base)
    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        manifest = Manifest.from_bytes(zf.read(MANIFEST_NAME))
    assert manifest.get_value(MANIFEST_HEADER) == "1"
    assert manifest.get_value("Manifest-Version") == "1.0"
    assert manifest.get_value("Created-By") == "release"
    assert base[MANIFEST_HEADER] == "99"


def test_base_manifest_object_not_modified():
    base = Manifest({"Created-By": "release"})
    _assemble(base=base)
    assert MANIFEST_HEADER not in base.main_attributes


def test_runs_are_byte_identical():
    assert _assemble() == _assemble()


def test_large_artifact_streamed_through_bounded_buffer():
    buffer_size = 4096
    source = InstrumentedSource(10 * buffer_size + 123)
    data = _assemble(
        feature=_feature(bundles=(X,), collection=()),
        resolver=lambda artifact_id: source,
        options=ArchiveOptions(buffer_size=buffer_size),
    )
    assert 0 < source.max_request <= buffer_size
    assert source.closed
    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        assert zf.getinfo(X_ENTRY).file_size == 10 * buffer_size + 123


def test_unresolvable_artifact_aborts():
    missing = "org.example:missing:1.0"
    resolver = CountingResolver({X: b"AA", Y: b"BB"})
    out = io.BytesIO()
    with pytest.raises(ResolutionError) as exc:
        write_archive(out, _feature(bundles=(X, missing, Y), collection=()), None, resolver)
    assert missing in str(exc.value)
    assert exc.value.artifact_id == ArtifactId.from_mvn_id(missing)
    assert isinstance(exc.value, OSError)
    assert ArtifactId.from_mvn_id(Y) not in resolver.calls


def test_failed_write_never_becomes_a_readable_archive():
    resolver = CountingResolver({X: b"AA"})
    out = io.BytesIO()
    with pytest.raises(ResolutionError):
        write_archive(out, _feature(bundles=(X, "org.example:missing:1.0"), collection=()), None, resolver)
    # the abandoned archive object must not finish the output when collected
    gc.collect()
    assert not out.closed
    with pytest.raises(zipfile.BadZipFile):
        zipfile.ZipFile(io.BytesIO(out.getvalue()))


def test_raising_inside_with_block_aborts_archive():
    out = io.BytesIO()
    with pytest.raises(RuntimeError):
        with write_archive(out, _feature(), None, CountingResolver({X: b"AA", Y: b"BB"})) as archive:
            archive.write_entry("extra/notes.txt", "partial")
            raise RuntimeError("caller failed")
    assert archive.closed
    assert not out.closed
    gc.collect()
    with pytest.raises(zipfile.BadZipFile):
        zipfile.ZipFile(io.BytesIO(out.getvalue()))


def test_source_closed_when_copy_fails():
    source = InstrumentedSource(100_000, fail_after=8192)
    with pytest.raises(OSError, match="disk read failed"):
        write_archive(
            io.BytesIO(),
            _feature(bundles=(X,), collection=()),
            None,
            lambda artifact_id: source,
            ArchiveOptions(buffer_size=4096),
        )
    assert source.closed


def test_output_left_open_and_archive_extendable():
    out = io.BytesIO()
    with write_archive(out, _feature(), None, CountingResolver({X: b"AA", Y: b"BB"})) as archive:
        assert not archive.closed
        archive.write_entry("extra/notes.txt", "added by caller")
    assert archive.closed
    assert not out.closed
    with zipfile.ZipFile(io.BytesIO(out.getvalue())) as zf:
        assert zf.namelist()[-1] == "extra/notes.txt"
        assert zf.read("extra/notes.txt") == b"added by caller"


def test_duplicate_caller_entry_rejected():
    out = io.BytesIO()
    archive = write_archive(out, _feature(), None, CountingResolver({X: b"AA", Y: b"BB"}))
    with pytest.raises(ValueError):
        archive.write_entry(MODEL_NAME, "{}")
    archive.close()


def test_unseekable_sink():
    sink = UnseekableSink()
    write_archive(sink, _feature(), None, CountingResolver({X: b"AA", Y: b"BB"})).close()
    assert not sink.closed
    with zipfile.ZipFile(io.BytesIO(bytes(sink.data))) as zf:
        assert zf.read(Y_ENTRY) == b"BB"


def test_compression_level_applied():
    payload = b"A" * 200_000
    resolver = CountingResolver({X: payload, Y: payload})
    stored = _assemble(resolver=resolver, options=ArchiveOptions(level=0))
    best = _assemble(resolver=resolver, options=ArchiveOptions(level=9))
    assert len(best) < len(stored)
    with zipfile.ZipFile(io.BytesIO(best)) as zf:
        assert zf.getinfo(X_ENTRY).compress_type == zipfile.ZIP_DEFLATED
        assert zf.read(X_ENTRY) == payload


def test_resolver_may_return_file_handler(tmp_path):
    jar = tmp_path / "x.jar"
    jar.write_bytes(b"from disk")
    data = _assemble(
        feature=_feature(bundles=(X,), collection=()),
        resolver=lambda artifact_id: ArtifactHandler(url="urn:x", file=jar),
    )
    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        assert zf.read(X_ENTRY) == b"from disk"
