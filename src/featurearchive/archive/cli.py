"""
Build a feature archive from a feature JSON file.

CLI:
    python -m featurearchive.archive.cli \
      --feature path/to/feature.json \
      --out dist/my-feature.far \
      [--repository ~/.m2/repository]...   # Maven layout roots, searched in order
      [--registry configs/artifact_registry.yaml] \
      [--level 0-9|-1] \
      [--header Key=Value]... \
      [--config configs/archive.yaml] \
      [--project_root /path]               # base for relative registry paths

Command line flags override values from --config.
"""

from __future__ import annotations

import argparse
import hashlib
import logging
from pathlib import Path

from featurearchive.archive.config import load_config, manifest_from_config, options_from_config
from featurearchive.archive.writer import DEFAULT_EXTENSION, write_archive
from featurearchive.artifacts.providers import Provider, RegistryProvider, RepositoryProvider, chain_providers
from featurearchive.model.json_io import read_feature

logger = logging.getLogger(__name__)


def archive_digest(path: Path, chunk_size: int) -> str:
    """SHA-256 of a finished archive, read in ``chunk_size`` pieces."""
    h = hashlib.sha256()
    buffer = bytearray(chunk_size)
    view = memoryview(buffer)
    with path.open("rb") as f:
        while True:
            n = f.readinto(view)
            if not n:
                break
            h.update(view[:n])
    return h.hexdigest()


def _parse_header(value: str) -> tuple[str, str]:
    name, sep, header_value = value.partition("=")
    if not sep or not name.strip():
        raise argparse.ArgumentTypeError(f"Header must be Key=Value, got '{value}'")
    return name.strip(), header_value


def _build_provider(
    repositories: list[str],
    registry: str | None,
    project_root: Path,
) -> Provider:
    providers: list[Provider] = []
    if registry:
        providers.append(RegistryProvider(registry, project_root=project_root))
    if repositories:
        providers.append(RepositoryProvider(*[Path(r).expanduser() for r in repositories]))
    if not providers:
        raise ValueError("No artifact source configured: pass --repository or --registry")
    return chain_providers(*providers)


def write_archive_main(argv: list[str] | None = None) -> Path:
    parser = argparse.ArgumentParser(description="Package a feature and its artifacts into a feature archive")
    parser.add_argument("--feature", required=True, help="Path to the feature JSON file")
    parser.add_argument(
        "--out",
        help=f"Output archive path (default: <artifactId>-<version>.{DEFAULT_EXTENSION} in the cwd)",
    )
    parser.add_argument(
        "--repository",
        action="append",
        default=None,
        help="Local Maven-layout repository root (repeatable, searched in order)",
    )
    parser.add_argument("--registry", help="Artifact registry YAML mapping artifact ids to files")
    parser.add_argument("--level", type=int, help="Compression level 0-9, or -1 for the default")
    parser.add_argument(
        "--header",
        action="append",
        type=_parse_header,
        default=[],
        help="Extra manifest header as Key=Value (repeatable)",
    )
    parser.add_argument("--config", help="Optional archive config YAML")
    parser.add_argument("--project_root", help="Base directory for relative paths (default: cwd)")
    parser.add_argument("--verbose", action="store_true", help="Log every archived artifact")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    project_root = Path(args.project_root) if args.project_root else Path.cwd()
    cfg = load_config(Path(args.config)) if args.config else {}

    options = options_from_config(cfg)
    if args.level is not None:
        options = options.with_level(args.level)

    headers = manifest_from_config(cfg)
    headers.update(dict(args.header))

    repositories = args.repository if args.repository is not None else list(cfg.get("repositories") or [])
    registry = args.registry or cfg.get("registry")
    provider = _build_provider([str(r) for r in repositories], registry, project_root)

    feature_path = Path(args.feature)
    if not feature_path.exists():
        raise FileNotFoundError(f"Feature file not found: {feature_path}")
    with feature_path.open(encoding="utf-8") as f:
        feature = read_feature(f)

    if args.out:
        out_path = Path(args.out)
    else:
        out_path = Path.cwd() / f"{feature.id.artifact_id}-{feature.id.version}.{DEFAULT_EXTENSION}"
    out_path.parent.mkdir(parents=True, exist_ok=True)

    logger.info(f"Writing feature {feature.id} to {out_path}")
    try:
        with out_path.open("wb") as out:
            with write_archive(out, feature, headers, provider, options) as archive:
                entry_count = len(archive.names())
    except Exception:
        # a partially written archive is useless
        out_path.unlink(missing_ok=True)
        raise

    digest = archive_digest(out_path, options.buffer_size)
    print(f"Wrote feature archive {out_path} ({entry_count} entries, sha256 {digest})")
    return out_path


def main() -> None:  # pragma: no cover - thin wrapper
    write_archive_main()


if __name__ == "__main__":  # pragma: no cover
    main()
