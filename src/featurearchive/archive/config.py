"""
Archive configuration file loading.

Example (configs/archive.yaml):

archive:
  level: 9
  buffer_size: 1048576
manifest:
  Created-By: "release pipeline"
repositories:
  - "~/.m2/repository"
registry: "configs/artifact_registry.yaml"
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from featurearchive.archive.writer import ArchiveOptions


def load_config(config_path: Path) -> dict[str, Any]:
    """Load an archive config YAML file."""
    if not config_path.exists():
        raise FileNotFoundError(f"Config not found: {config_path}")
    with open(config_path, encoding="utf-8") as f:
        cfg = yaml.safe_load(f) or {}
    if not isinstance(cfg, dict):
        raise ValueError(f"Archive config must be a mapping, got {type(cfg).__name__}")
    return cfg


def options_from_config(cfg: dict[str, Any]) -> ArchiveOptions:
    """Build ArchiveOptions from the ``archive`` section (missing keys use defaults)."""
    section = cfg.get("archive") or {}
    if not isinstance(section, dict):
        raise ValueError("'archive' section must be a mapping")
    kwargs = {k: section[k] for k in ("level", "buffer_size") if k in section}
    return ArchiveOptions(**kwargs)


def manifest_from_config(cfg: dict[str, Any]) -> dict[str, str]:
    section = cfg.get("manifest") or {}
    if not isinstance(section, dict):
        raise ValueError("'manifest' section must be a mapping")
    return {str(k): str(v) for k, v in section.items()}
