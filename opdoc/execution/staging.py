"""Naming and cleanup of staging artifacts.

Staged content lives next to its target as a hidden file ending in the
staging suffix, so an interrupted run can be found and cleaned up later.
"""

from __future__ import annotations

import logging
import os
import uuid
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_STAGING_SUFFIX = ".opdoc-stage"

_IGNORE_DIRS = {".git", "node_modules", "__pycache__", ".venv"}


def staging_path(target: Path, suffix: str = DEFAULT_STAGING_SUFFIX) -> Path:
    """A fresh, unique staging location adjacent to ``target``."""
    return target.with_name(f".{target.name}.{uuid.uuid4().hex[:12]}{suffix}")


def is_staging_artifact(path: Path, suffix: str = DEFAULT_STAGING_SUFFIX) -> bool:
    return path.name.startswith(".") and path.name.endswith(suffix)


def find_stale_artifacts(root: Path, suffix: str = DEFAULT_STAGING_SUFFIX) -> list[Path]:
    """All staging artifacts under ``root``, skipping VCS and dependency dirs."""
    found: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = [d for d in dirnames if d not in _IGNORE_DIRS]
        for name in filenames:
            path = Path(dirpath) / name
            if is_staging_artifact(path, suffix):
                found.append(path)
    return sorted(found)


def cleanup_stale_artifacts(root: Path, suffix: str = DEFAULT_STAGING_SUFFIX) -> list[Path]:
    """Delete leftover staging artifacts. Returns the paths removed."""
    removed: list[Path] = []
    for path in find_stale_artifacts(Path(root), suffix):
        try:
            path.unlink()
        except FileNotFoundError:
            continue
        except OSError:
            logger.warning("Could not remove staging artifact %s", path, exc_info=True)
            continue
        removed.append(path)
    if removed:
        logger.info("removed %d stale staging artifact(s) under %s", len(removed), root)
    return removed
